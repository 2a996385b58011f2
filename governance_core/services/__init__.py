"""Business logic services."""

from governance_core.services.audit_trail import AuditTrail
from governance_core.services.case_numbers import CaseNumberGenerator
from governance_core.services.proposal_service import ProposalService
from governance_core.services.variance_service import VarianceService

__all__ = [
    "AuditTrail",
    "CaseNumberGenerator",
    "ProposalService",
    "VarianceService",
]
