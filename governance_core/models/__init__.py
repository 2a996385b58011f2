"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from governance_core.models.base import Base
from governance_core.models.enums import (
    ProposalStatus,
    VarianceStatus,
    AuditAction,
    AuditSubject,
    EventChannel,
    EventMechanism,
)
from governance_core.models.proposal import Proposal, VALID_TRANSITIONS
from governance_core.models.audit_event import AuditEvent
from governance_core.models.variance import VarianceRecord, Milestone

__all__ = [
    "Base",
    "ProposalStatus",
    "VarianceStatus",
    "AuditAction",
    "AuditSubject",
    "EventChannel",
    "EventMechanism",
    "Proposal",
    "VALID_TRANSITIONS",
    "AuditEvent",
    "VarianceRecord",
    "Milestone",
]
