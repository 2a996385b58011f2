"""
Proposal API endpoints.

The API layer is thin: it owns the transaction boundary (commit on
success, rollback on any core error) and delegates every rule to
ProposalService.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from governance_core.api.errors import to_http_exception
from governance_core.clock import Clock, get_clock
from governance_core.config import get_settings
from governance_core.errors import CaseNumberConflictError, GovernanceError
from governance_core.models.base import get_db
from governance_core.schemas.audit import API_ORIGIN, AuditEventResponse
from governance_core.schemas.proposal import (
    ProposalCreate,
    ProposalApprove,
    ProposalVeto,
    ProposalFilter,
    ProposalResponse,
)
from governance_core.services.proposal_service import ProposalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proposals", tags=["Proposals"])


@router.post("", response_model=ProposalResponse, status_code=201)
def create_proposal(
    request: ProposalCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Submit a proposal.

    The proposal is returned in LISTENING. If a concurrent request
    took the same case number, the whole unit of work is retried
    with a fresh transaction.
    """
    max_attempts = max(1, get_settings().CASE_NUMBER_MAX_ATTEMPTS)
    for attempt in range(1, max_attempts + 1):
        service = ProposalService(db, clock)
        try:
            proposal = service.create_proposal(request, origin=API_ORIGIN)
            db.commit()
            return proposal
        except CaseNumberConflictError as e:
            db.rollback()
            if attempt == max_attempts:
                raise to_http_exception(e)
            logger.warning(
                "Case number conflict, retrying (%d/%d)", attempt, max_attempts
            )
        except GovernanceError as e:
            db.rollback()
            raise to_http_exception(e)


@router.get("", response_model=list[ProposalResponse])
def list_proposals(
    filters: Annotated[ProposalFilter, Query()],
    db: Session = Depends(get_db),
):
    """List proposals by status, circle, stencil, submitter or date."""
    return ProposalService(db).list_proposals(filters)


@router.get("/by-case/{case_number}", response_model=ProposalResponse)
def get_proposal_by_case_number(
    case_number: str,
    db: Session = Depends(get_db),
):
    proposal = ProposalService(db).get_proposal_by_case_number(case_number)
    if not proposal:
        raise HTTPException(
            status_code=404, detail=f"Proposal {case_number} not found"
        )
    return proposal


@router.get("/{proposal_id}", response_model=ProposalResponse)
def get_proposal(
    proposal_id: int,
    db: Session = Depends(get_db),
):
    proposal = ProposalService(db).get_proposal(proposal_id)
    if not proposal:
        raise HTTPException(
            status_code=404, detail=f"Proposal {proposal_id} not found"
        )
    return proposal


@router.post("/{proposal_id}/approve", response_model=ProposalResponse)
def approve_proposal(
    proposal_id: int,
    request: ProposalApprove,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Approve a LISTENING proposal.

    Approving an already decided proposal returns 409.
    """
    service = ProposalService(db, clock)
    try:
        proposal = service.approve_proposal(
            proposal_id, request.approved_by, origin=API_ORIGIN
        )
        db.commit()
        return proposal
    except GovernanceError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post("/{proposal_id}/veto", response_model=ProposalResponse)
def veto_proposal(
    proposal_id: int,
    request: ProposalVeto,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Veto a LISTENING proposal. A reason is mandatory."""
    service = ProposalService(db, clock)
    try:
        proposal = service.veto_proposal(
            proposal_id, request.vetoed_by, request.reason, origin=API_ORIGIN
        )
        db.commit()
        return proposal
    except GovernanceError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get(
    "/{proposal_id}/events",
    response_model=list[AuditEventResponse],
)
def get_proposal_events(
    proposal_id: int,
    db: Session = Depends(get_db),
):
    """The proposal's audit trail, oldest first."""
    try:
        return ProposalService(db).get_audit_trail(proposal_id)
    except GovernanceError as e:
        raise to_http_exception(e)
