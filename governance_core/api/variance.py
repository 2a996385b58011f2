"""
Variance tracking API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from governance_core.api.errors import to_http_exception
from governance_core.clock import Clock, get_clock
from governance_core.errors import GovernanceError
from governance_core.models.base import get_db
from governance_core.schemas.audit import API_ORIGIN
from governance_core.schemas.variance import (
    VarianceBudgetCreate,
    VarianceUpdate,
    VarianceRecordResponse,
    VarianceSnapshot,
    MilestoneCreate,
    MilestoneUpdate,
    MilestoneResponse,
)
from governance_core.services.variance_service import VarianceService

router = APIRouter(tags=["Variance"])


@router.post(
    "/proposals/{proposal_id}/variance",
    response_model=VarianceRecordResponse,
    status_code=201,
)
def create_variance_budget(
    proposal_id: int,
    request: VarianceBudgetCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Start variance tracking with the budgeted baseline."""
    service = VarianceService(db, clock)
    try:
        record = service.create_variance_budget(
            proposal_id, request, origin=API_ORIGIN
        )
        db.commit()
        return record
    except GovernanceError as e:
        db.rollback()
        raise to_http_exception(e)


@router.patch(
    "/proposals/{proposal_id}/variance",
    response_model=VarianceRecordResponse,
)
def update_variance_budget(
    proposal_id: int,
    request: VarianceUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Record planned or actual values.

    Variance percentage and risk status are recomputed in the same
    transaction as the update.
    """
    service = VarianceService(db, clock)
    try:
        record = service.update_variance_budget(
            proposal_id, request, origin=API_ORIGIN
        )
        db.commit()
        return record
    except GovernanceError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get(
    "/proposals/{proposal_id}/variance",
    response_model=VarianceSnapshot | None,
)
def get_variance_data(
    proposal_id: int,
    db: Session = Depends(get_db),
):
    """Variance snapshot, or null when the proposal is not tracked yet."""
    return VarianceService(db).get_variance_data(proposal_id)


@router.post(
    "/proposals/{proposal_id}/variance/milestones",
    response_model=MilestoneResponse,
    status_code=201,
)
def create_milestone(
    proposal_id: int,
    request: MilestoneCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = VarianceService(db, clock)
    try:
        milestone = service.create_milestone(
            proposal_id, request, origin=API_ORIGIN
        )
        db.commit()
        return milestone
    except GovernanceError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get(
    "/proposals/{proposal_id}/variance/milestones",
    response_model=list[MilestoneResponse],
)
def list_milestones(
    proposal_id: int,
    db: Session = Depends(get_db),
):
    return VarianceService(db).list_milestones(proposal_id)


@router.patch(
    "/variance/milestones/{milestone_id}",
    response_model=MilestoneResponse,
)
def update_milestone(
    milestone_id: int,
    request: MilestoneUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    service = VarianceService(db, clock)
    try:
        milestone = service.update_milestone(
            milestone_id, request, origin=API_ORIGIN
        )
        db.commit()
        return milestone
    except GovernanceError as e:
        db.rollback()
        raise to_http_exception(e)
