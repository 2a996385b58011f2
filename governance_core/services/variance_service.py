"""
Variance service: Budgeted → Planned → Actual tracking.

Rules enforced here:
1. One variance record per proposal
2. Budgets are positive
3. variance_pct and variance_status are recomputed together whenever
   an actual value exists, and stay null until then
4. Every mutation appends exactly one audit event

Like the proposal service, this only flushes. The caller commits.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from governance_core.clock import Clock, SystemClock
from governance_core.errors import (
    DuplicateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from governance_core.models.enums import (
    AuditAction,
    AuditSubject,
    VarianceStatus,
)
from governance_core.models.proposal import Proposal
from governance_core.models.variance import VarianceRecord, Milestone
from governance_core.schemas.audit import EventOrigin
from governance_core.schemas.variance import (
    VarianceBudgetCreate,
    VarianceUpdate,
    MilestoneCreate,
    MilestoneUpdate,
    MilestoneResponse,
    VarianceSnapshot,
)
from governance_core.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
# Numeric(12, 2) holds up to 9,999,999,999.99
MAX_AMOUNT = Decimal("9999999999.99")

# Risk bands, checked top to bottom. Overspend is flagged from +5%,
# underspend only from -10%.
CRITICAL_THRESHOLD = Decimal("20")
OVERRUN_THRESHOLD = Decimal("10")
WARNING_THRESHOLD = Decimal("5")
UNDERRUN_THRESHOLD = Decimal("-10")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal | None:
    """Round an amount half-up to cents, the precision it is stored at."""
    if value is None:
        return None
    amount = _to_decimal(value)
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"Amount {value} exceeds {MAX_AMOUNT}")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_variance_pct(budgeted, actual) -> Decimal:
    """
    (actual - budgeted) / budgeted * 100, rounded half-up to 2 places.

    A zero budget yields 0 instead of dividing by zero.
    """
    budgeted = _to_decimal(budgeted)
    actual = _to_decimal(actual)
    if budgeted == 0:
        return Decimal("0.00")
    pct = (actual - budgeted) / budgeted * 100
    return pct.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_risk_status_from_variance(variance_pct) -> VarianceStatus:
    pct = _to_decimal(variance_pct)
    if pct >= CRITICAL_THRESHOLD:
        return VarianceStatus.CRITICAL
    if pct >= OVERRUN_THRESHOLD:
        return VarianceStatus.OVERRUN
    if pct >= WARNING_THRESHOLD:
        return VarianceStatus.WARNING
    if pct <= UNDERRUN_THRESHOLD:
        return VarianceStatus.UNDERRUN
    return VarianceStatus.ON_TRACK


class VarianceService:

    def __init__(self, db: Session, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = AuditTrail(db, self.clock)

    def create_variance_budget(
        self,
        proposal_id: int,
        request: VarianceBudgetCreate,
        origin: EventOrigin | None = None,
    ) -> VarianceRecord:
        """
        Create the budgeted baseline for a proposal.

        Raises DuplicateError if the proposal already has one.
        """
        budgeted_total = quantize_money(request.budgeted_total)
        if budgeted_total <= 0:
            raise ValidationError("budgeted_total must be at least 0.01")

        proposal = self.db.get(Proposal, proposal_id)
        if not proposal:
            raise NotFoundError("Proposal", proposal_id)
        if (
            request.case_number != proposal.case_number
            or request.stencil_id != proposal.stencil_id
        ):
            raise ValidationError(
                f"Budget for {request.case_number}/{request.stencil_id} does "
                f"not match proposal {proposal.case_number}/{proposal.stencil_id}"
            )

        if self.get_variance_record(proposal_id):
            raise DuplicateError(
                f"Variance budget already exists for proposal {proposal_id}"
            )

        now = self.clock.now()
        record = VarianceRecord(
            proposal_id=proposal_id,
            case_number=request.case_number,
            stencil_id=request.stencil_id,
            budgeted_total=budgeted_total,
            budgeted_breakdown=request.budgeted_breakdown,
            budgeted_by=request.budgeted_by,
            budgeted_at=now,
            actual_review_count=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as e:
            # Lost a race with another creator for the same proposal
            raise DuplicateError(
                f"Variance budget already exists for proposal {proposal_id}"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to create variance budget") from e

        self.audit.append(
            AuditSubject.VARIANCE_RECORD,
            record.id,
            who=request.budgeted_by,
            what=AuditAction.BUDGET_CREATED,
            why="Variance budget created",
            metadata={
                "proposal_id": proposal_id,
                "budgeted_total": str(record.budgeted_total),
            },
            origin=origin,
        )

        logger.info(
            "Variance budget %s created for %s",
            budgeted_total, proposal.case_number,
        )
        return record

    def update_variance_budget(
        self,
        proposal_id: int,
        request: VarianceUpdate,
        origin: EventOrigin | None = None,
    ) -> VarianceRecord:
        """
        Apply planned and/or actual values and recompute variance.

        Only fields the caller set are applied. The record is read
        FOR UPDATE, so concurrent updates to the same record serialize
        and the review count never loses an increment.
        """
        changes = request.supplied()
        if not changes:
            raise ValidationError("No variance fields supplied")

        _quantize_amounts(changes, "planned_total", "actual_total")
        if "planned_total" in changes and changes["planned_total"] <= 0:
            raise ValidationError("planned_total must be at least 0.01")

        record = self.db.execute(
            select(VarianceRecord)
            .where(VarianceRecord.proposal_id == proposal_id)
            .with_for_update()
        ).scalar_one_or_none()
        if not record:
            raise NotFoundError("Variance budget for proposal", proposal_id)

        now = self.clock.now()
        for field, value in changes.items():
            setattr(record, field, value)

        if "planned_total" in changes:
            record.planned_at = now

        if "actual_total" in changes:
            record.last_actual_at = now
            record.actual_review_count = (record.actual_review_count or 0) + 1

        budgeted = record.budgeted_total
        if record.actual_total is not None and budgeted is not None and budgeted > 0:
            record.variance_pct = calculate_variance_pct(
                budgeted, record.actual_total
            )
            record.variance_status = calculate_risk_status_from_variance(
                record.variance_pct
            )

        record.updated_at = now
        self._flush("Failed to update variance budget")

        self.audit.append(
            AuditSubject.VARIANCE_RECORD,
            record.id,
            who=request.updated_by,
            what=AuditAction.VARIANCE_UPDATED,
            why=request.variance_reason,
            metadata={
                "fields": sorted(changes),
                "variance_pct": _str_or_none(record.variance_pct),
                "variance_status": (
                    record.variance_status.value
                    if record.variance_status else None
                ),
            },
            origin=origin,
        )

        if record.variance_status in (
            VarianceStatus.OVERRUN, VarianceStatus.CRITICAL
        ):
            logger.warning(
                "Variance %s%% (%s) on %s",
                record.variance_pct, record.variance_status.value,
                record.case_number,
            )
        return record

    def create_milestone(
        self,
        proposal_id: int,
        request: MilestoneCreate,
        origin: EventOrigin | None = None,
    ) -> Milestone:
        record = self.get_variance_record(proposal_id)
        if not record:
            raise NotFoundError("Variance budget for proposal", proposal_id)

        budget_to_date = quantize_money(request.budget_to_date)
        actual_to_date = quantize_money(request.actual_to_date)

        now = self.clock.now()
        milestone = Milestone(
            variance_record_id=record.id,
            milestone_key=request.milestone_key,
            milestone_label=request.milestone_label,
            scheduled_date=request.scheduled_date,
            budget_to_date=budget_to_date,
            actual_to_date=actual_to_date,
            variance_pct_to_date=_milestone_variance(
                budget_to_date, actual_to_date
            ),
            created_at=now,
            updated_at=now,
        )
        self.db.add(milestone)
        self._flush("Failed to create milestone")

        self.audit.append(
            AuditSubject.MILESTONE,
            milestone.id,
            who=request.created_by,
            what=AuditAction.MILESTONE_CREATED,
            why=f"Milestone {request.milestone_key} scheduled",
            metadata={
                "variance_record_id": record.id,
                "milestone_key": request.milestone_key,
                "variance_pct_to_date": _str_or_none(
                    milestone.variance_pct_to_date
                ),
            },
            origin=origin,
        )
        return milestone

    def update_milestone(
        self,
        milestone_id: int,
        request: MilestoneUpdate,
        origin: EventOrigin | None = None,
    ) -> Milestone:
        """
        Record progress on a milestone.

        variance_pct_to_date is recomputed from the stored values after
        the update, so supplying only one of the to-date amounts still
        refreshes it.
        """
        changes = request.supplied()
        if not changes:
            raise ValidationError("No milestone fields supplied")
        _quantize_amounts(changes, "budget_to_date", "actual_to_date")

        milestone = self.db.execute(
            select(Milestone)
            .where(Milestone.id == milestone_id)
            .with_for_update()
        ).scalar_one_or_none()
        if not milestone:
            raise NotFoundError("Milestone", milestone_id)

        now = self.clock.now()
        for field, value in changes.items():
            setattr(milestone, field, value)

        if "reviewed_by" in changes:
            milestone.reviewed_at = now

        pct = _milestone_variance(
            milestone.budget_to_date, milestone.actual_to_date
        )
        if pct is not None:
            milestone.variance_pct_to_date = pct

        milestone.updated_at = now
        self._flush("Failed to update milestone")

        self.audit.append(
            AuditSubject.MILESTONE,
            milestone.id,
            who=request.updated_by,
            what=AuditAction.MILESTONE_UPDATED,
            why=request.notes,
            metadata={
                "fields": sorted(changes),
                "variance_pct_to_date": _str_or_none(
                    milestone.variance_pct_to_date
                ),
            },
            origin=origin,
        )
        return milestone

    def get_variance_record(self, proposal_id: int) -> VarianceRecord | None:
        return self.db.execute(
            select(VarianceRecord).where(
                VarianceRecord.proposal_id == proposal_id
            )
        ).scalar_one_or_none()

    def list_milestones(self, proposal_id: int) -> list[Milestone]:
        """Milestones for a proposal, earliest scheduled first."""
        milestones = self.db.execute(
            select(Milestone)
            .join(VarianceRecord)
            .where(VarianceRecord.proposal_id == proposal_id)
            .order_by(Milestone.scheduled_date, Milestone.id)
        ).scalars().all()
        return list(milestones)

    def get_variance_data(self, proposal_id: int) -> VarianceSnapshot | None:
        """
        Snapshot of the variance tracking for a proposal.

        Returns None when the proposal has no variance record yet;
        that is a normal state, not an error.
        """
        record = self.get_variance_record(proposal_id)
        if not record:
            return None

        return VarianceSnapshot(
            proposal_id=record.proposal_id,
            case_number=record.case_number,
            budgeted=record.budgeted_total,
            planned=record.planned_total,
            actual=record.actual_total,
            budgeted_at=record.budgeted_at,
            planned_at=record.planned_at,
            actual_at=record.last_actual_at,
            actual_review_count=record.actual_review_count,
            variance_pct=record.variance_pct,
            variance_status=record.variance_status,
            variance_reason=record.variance_reason,
            budgeted_breakdown=record.budgeted_breakdown,
            planned_metrics=record.planned_metrics,
            planned_notes=record.planned_notes,
            actual_breakdown=record.actual_breakdown,
            actual_metrics=record.actual_metrics,
            milestones=[
                MilestoneResponse.model_validate(m)
                for m in self.list_milestones(proposal_id)
            ],
        )

    def _flush(self, message: str) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(message) from e


def _milestone_variance(budget_to_date, actual_to_date) -> Decimal | None:
    if budget_to_date is None or actual_to_date is None:
        return None
    if budget_to_date <= 0:
        return None
    return calculate_variance_pct(budget_to_date, actual_to_date)


def _quantize_amounts(changes: dict, *fields: str) -> None:
    for field in fields:
        if field in changes:
            changes[field] = quantize_money(changes[field])


def _str_or_none(value) -> str | None:
    return None if value is None else str(value)
