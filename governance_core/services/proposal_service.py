"""
Proposal service: the proposal state machine.

Each accepted transition:
1. Checks the proposal exists and the transition is legal
2. Applies the new status with an atomic check-and-set on status
3. Appends exactly one audit event in the same session

The service only flushes. The caller commits the unit of work, or
rolls it back on any error, so a status change never lands without
its audit event.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from governance_core.clock import Clock, SystemClock
from governance_core.errors import (
    CaseNumberConflictError,
    CreationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from governance_core.models.audit_event import AuditEvent
from governance_core.models.enums import (
    AuditAction,
    AuditSubject,
    ProposalStatus,
)
from governance_core.models.proposal import Proposal
from governance_core.schemas.audit import EventOrigin
from governance_core.schemas.proposal import ProposalCreate, ProposalFilter
from governance_core.services.audit_trail import AuditTrail
from governance_core.services.case_numbers import CaseNumberGenerator

logger = logging.getLogger(__name__)


class ProposalService:

    def __init__(self, db: Session, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = AuditTrail(db, self.clock)
        self.case_numbers = CaseNumberGenerator(db)

    def create_proposal(
        self, request: ProposalCreate, origin: EventOrigin | None = None
    ) -> Proposal:
        """
        Submit a new proposal.

        The proposal is written in DRAFT with a CREATED event, then
        moved straight to LISTENING with a STATUS_CHANGED event. DRAFT
        only exists as the anchor for the first event; on success the
        caller always sees LISTENING.
        """
        now = self.clock.now()

        try:
            case_number = self.case_numbers.generate(now.year)
        except ValueError as e:
            raise CreationError(f"Failed to allocate case number: {e}") from e

        proposal = Proposal(
            case_number=case_number,
            stencil_id=request.stencil_id,
            circle_id=request.circle_id,
            submitted_by=request.submitted_by,
            status=ProposalStatus.DRAFT,
            data=request.data,
            created_at=now,
            updated_at=now,
        )
        self.db.add(proposal)
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.warning("Case number %s already taken", case_number)
            raise CaseNumberConflictError(
                f"Case number {case_number} is already allocated"
            ) from e
        except SQLAlchemyError as e:
            raise CreationError("Failed to create proposal") from e

        try:
            self.audit.append(
                AuditSubject.PROPOSAL,
                proposal.id,
                who=request.submitted_by,
                what=AuditAction.CREATED,
                why="New proposal submitted",
                origin=origin,
            )
            self._transition(
                proposal,
                ProposalStatus.LISTENING,
                who=request.submitted_by,
                what=AuditAction.STATUS_CHANGED,
                why="Proposal moved to LISTENING",
                origin=origin,
            )
        except PersistenceError as e:
            raise CreationError(
                f"Failed to open proposal {case_number}"
            ) from e

        logger.info(
            "Proposal %s created by %s in circle %s",
            proposal.case_number, request.submitted_by, request.circle_id,
        )
        return proposal

    def approve_proposal(
        self,
        proposal_id: int,
        approved_by: str,
        origin: EventOrigin | None = None,
    ) -> Proposal:
        """
        Approve a LISTENING proposal.

        Approving twice is rejected rather than ignored: a second
        approval must never look like a fresh financial commitment.
        """
        if not approved_by:
            raise ValidationError("approved_by is required")

        proposal = self._get_or_raise(proposal_id)
        now = self.clock.now()
        self._transition(
            proposal,
            ProposalStatus.APPROVED,
            who=approved_by,
            what=AuditAction.APPROVED,
            why="Proposal approved",
            origin=origin,
            values={"approved_by": approved_by, "approved_at": now},
        )

        logger.info("Proposal %s approved by %s", proposal.case_number, approved_by)
        return proposal

    def veto_proposal(
        self,
        proposal_id: int,
        vetoed_by: str,
        reason: str,
        origin: EventOrigin | None = None,
    ) -> Proposal:
        """Veto a LISTENING proposal. The reason becomes the event's 'why'."""
        if not vetoed_by:
            raise ValidationError("vetoed_by is required")
        if not reason or not reason.strip():
            raise ValidationError("A veto requires a non-empty reason")

        proposal = self._get_or_raise(proposal_id)
        now = self.clock.now()
        self._transition(
            proposal,
            ProposalStatus.VETOED,
            who=vetoed_by,
            what=AuditAction.VETOED,
            why=reason,
            origin=origin,
            values={
                "vetoed_by": vetoed_by,
                "veto_reason": reason,
                "vetoed_at": now,
            },
        )

        logger.info("Proposal %s vetoed by %s", proposal.case_number, vetoed_by)
        return proposal

    def get_proposal(self, proposal_id: int) -> Proposal | None:
        return self.db.get(Proposal, proposal_id)

    def get_proposal_by_case_number(self, case_number: str) -> Proposal | None:
        return self.db.execute(
            select(Proposal).where(Proposal.case_number == case_number)
        ).scalar_one_or_none()

    def list_proposals(self, filters: ProposalFilter | None = None) -> list[Proposal]:
        """Return one page of proposals matching every given filter."""
        filters = filters or ProposalFilter()
        query = select(Proposal)

        if filters.status is not None:
            query = query.where(Proposal.status == filters.status)
        elif filters.statuses:
            query = query.where(Proposal.status.in_(filters.statuses))

        if filters.circle_id is not None:
            query = query.where(Proposal.circle_id == filters.circle_id)
        if filters.stencil_id is not None:
            query = query.where(Proposal.stencil_id == filters.stencil_id)
        if filters.submitted_by is not None:
            query = query.where(Proposal.submitted_by == filters.submitted_by)
        if filters.created_after is not None:
            query = query.where(Proposal.created_at >= filters.created_after)
        if filters.created_before is not None:
            query = query.where(Proposal.created_at <= filters.created_before)

        query = (
            query.order_by(Proposal.created_at, Proposal.id)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        return list(self.db.execute(query).scalars().all())

    def get_audit_trail(self, proposal_id: int) -> list[AuditEvent]:
        self._get_or_raise(proposal_id)
        return self.audit.list_by_subject(AuditSubject.PROPOSAL, proposal_id)

    # --- internals ---

    def _get_or_raise(self, proposal_id: int) -> Proposal:
        proposal = self.db.get(Proposal, proposal_id)
        if not proposal:
            raise NotFoundError("Proposal", proposal_id)
        return proposal

    def _transition(
        self,
        proposal: Proposal,
        new_status: ProposalStatus,
        who: str,
        what: AuditAction,
        why: str,
        origin: EventOrigin | None,
        values: dict | None = None,
    ) -> None:
        """
        Move proposal to new_status and record the event.

        The UPDATE only matches while the row still holds the status we
        read, so two racing callers cannot both win. A zero row count
        means someone else moved it first; the fresh status is re-read
        for the error.
        """
        old_status = proposal.status
        if not proposal.can_transition_to(new_status):
            logger.warning(
                "Rejected %s -> %s for proposal %s",
                old_status.value, new_status.value, proposal.case_number,
            )
            raise InvalidStateError(old_status, new_status)

        now = self.clock.now()
        try:
            result = self.db.execute(
                update(Proposal)
                .where(Proposal.id == proposal.id, Proposal.status == old_status)
                .values(status=new_status, updated_at=now, **(values or {}))
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to move proposal {proposal.id} to {new_status.value}"
            ) from e

        if result.rowcount != 1:
            current = self.db.execute(
                select(Proposal)
                .where(Proposal.id == proposal.id)
                .execution_options(populate_existing=True)
            ).scalar_one()
            logger.warning(
                "Lost race moving proposal %s to %s (now %s)",
                current.case_number, new_status.value, current.status.value,
            )
            raise InvalidStateError(
                current.status, new_status, detail="status changed concurrently"
            )

        self.db.refresh(proposal)

        self.audit.append(
            AuditSubject.PROPOSAL,
            proposal.id,
            who=who,
            what=what,
            why=why,
            metadata={"from": old_status.value, "to": new_status.value},
            origin=origin,
        )
