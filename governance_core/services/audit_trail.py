"""
Audit trail: the append-only 6W1H event log.

Every service that mutates a proposal or a variance record writes
its event through AuditTrail.append() in the same session as the
mutation. The caller commits both together, or neither.

Events are never updated or deleted.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from governance_core.clock import Clock, SystemClock
from governance_core.errors import PersistenceError, ValidationError
from governance_core.models.audit_event import AuditEvent
from governance_core.models.enums import AuditAction, AuditSubject
from governance_core.schemas.audit import EventOrigin

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = EventOrigin()


class AuditTrail:

    def __init__(self, db: Session, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()

    def append(
        self,
        subject_type: AuditSubject,
        subject_id: int,
        who: str,
        what: AuditAction,
        why: str | None = None,
        metadata: dict[str, Any] | None = None,
        origin: EventOrigin | None = None,
        which: str | None = None,
    ) -> AuditEvent:
        """
        Append one event and flush it.

        Raises PersistenceError if the store rejects the row, which
        must fail the caller's whole unit of work.
        """
        if not who:
            raise ValidationError("Audit events require an actor ('who')")

        origin = origin or DEFAULT_ORIGIN
        event = AuditEvent(
            subject_type=subject_type,
            subject_id=subject_id,
            who=who,
            what=what,
            where=origin.where,
            how=origin.how,
            why=why,
            which=which,
            when=self.clock.now(),
            event_metadata=metadata,
        )
        self.db.add(event)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Audit append failed for %s:%s (%s): %s",
                subject_type.value, subject_id, what.value, e,
            )
            raise PersistenceError(
                f"Failed to append audit event {what.value} "
                f"for {subject_type.value} {subject_id}"
            ) from e

        logger.debug(
            "Audit %s on %s:%s by %s",
            what.value, subject_type.value, subject_id, who,
        )
        return event

    def list_by_subject(
        self, subject_type: AuditSubject, subject_id: int
    ) -> list[AuditEvent]:
        """Return all events for a subject, oldest first."""
        events = self.db.execute(
            select(AuditEvent)
            .where(
                AuditEvent.subject_type == subject_type,
                AuditEvent.subject_id == subject_id,
            )
            .order_by(AuditEvent.when, AuditEvent.id)
        ).scalars().all()
        return list(events)
