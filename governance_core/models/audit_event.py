"""
Audit event model (the "Thanos" 6W1H trail).

Records who did what, where, how and why to a governed row, plus
when it happened and any transition-specific metadata. Every state
change of a proposal or a variance record writes exactly one event.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    String, DateTime, Text, JSON, Index,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from governance_core.models.base import Base
from governance_core.models.enums import (
    AuditAction,
    AuditSubject,
    EventChannel,
    EventMechanism,
    enum_values,
)


class AuditEvent(Base):
    """
    Immutable record of a governance event.

    Audit events are append-only. AuditTrail exposes no way to
    update or delete one.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_subject", "subject_type", "subject_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    subject_type: Mapped[AuditSubject] = mapped_column(
        SAEnum(AuditSubject, name="audit_subject_enum", values_callable=enum_values),
        nullable=False,
    )
    subject_id: Mapped[int] = mapped_column(nullable=False)

    who: Mapped[str] = mapped_column(String(100), nullable=False)
    what: Mapped[AuditAction] = mapped_column(
        SAEnum(AuditAction, name="audit_action_enum", values_callable=enum_values),
        nullable=False,
    )
    where: Mapped[EventChannel] = mapped_column(
        SAEnum(EventChannel, name="event_channel_enum", values_callable=enum_values),
        nullable=False,
        default=EventChannel.WEB,
    )
    how: Mapped[EventMechanism] = mapped_column(
        SAEnum(EventMechanism, name="event_mechanism_enum", values_callable=enum_values),
        nullable=False,
        default=EventMechanism.UI,
    )
    why: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Alternatives considered
    which: Mapped[str | None] = mapped_column(Text, nullable=True)
    when: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent {self.what.value} "
            f"{self.subject_type.value}:{self.subject_id} by {self.who}>"
        )
