"""
Proposal model.

A proposal is the governed unit of decision making. It is created
in DRAFT, becomes actionable in LISTENING, and ends APPROVED or
VETOED. Proposals are never deleted by the core.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    String, DateTime, Text, JSON,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from governance_core.models.base import Base
from governance_core.models.enums import ProposalStatus, enum_values


# Valid state transitions, the source of truth for the state machine
VALID_TRANSITIONS: dict[ProposalStatus, set[ProposalStatus]] = {
    ProposalStatus.DRAFT: {ProposalStatus.LISTENING},
    ProposalStatus.LISTENING: {
        ProposalStatus.APPROVED,
        ProposalStatus.VETOED,
    },
    ProposalStatus.APPROVED: set(),  # Terminal
    ProposalStatus.VETOED: set(),  # Terminal
}


class Proposal(Base):
    __tablename__ = "proposals"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    case_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    stencil_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    circle_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    submitted_by: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    status: Mapped[ProposalStatus] = mapped_column(
        SAEnum(
            ProposalStatus,
            name="proposal_status_enum",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=ProposalStatus.DRAFT,
        index=True,
    )
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    approved_by: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    vetoed_by: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    veto_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    vetoed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def can_transition_to(self, new_status: ProposalStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS.get(self.status)

    def __repr__(self) -> str:
        return f"<Proposal {self.case_number} ({self.status.value})>"
