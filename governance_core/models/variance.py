"""
Variance tracking models.

A VarianceRecord follows one proposal through Budgeted, Planned and
Actual values and stores the derived variance percentage and risk
status. Milestones record cumulative budget and spend at review
points along the way.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, Text, JSON, Integer, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance_core.models.base import Base
from governance_core.models.enums import VarianceStatus, enum_values


class VarianceRecord(Base):
    """
    Budgeted → Planned → Actual for a single proposal.

    One record per proposal, enforced by the unique proposal_id.
    variance_pct and variance_status stay null until an actual
    value exists, and are always written together.
    """

    __tablename__ = "variance_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id"), unique=True, nullable=False, index=True
    )
    case_number: Mapped[str] = mapped_column(String(50), nullable=False)
    stencil_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Budgeted
    budgeted_total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    budgeted_breakdown: Mapped[dict | None] = mapped_column(
        JSON, nullable=True
    )
    budgeted_by: Mapped[str] = mapped_column(String(100), nullable=False)
    budgeted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Planned
    planned_total: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    planned_metrics: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    planned_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    planned_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # Actual
    actual_total: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    actual_breakdown: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    actual_metrics: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    actual_review_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_actual_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # Variance analysis
    variance_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(17, 2), nullable=True
    )
    variance_status: Mapped[VarianceStatus | None] = mapped_column(
        SAEnum(
            VarianceStatus,
            name="variance_status_enum",
            values_callable=enum_values,
        ),
        nullable=True,
    )
    variance_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    milestones: Mapped[list["Milestone"]] = relationship(
        back_populates="variance_record",
        order_by="Milestone.scheduled_date",
    )

    def __repr__(self) -> str:
        return (
            f"<VarianceRecord {self.case_number} "
            f"budgeted={self.budgeted_total} actual={self.actual_total}>"
        )


class Milestone(Base):
    __tablename__ = "variance_milestones"

    id: Mapped[int] = mapped_column(primary_key=True)
    variance_record_id: Mapped[int] = mapped_column(
        ForeignKey("variance_records.id"), nullable=False, index=True
    )
    milestone_key: Mapped[str] = mapped_column(String(100), nullable=False)
    milestone_label: Mapped[str] = mapped_column(String(255), nullable=False)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    budget_to_date: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    actual_to_date: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    variance_pct_to_date: Mapped[Decimal | None] = mapped_column(
        Numeric(17, 2), nullable=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    variance_record: Mapped["VarianceRecord"] = relationship(
        back_populates="milestones"
    )

    def __repr__(self) -> str:
        return f"<Milestone {self.milestone_key} ({self.scheduled_date})>"
