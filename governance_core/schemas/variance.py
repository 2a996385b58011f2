"""
Pydantic schemas for variance tracking.

Update schemas are partial: only the fields a caller explicitly
sets are applied, so an omitted field never overwrites stored data.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from governance_core.models.enums import VarianceStatus


# --- Request Schemas ---

class VarianceBudgetCreate(BaseModel):
    """
    Initial budgeted values for a proposal.

    budgeted_total is checked by the service so that a non-positive
    budget raises the core's ValidationError for every caller.
    """
    case_number: str = Field(min_length=1, max_length=50)
    stencil_id: str = Field(min_length=1, max_length=100)
    budgeted_total: Decimal
    budgeted_breakdown: dict[str, Any] | None = None
    budgeted_by: str = Field(min_length=1, max_length=100)


class VarianceUpdate(BaseModel):
    """
    Planned and actual values to apply. updated_by is the actor
    recorded on the audit event and is never written to the record.
    """
    updated_by: str = Field(min_length=1, max_length=100)
    planned_total: Decimal | None = None
    planned_metrics: dict[str, Any] | None = None
    planned_notes: str | None = None
    actual_total: Decimal | None = None
    actual_breakdown: dict[str, Any] | None = None
    actual_metrics: dict[str, Any] | None = None
    variance_reason: str | None = None

    def supplied(self) -> dict[str, Any]:
        """Fields the caller actually set, without explicit nulls."""
        return self.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"updated_by"}
        )


class MilestoneCreate(BaseModel):
    created_by: str = Field(min_length=1, max_length=100)
    milestone_key: str = Field(min_length=1, max_length=100)
    milestone_label: str = Field(min_length=1, max_length=255)
    scheduled_date: date
    budget_to_date: Decimal | None = None
    actual_to_date: Decimal | None = None


class MilestoneUpdate(BaseModel):
    updated_by: str = Field(min_length=1, max_length=100)
    actual_date: date | None = None
    budget_to_date: Decimal | None = None
    actual_to_date: Decimal | None = None
    notes: str | None = None
    reviewed_by: str | None = Field(default=None, min_length=1, max_length=100)

    def supplied(self) -> dict[str, Any]:
        return self.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"updated_by"}
        )


# --- Response Schemas ---

class MilestoneResponse(BaseModel):
    id: int
    variance_record_id: int
    milestone_key: str
    milestone_label: str
    scheduled_date: date
    actual_date: date | None
    budget_to_date: Decimal | None
    actual_to_date: Decimal | None
    variance_pct_to_date: Decimal | None
    notes: str | None
    reviewed_by: str | None
    reviewed_at: datetime | None

    model_config = {"from_attributes": True}


class VarianceRecordResponse(BaseModel):
    id: int
    proposal_id: int
    case_number: str
    stencil_id: str
    budgeted_total: Decimal
    budgeted_breakdown: dict[str, Any] | None
    budgeted_by: str
    budgeted_at: datetime
    planned_total: Decimal | None
    planned_metrics: dict[str, Any] | None
    planned_notes: str | None
    planned_at: datetime | None
    actual_total: Decimal | None
    actual_breakdown: dict[str, Any] | None
    actual_metrics: dict[str, Any] | None
    actual_review_count: int
    last_actual_at: datetime | None
    variance_pct: Decimal | None
    variance_status: VarianceStatus | None
    variance_reason: str | None

    model_config = {"from_attributes": True}


class VarianceSnapshot(BaseModel):
    """
    Read-only view of a proposal's variance tracking.

    Combines the variance record with its milestones, ordered by
    scheduled date.
    """
    proposal_id: int
    case_number: str
    budgeted: Decimal
    planned: Decimal | None
    actual: Decimal | None
    budgeted_at: datetime
    planned_at: datetime | None
    actual_at: datetime | None
    actual_review_count: int
    variance_pct: Decimal | None
    variance_status: VarianceStatus | None
    variance_reason: str | None
    budgeted_breakdown: dict[str, Any] | None
    planned_metrics: dict[str, Any] | None
    planned_notes: str | None
    actual_breakdown: dict[str, Any] | None
    actual_metrics: dict[str, Any] | None
    milestones: list[MilestoneResponse]
