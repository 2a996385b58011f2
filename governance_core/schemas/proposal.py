"""
Pydantic schemas for proposal operations.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from governance_core.models.enums import ProposalStatus


# --- Request Schemas ---

class ProposalCreate(BaseModel):
    """Request to submit a new proposal."""
    stencil_id: str = Field(min_length=1, max_length=100)
    circle_id: str = Field(min_length=1, max_length=100)
    submitted_by: str = Field(min_length=1, max_length=100)
    data: dict[str, Any] = Field(default_factory=dict)


class ProposalApprove(BaseModel):
    approved_by: str = Field(min_length=1, max_length=100)


class ProposalVeto(BaseModel):
    vetoed_by: str = Field(min_length=1, max_length=100)
    reason: str = Field(min_length=1)


class ProposalFilter(BaseModel):
    """
    Filters for listing proposals.

    status and statuses are alternatives; when both are given,
    status wins. Pages are 1-based.
    """
    status: ProposalStatus | None = None
    statuses: list[ProposalStatus] | None = None
    circle_id: str | None = None
    stencil_id: str | None = None
    submitted_by: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


# --- Response Schemas ---

class ProposalResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    case_number: str
    stencil_id: str
    circle_id: str
    submitted_by: str
    status: ProposalStatus
    data: dict[str, Any]
    approved_by: str | None
    approved_at: datetime | None
    vetoed_by: str | None
    veto_reason: str | None
    vetoed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
