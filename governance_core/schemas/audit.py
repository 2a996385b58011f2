"""
Pydantic schemas for the audit trail.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from governance_core.models.enums import (
    AuditAction,
    AuditSubject,
    EventChannel,
    EventMechanism,
)


class EventOrigin(BaseModel):
    """
    The 'where' and 'how' of a request.

    Defaults describe the interactive UI path. The HTTP API passes
    API_ORIGIN instead.
    """
    where: EventChannel = EventChannel.WEB
    how: EventMechanism = EventMechanism.UI

    model_config = {"frozen": True}


API_ORIGIN = EventOrigin(where=EventChannel.API, how=EventMechanism.API)


class AuditEventResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    subject_type: AuditSubject
    subject_id: int
    who: str
    what: AuditAction
    where: EventChannel
    how: EventMechanism
    why: str | None
    which: str | None
    when: datetime
    metadata: dict[str, Any] | None = Field(
        default=None, validation_alias="event_metadata"
    )

    model_config = {"from_attributes": True}
