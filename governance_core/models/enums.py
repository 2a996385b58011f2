"""
Shared enumerations for database models.

Python enums mapped to database enums keep invalid statuses and
audit codes out of the tables, not just out of the API.
"""

import enum


class ProposalStatus(str, enum.Enum):
    """Lifecycle of a proposal. APPROVED and VETOED are terminal."""
    DRAFT = "DRAFT"
    LISTENING = "LISTENING"
    APPROVED = "APPROVED"
    VETOED = "VETOED"


class VarianceStatus(str, enum.Enum):
    """Risk classification derived from the variance percentage."""
    ON_TRACK = "on_track"
    WARNING = "warning"
    OVERRUN = "overrun"
    UNDERRUN = "underrun"
    CRITICAL = "critical"


class AuditAction(str, enum.Enum):
    """The 'what' of an audit event."""
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    APPROVED = "APPROVED"
    VETOED = "VETOED"
    BUDGET_CREATED = "BUDGET_CREATED"
    VARIANCE_UPDATED = "VARIANCE_UPDATED"
    MILESTONE_CREATED = "MILESTONE_CREATED"
    MILESTONE_UPDATED = "MILESTONE_UPDATED"


class AuditSubject(str, enum.Enum):
    """Which kind of row an audit event documents."""
    PROPOSAL = "PROPOSAL"
    VARIANCE_RECORD = "VARIANCE_RECORD"
    MILESTONE = "MILESTONE"


class EventChannel(str, enum.Enum):
    """The 'where' of an audit event: where the request originated."""
    WEB = "web"
    API = "api"
    WEBHOOK = "webhook"
    BATCH = "batch"


class EventMechanism(str, enum.Enum):
    """The 'how' of an audit event."""
    UI = "UI"
    API = "API"
    BATCH = "batch"
    AUTOMATED = "automated"


def enum_values(enum_cls) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]
