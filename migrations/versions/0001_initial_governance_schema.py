"""initial governance schema

Revision ID: 0001
Revises:
Create Date: 2025-03-14 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

proposal_status = sa.Enum(
    "DRAFT", "LISTENING", "APPROVED", "VETOED",
    name="proposal_status_enum", create_constraint=True,
)
audit_subject = sa.Enum(
    "PROPOSAL", "VARIANCE_RECORD", "MILESTONE", name="audit_subject_enum"
)
audit_action = sa.Enum(
    "CREATED", "STATUS_CHANGED", "APPROVED", "VETOED",
    "BUDGET_CREATED", "VARIANCE_UPDATED",
    "MILESTONE_CREATED", "MILESTONE_UPDATED",
    name="audit_action_enum",
)
event_channel = sa.Enum(
    "web", "api", "webhook", "batch", name="event_channel_enum"
)
event_mechanism = sa.Enum(
    "UI", "API", "batch", "automated", name="event_mechanism_enum"
)
variance_status = sa.Enum(
    "on_track", "warning", "overrun", "underrun", "critical",
    name="variance_status_enum",
)


def upgrade() -> None:
    op.create_table(
        "proposals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("case_number", sa.String(50), nullable=False),
        sa.Column("stencil_id", sa.String(100), nullable=False),
        sa.Column("circle_id", sa.String(100), nullable=False),
        sa.Column("submitted_by", sa.String(100), nullable=False),
        sa.Column("status", proposal_status, nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("approved_by", sa.String(100), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("vetoed_by", sa.String(100), nullable=True),
        sa.Column("veto_reason", sa.Text(), nullable=True),
        sa.Column("vetoed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_proposals_case_number", "proposals", ["case_number"], unique=True
    )
    op.create_index("ix_proposals_stencil_id", "proposals", ["stencil_id"])
    op.create_index("ix_proposals_circle_id", "proposals", ["circle_id"])
    op.create_index("ix_proposals_submitted_by", "proposals", ["submitted_by"])
    op.create_index("ix_proposals_status", "proposals", ["status"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("subject_type", audit_subject, nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("who", sa.String(100), nullable=False),
        sa.Column("what", audit_action, nullable=False),
        sa.Column("where", event_channel, nullable=False),
        sa.Column("how", event_mechanism, nullable=False),
        sa.Column("why", sa.Text(), nullable=True),
        sa.Column("which", sa.Text(), nullable=True),
        sa.Column("when", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index(
        "ix_audit_events_subject", "audit_events", ["subject_type", "subject_id"]
    )

    op.create_table(
        "variance_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "proposal_id", sa.Integer(),
            sa.ForeignKey("proposals.id"), nullable=False,
        ),
        sa.Column("case_number", sa.String(50), nullable=False),
        sa.Column("stencil_id", sa.String(100), nullable=False),
        sa.Column("budgeted_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("budgeted_breakdown", sa.JSON(), nullable=True),
        sa.Column("budgeted_by", sa.String(100), nullable=False),
        sa.Column("budgeted_at", sa.DateTime(), nullable=False),
        sa.Column("planned_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("planned_metrics", sa.JSON(), nullable=True),
        sa.Column("planned_notes", sa.Text(), nullable=True),
        sa.Column("planned_at", sa.DateTime(), nullable=True),
        sa.Column("actual_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("actual_breakdown", sa.JSON(), nullable=True),
        sa.Column("actual_metrics", sa.JSON(), nullable=True),
        sa.Column("actual_review_count", sa.Integer(), nullable=False),
        sa.Column("last_actual_at", sa.DateTime(), nullable=True),
        sa.Column("variance_pct", sa.Numeric(17, 2), nullable=True),
        sa.Column("variance_status", variance_status, nullable=True),
        sa.Column("variance_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_variance_records_proposal_id", "variance_records",
        ["proposal_id"], unique=True,
    )

    op.create_table(
        "variance_milestones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "variance_record_id", sa.Integer(),
            sa.ForeignKey("variance_records.id"), nullable=False,
        ),
        sa.Column("milestone_key", sa.String(100), nullable=False),
        sa.Column("milestone_label", sa.String(255), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("actual_date", sa.Date(), nullable=True),
        sa.Column("budget_to_date", sa.Numeric(12, 2), nullable=True),
        sa.Column("actual_to_date", sa.Numeric(12, 2), nullable=True),
        sa.Column("variance_pct_to_date", sa.Numeric(17, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.String(100), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_variance_milestones_variance_record_id", "variance_milestones",
        ["variance_record_id"],
    )


def downgrade() -> None:
    op.drop_table("variance_milestones")
    op.drop_table("variance_records")
    op.drop_table("audit_events")
    op.drop_table("proposals")
    bind = op.get_bind()
    for enum_type in (
        variance_status, event_mechanism, event_channel,
        audit_action, audit_subject, proposal_status,
    ):
        enum_type.drop(bind, checkfirst=True)
