"""create workflow tables

Revision ID: 4f2a9c1d7e30
Revises:
Create Date: 2026-10-12 09:14:52.118204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "4f2a9c1d7e30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "context_chunk",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_type", sa.String(), nullable=False),
        sa.Column("source_id", sa.String(), nullable=False),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("content_hash", sa.String(), nullable=False),
        sa.Column("weight_confidence", sa.Float(), nullable=False),
        sa.Column("embedding", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("event_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_context_chunk_id"), "context_chunk", ["id"], unique=False)
    op.create_index(
        op.f("ix_context_chunk_source_type"), "context_chunk", ["source_type"], unique=False
    )
    op.create_index(
        op.f("ix_context_chunk_content_hash"), "context_chunk", ["content_hash"], unique=True
    )
    op.create_index(
        op.f("ix_context_chunk_event_time"), "context_chunk", ["event_time"], unique=False
    )

    op.create_table(
        "token_usage_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("run_id", sa.String(), nullable=True),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("prompt_tokens", sa.Integer(), nullable=False),
        sa.Column("completion_tokens", sa.Integer(), nullable=False),
        sa.Column("total_tokens", sa.Integer(), nullable=False),
        sa.Column("estimated_cost_usd", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_token_usage_log_run_id"), "token_usage_log", ["run_id"], unique=False
    )
    op.create_index(
        op.f("ix_token_usage_log_created_at"), "token_usage_log", ["created_at"], unique=False
    )

    op.create_table(
        "workflow_run",
        sa.Column("run_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("last_node", sa.String(), nullable=True),
        sa.Column("state", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("run_id"),
    )

    op.create_table(
        "jira_sync_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("jira_key", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("content_hash", sa.String(), nullable=True),
        sa.Column(
            "request_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column(
            "response_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_jira_sync_log_jira_key"), "jira_sync_log", ["jira_key"], unique=False
    )
    op.create_index(
        op.f("ix_jira_sync_log_content_hash"), "jira_sync_log", ["content_hash"], unique=False
    )

    op.create_table(
        "approval_decision",
        sa.Column("run_id", sa.String(), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("approval_id", sa.String(), nullable=True),
        sa.Column("decided_by", sa.String(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("run_id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("approval_decision")
    op.drop_index(op.f("ix_jira_sync_log_content_hash"), table_name="jira_sync_log")
    op.drop_index(op.f("ix_jira_sync_log_jira_key"), table_name="jira_sync_log")
    op.drop_table("jira_sync_log")
    op.drop_table("workflow_run")
    op.drop_index(op.f("ix_token_usage_log_created_at"), table_name="token_usage_log")
    op.drop_index(op.f("ix_token_usage_log_run_id"), table_name="token_usage_log")
    op.drop_table("token_usage_log")
    op.drop_index(op.f("ix_context_chunk_event_time"), table_name="context_chunk")
    op.drop_index(op.f("ix_context_chunk_content_hash"), table_name="context_chunk")
    op.drop_index(op.f("ix_context_chunk_source_type"), table_name="context_chunk")
    op.drop_index(op.f("ix_context_chunk_id"), table_name="context_chunk")
    op.drop_table("context_chunk")
