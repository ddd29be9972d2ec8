"""
Workflow run checkpoint, Jira sync log and approval decision models.

WorkflowRun is the mutable projection of a run: the latest state snapshot
plus status, keyed by run_id. JiraSyncLog records every tracker write with
the content hash used for idempotent retries.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


class RunStatus(str, Enum):
    """Run status enum."""

    RUNNING = "RUNNING"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    {RunStatus.COMPLETED, RunStatus.REJECTED, RunStatus.FAILED, RunStatus.CANCELLED}
)


class WorkflowRun(SQLModel, table=True):
    """Workflow run table (latest checkpoint per run)."""

    __tablename__ = "workflow_run"

    run_id: str = Field(primary_key=True, description="Workflow run id.")
    status: str = Field(
        default=RunStatus.RUNNING,
        sa_column=Column(String, nullable=False, default=RunStatus.RUNNING),
    )
    last_node: Optional[str] = Field(
        default=None, description="Last node whose output is in the snapshot."
    )
    state: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONB, nullable=False)
    )
    error: Optional[str] = Field(default=None)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class JiraSyncLog(SQLModel, table=True):
    """Jira sync log table."""

    __tablename__ = "jira_sync_log"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        nullable=False,
    )
    jira_key: Optional[str] = Field(default=None, index=True)
    action: str = Field(description="create | update")
    content_hash: Optional[str] = Field(default=None, index=True)
    request_payload: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column(JSONB, nullable=True)
    )
    response_payload: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column(JSONB, nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ApprovalDecision(SQLModel, table=True):
    """Human approval recorded against a run."""

    __tablename__ = "approval_decision"

    run_id: str = Field(primary_key=True)
    approved: bool
    approval_id: Optional[str] = Field(default=None)
    decided_by: Optional[str] = Field(default=None)
    decided_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
