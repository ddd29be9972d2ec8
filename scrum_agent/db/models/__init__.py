"""
Database models.

Import every table here so SQLModel.metadata is complete for Alembic.
"""

from scrum_agent.db.models.context_chunk import ContextChunk
from scrum_agent.db.models.token_usage import TokenUsageLog
from scrum_agent.db.models.workflow_run import (
    ApprovalDecision,
    JiraSyncLog,
    RunStatus,
    TERMINAL_STATUSES,
    WorkflowRun,
)

__all__ = [
    "ContextChunk",
    "TokenUsageLog",
    "ApprovalDecision",
    "JiraSyncLog",
    "RunStatus",
    "TERMINAL_STATUSES",
    "WorkflowRun",
]
