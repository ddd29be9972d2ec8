"""
Request and response DTOs for the HTTP API.

Plain pydantic models: ``metadata`` would shadow ``SQLModel.metadata``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from scrum_agent.db.models.workflow_run import RunStatus


class RunStarted(BaseModel):
    run_id: str
    status: RunStatus = RunStatus.RUNNING


class RunPublic(BaseModel):
    run_id: str
    status: RunStatus
    last_node: Optional[str] = None
    error: Optional[str] = None
    state: Dict[str, Any] = Field(default_factory=dict)


class ApprovalRequest(BaseModel):
    approved: bool
    approval_id: Optional[str] = None
    decided_by: Optional[str] = None


class DecisionDetectRequest(BaseModel):
    text: str
    reactions: List[str] = Field(default_factory=list)
    thread_user_count: Optional[int] = Field(default=None, ge=0)


class ContextIngestRequest(BaseModel):
    content: str
    source_type: str
    source_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    event_time: Optional[datetime] = None
    weight_confidence: Optional[float] = Field(default=None, ge=0, le=1)


class ContextIngested(BaseModel):
    content_hash: Optional[str] = None
    stored: bool
