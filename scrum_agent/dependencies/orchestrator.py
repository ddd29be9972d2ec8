"""
Scrum Agent Orchestrator Dependencies
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from scrum_agent.services.workflow.approvals import ApprovalStore
from scrum_agent.services.workflow.orchestrator import WorkflowOrchestrator


def get_orchestrator(request: Request) -> WorkflowOrchestrator:
    """Get the orchestrator built at startup."""
    return request.app.state.orchestrator


OrchestratorDep = Annotated[WorkflowOrchestrator, Depends(get_orchestrator)]


def get_approval_store(orchestrator: OrchestratorDep) -> ApprovalStore:
    """Get the approval store the approval node reads from."""
    store = orchestrator.ctx.approvals
    if store is None:
        raise HTTPException(status_code=503, detail="Approvals are not configured")
    return store


ApprovalStoreDep = Annotated[ApprovalStore, Depends(get_approval_store)]
