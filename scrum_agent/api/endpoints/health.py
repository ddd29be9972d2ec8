from fastapi import APIRouter

from scrum_agent.dependencies.orchestrator import OrchestratorDep

router = APIRouter()


@router.get("")
def health_check(orchestrator: OrchestratorDep):
    """Liveness plus which optional collaborators this worker was wired with."""
    ctx = orchestrator.ctx
    return {
        "status": "ok",
        "retrieval": ctx.retriever is not None,
        "tracker": ctx.tracker is not None,
        "approvals": ctx.approvals is not None,
    }
