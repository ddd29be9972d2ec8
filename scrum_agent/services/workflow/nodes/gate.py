"""Context gate: decides whether the review phase is worth running."""

from langgraph.runtime import Runtime

from scrum_agent.core.logging import get_logger
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.schemas import InputKind
from scrum_agent.services.workflow.state import WorkflowState

logger = get_logger(__name__)

CONTEXT_INSUFFICIENT = "context_insufficient"
BUDGET_EXCEEDED = "budget_exceeded"


async def context_gate(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """
    Latch an abort reason when the run should skip the reviewers.

    Budget takes precedence over missing context. Manual input is trusted
    without grounding.
    """
    floor = runtime.context.config.min_context_chunks
    count = len(state.retrieved_context)

    decision = await runtime.context.ledger.check_today()
    if decision.degrade:
        logger.warning("Budget exceeded, entering degrade mode: %s", decision.reason)
        return {"control": {"abort_reason": BUDGET_EXCEEDED}}

    if count < floor and state.input.kind != InputKind.MANUAL:
        logger.warning(
            "Insufficient context: %d chunks retrieved (min: %d)", count, floor
        )
        return {"control": {"abort_reason": CONTEXT_INSUFFICIENT}}

    return {}
