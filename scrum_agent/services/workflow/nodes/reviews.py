"""Specialist review nodes (business, QA, design).

Each reviewer reads only the intake output and writes only its own slot. A
reviewer that fails leaves its slot empty: the verdict is not retried in
place, and downstream nodes read the gap as "no opinion". Budget exhaustion
is not a reviewer failure and propagates.
"""

from typing import Type

from langgraph.runtime import Runtime
from pydantic import BaseModel

from scrum_agent.core.exceptions import BudgetExceeded
from scrum_agent.core.logging import get_logger
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.nodes.utils import build_review_context
from scrum_agent.services.workflow.prompts import (
    BIZ_REVIEW_SYSTEM_PROMPT,
    DESIGN_REVIEW_SYSTEM_PROMPT,
    QA_REVIEW_SYSTEM_PROMPT,
)
from scrum_agent.services.workflow.schemas import BizReview, DesignReview, QaReview
from scrum_agent.services.workflow.state import WorkflowState

logger = get_logger(__name__)


async def _review(
    slot: str,
    schema: Type[BaseModel],
    system_prompt: str,
    state: WorkflowState,
    runtime: Runtime[Ctx],
) -> dict:
    try:
        verdict = await runtime.context.llm.structured_invoke(
            schema, system_prompt, build_review_context(state), run_id=state.run_id
        )
    except BudgetExceeded:
        raise
    except Exception as e:
        logger.error("%s review failed, leaving slot empty: %s", slot, e, exc_info=True)
        return {}

    logger.info(
        "%s review: %s (%.2f)",
        slot,
        verdict.decision.recommendation,
        verdict.decision.confidence,
    )
    return {"reviews": {slot: verdict}, "citations": list(verdict.citations)}


async def biz_review(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    return await _review("biz", BizReview, BIZ_REVIEW_SYSTEM_PROMPT, state, runtime)


async def qa_review(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    return await _review("qa", QaReview, QA_REVIEW_SYSTEM_PROMPT, state, runtime)


async def design_review(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    return await _review(
        "design", DesignReview, DESIGN_REVIEW_SYSTEM_PROMPT, state, runtime
    )
