"""Intake nodes: classify, extract and retrieve_context."""

from langgraph.runtime import Runtime

from scrum_agent.core.logging import get_logger
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.prompts import (
    CLASSIFY_INTENT_PROMPT,
    EXTRACT_ACTIONS_PROMPT,
)
from scrum_agent.services.workflow.schemas import Classification, ContextItem, Extraction
from scrum_agent.services.workflow.state import WorkflowState

logger = get_logger(__name__)


async def classify(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """Classify the input's intent, with verbatim evidence spans."""
    result = await runtime.context.llm.structured_invoke(
        Classification, CLASSIFY_INTENT_PROMPT, state.input.text, run_id=state.run_id
    )
    # Evidence must be quoted from the input, never inferred.
    evidence = [span for span in result.evidence if span and span in state.input.text]
    if len(evidence) != len(result.evidence):
        logger.warning(
            "Dropped %d evidence spans not found in the input",
            len(result.evidence) - len(evidence),
        )
    logger.info("Classified as %s (%.2f)", result.intent, result.confidence)
    return {"classification": result.model_copy(update={"evidence": evidence})}


async def extract(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """Extract cited action items and decisions."""
    result = await runtime.context.llm.structured_invoke(
        Extraction, EXTRACT_ACTIONS_PROMPT, state.input.text, run_id=state.run_id
    )
    logger.info(
        "Extracted %d actions and %d decisions",
        len(result.actions),
        len(result.decisions),
    )
    return {"actions": result.actions, "decisions": result.decisions}


async def retrieve_context(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """Ground the input in stored context.

    An unavailable or failing retriever yields an empty list; the context
    gate decides what that means for the run.
    """
    retriever = runtime.context.retriever
    if retriever is None:
        logger.warning("No retriever configured, continuing without context.")
        return {"retrieved_context": []}

    config = runtime.context.config
    try:
        results = await retriever.search(
            state.input.text,
            limit=config.retrieval_limit,
            min_similarity=config.retrieval_min_similarity,
        )
    except Exception as e:
        logger.warning("Context retrieval failed, continuing without context: %s", e)
        return {"retrieved_context": []}

    return {
        "retrieved_context": [
            ContextItem(content=r.content, similarity=r.similarity, source_id=r.source_id)
            for r in results
        ]
    }
