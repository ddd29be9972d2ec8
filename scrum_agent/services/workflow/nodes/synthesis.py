"""Conflict detection, synthesis and draft generation nodes."""

from typing import List

from langgraph.runtime import Runtime

from scrum_agent.core.logging import get_logger
from scrum_agent.services.scoring.decision_heuristic import extract_title
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.nodes.gate import BUDGET_EXCEEDED
from scrum_agent.services.workflow.nodes.utils import dump, format_context
from scrum_agent.services.workflow.prompts import (
    DRAFT_GENERATION_PROMPT,
    SCRUM_MASTER_SYSTEM_PROMPT,
    SUMMARIZER_SYSTEM_PROMPT,
)
from scrum_agent.services.workflow.schemas import (
    Conflict,
    EnrichedDraft,
    GeneratedDraft,
    SynthesisOutput,
)
from scrum_agent.services.workflow.state import Reviews, WorkflowState

logger = get_logger(__name__)

MAX_DESIGN_CONSTRAINTS = 3


def detect_conflicts(reviews: Reviews) -> List[Conflict]:
    """
    Deterministic disagreement rules over the specialist verdicts.

    An empty slot never triggers a rule.
    """
    conflicts: List[Conflict] = []
    biz, qa, design = reviews.biz, reviews.qa, reviews.design
    if biz is None:
        return conflicts

    if (
        biz.decision.recommendation == "REJECT"
        and qa is not None
        and len(qa.state_model_risks) == 0
    ):
        conflicts.append(
            Conflict(
                between="biz,qa",
                topic="Business rejects but QA found no risks",
                resolution_proposal="Defer to business rationale",
            )
        )

    if (
        biz.decision.recommendation == "APPROVE"
        and design is not None
        and len(design.ui_constraints) > MAX_DESIGN_CONSTRAINTS
    ):
        conflicts.append(
            Conflict(
                between="biz,design",
                topic="Business approves but design has many constraints",
                resolution_proposal="Proceed with design constraints as acceptance criteria",
            )
        )

    return conflicts


async def conflict_detect(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    conflicts = detect_conflicts(state.reviews)
    if conflicts:
        logger.info("Detected %d review conflicts", len(conflicts))
    return {"conflicts": conflicts}


async def synthesize(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """Fold the available reviews and conflicts into a candidate draft."""
    user_input = "\n".join(
        [
            f"Original: {state.input.text}",
            f"Classification: {dump(state.classification)}",
            f"Actions: {dump(state.actions)}",
            f"Biz Review: {dump(state.reviews.biz)}",
            f"QA Review: {dump(state.reviews.qa)}",
            f"Design Review: {dump(state.reviews.design)}",
            f"Detected Conflicts: {dump(state.conflicts)}",
        ]
    )
    result = await runtime.context.llm.structured_invoke(
        SynthesisOutput, SCRUM_MASTER_SYSTEM_PROMPT, user_input, run_id=state.run_id
    )

    seen = {(c.between, c.topic) for c in state.conflicts}
    new_conflicts = [c for c in result.conflicts if (c.between, c.topic) not in seen]

    draft = result.canonical_draft.model_dump()
    if not draft["acceptance_criteria"]:
        draft["acceptance_criteria"] = list(result.acceptance_criteria)

    logger.info("Synthesized draft: %s", result.summary_one_line)
    return {
        "draft": draft,
        "summary": result.summary_one_line,
        "conflicts": new_conflicts,
        "citations": list(result.citations),
        "rollout_plan": result.rollout_plan,
        "acceptance_criteria": result.acceptance_criteria,
    }


def _has_canonical_shape(draft: dict | None) -> bool:
    return bool(draft) and "project_key" in draft


def fallback_draft(state: WorkflowState, project_key: str) -> GeneratedDraft:
    """Draft assembled from intake output alone, without a model call."""
    lines = [state.input.text.strip()]
    if state.actions:
        lines.append("")
        lines.extend(
            f"- [{a.type}] {a.description}" + (f" (@{a.assignee})" if a.assignee else "")
            for a in state.actions
        )
    return GeneratedDraft(
        project_key=project_key,
        issue_type="Task",
        summary=extract_title(state.input.text) or "Untitled decision",
        description_md="\n".join(lines),
        priority="P2",
        labels=["needs-review"],
        source_citations=[a.citation for a in state.actions if a.citation],
    )


async def generate_draft(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """
    Produce or enrich the ticket draft.

    After synthesis only a summary and open questions are added and the draft
    is left as is. When the review path was skipped the full draft is
    generated here from intake output and retrieved context alone.
    Over budget, no model is called and a draft is assembled from the
    intake output instead.
    """
    if state.control.abort_reason == BUDGET_EXCEEDED:
        if _has_canonical_shape(state.draft):
            return {}
        draft = fallback_draft(state, runtime.context.config.project_key)
        logger.warning("Over budget, built draft without a model call.")
        return {"draft": draft.model_dump(), "summary": draft.summary}

    parts = [
        f"Classification: {dump(state.classification)}",
        f"Actions: {dump(state.actions)}",
        f"Original text:\n{state.input.text}",
    ]
    if state.retrieved_context:
        parts.append(
            "Relevant knowledge base context:\n"
            + "\n---\n".join(format_context(state, with_similarity=True))
        )
    user_input = "\n\n".join(parts)
    llm = runtime.context.llm

    if _has_canonical_shape(state.draft):
        enriched = await llm.structured_invoke(
            EnrichedDraft, SUMMARIZER_SYSTEM_PROMPT, user_input, run_id=state.run_id
        )
        return {
            "summary": enriched.overview_summary,
            "open_questions": [q.question for q in enriched.open_questions],
        }

    prompt = DRAFT_GENERATION_PROMPT.format(project_key=runtime.context.config.project_key)
    generated = await llm.structured_invoke(
        GeneratedDraft, prompt, user_input, run_id=state.run_id
    )
    logger.info(
        "Generated draft without reviews (abort_reason=%s)", state.control.abort_reason
    )
    return {"draft": generated.model_dump(), "summary": generated.summary}
