"""
Workflow state model for the decision-to-ticket graph.

Pure graph state, no service-layer imports. Fields without a reducer are
replaced by the last write; the annotated ones merge as follows:

* ``reviews``: shallow merge, each reviewer owns one slot.
* ``conflicts`` / ``citations``: append.
* ``control``: ``iteration`` is additive, ``abort_reason`` latches.
"""

import operator
import uuid
from typing import Annotated, Any, Dict, List, Optional

from sqlmodel import Field, SQLModel

from scrum_agent.services.workflow.schemas import (
    Action,
    ApprovalRecord,
    BizReview,
    Classification,
    Conflict,
    ContextItem,
    Control,
    Decision,
    DesignReview,
    QaReview,
    RolloutPlan,
    SourceRef,
    WorkflowInput,
)

REVIEW_SLOTS = ("biz", "qa", "design")


class Reviews(SQLModel):
    """Specialist verdicts; a null slot means no opinion, never approval."""

    biz: Optional[BizReview] = None
    qa: Optional[QaReview] = None
    design: Optional[DesignReview] = None


def merge_reviews(left: Any, right: Any) -> Reviews:
    """Shallow merge: slots present in ``right`` overwrite those in ``left``."""
    if left is None:
        left = Reviews()
    if isinstance(left, dict):
        left = Reviews.model_validate(left)
    merged = {slot: getattr(left, slot) for slot in REVIEW_SLOTS}

    if isinstance(right, Reviews):
        right = {slot: getattr(right, slot) for slot in right.model_fields_set}
    for slot, value in (right or {}).items():
        if slot in REVIEW_SLOTS:
            merged[slot] = value
    return Reviews.model_validate(merged)


def merge_control(left: Any, right: Any) -> Control:
    """
    Reducer for control.

    ``iteration`` in an update is a delta. ``max_iteration`` is replaced only
    by a non-null value. Once ``abort_reason`` is set it is never cleared.
    """
    left = Control.model_validate(left) if left is not None else Control()
    right = Control.model_validate(right) if right is not None else Control()
    return Control(
        iteration=left.iteration + right.iteration,
        max_iteration=(
            right.max_iteration if right.max_iteration is not None else left.max_iteration
        ),
        abort_reason=left.abort_reason or right.abort_reason,
    )


class WorkflowState(SQLModel):
    """
    State of one decision-to-ticket run.

    This is used by LangGraph to manage workflow state, not a database table.
    """

    run_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="The id of the run."
    )
    input: WorkflowInput = Field(description="Triggering event, immutable.")
    classification: Optional[Classification] = Field(default=None)
    actions: List[Action] = Field(default_factory=list)
    decisions: List[Decision] = Field(default_factory=list)
    retrieved_context: List[ContextItem] = Field(
        default_factory=list,
        description="Ranked supporting context; empty means ungrounded.",
    )
    reviews: Annotated[Reviews, merge_reviews] = Field(default_factory=Reviews)
    conflicts: Annotated[List[Conflict], operator.add] = Field(default_factory=list)
    citations: Annotated[List[SourceRef], operator.add] = Field(default_factory=list)
    draft: Optional[Dict[str, Any]] = Field(
        default=None, description="Candidate ticket payload, replaced wholesale."
    )
    summary: Optional[str] = Field(default=None)
    open_questions: List[str] = Field(default_factory=list)
    rollout_plan: Optional[RolloutPlan] = Field(default=None)
    acceptance_criteria: List[str] = Field(default_factory=list)
    control: Annotated[Control, merge_control] = Field(default_factory=Control)
    approved: Optional[bool] = Field(
        default=None, description="Set only from the external approval decision."
    )
    approval: Optional[ApprovalRecord] = Field(default=None)
    commit_result: Optional[Dict[str, Any]] = Field(
        default=None, description="{issue_key, url} or {error}; written once."
    )
