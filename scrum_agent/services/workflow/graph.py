"""
Decision-to-Ticket Agent Graph.

Builds the LangGraph StateGraph for the decision-to-ticket workflow:

    START -> {classify, retrieve_context} -> extract -> context_gate
    context_gate -> {biz_review, qa_review, design_review} | draft (aborted)
    reviews -> conflict_detect -> synthesize -> draft -> approval
    approval -> commit_to_jira (approved) | END
"""

from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Union

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import END, START, StateGraph
from langgraph.runtime import Runtime

from scrum_agent.core.exceptions import RecursionLimitExceeded, RunCancelled
from scrum_agent.core.logging import get_logger
from scrum_agent.services.workflow import nodes
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.state import WorkflowState

logger = get_logger(__name__)


class NodeName(str, Enum):
    CLASSIFY = "classify"
    RETRIEVE_CONTEXT = "retrieve_context"
    EXTRACT = "extract"
    CONTEXT_GATE = "context_gate"
    BIZ_REVIEW = "biz_review"
    QA_REVIEW = "qa_review"
    DESIGN_REVIEW = "design_review"
    CONFLICT_DETECT = "conflict_detect"
    SYNTHESIZE = "synthesize"
    DRAFT = "draft"
    APPROVAL = "approval"
    COMMIT_TO_JIRA = "commit_to_jira"


NodeFn = Callable[[WorkflowState, Runtime[Ctx]], Awaitable[dict]]

NODES: Dict[NodeName, NodeFn] = {
    NodeName.CLASSIFY: nodes.classify,
    NodeName.RETRIEVE_CONTEXT: nodes.retrieve_context,
    NodeName.EXTRACT: nodes.extract,
    NodeName.CONTEXT_GATE: nodes.context_gate,
    NodeName.BIZ_REVIEW: nodes.biz_review,
    NodeName.QA_REVIEW: nodes.qa_review,
    NodeName.DESIGN_REVIEW: nodes.design_review,
    NodeName.CONFLICT_DETECT: nodes.conflict_detect,
    NodeName.SYNTHESIZE: nodes.synthesize,
    NodeName.DRAFT: nodes.generate_draft,
    NodeName.APPROVAL: nodes.approval,
    NodeName.COMMIT_TO_JIRA: nodes.commit_to_jira,
}

INTAKE = [NodeName.CLASSIFY, NodeName.RETRIEVE_CONTEXT]
REVIEWERS = [NodeName.BIZ_REVIEW, NodeName.QA_REVIEW, NodeName.DESIGN_REVIEW]

# Nodes scheduled in the same step as their siblings; the step guard
# reserves room for the whole group so the ceiling is never overshot.
PARALLEL_WIDTH: Dict[NodeName, int] = {
    **{n: len(INTAKE) for n in INTAKE},
    **{n: len(REVIEWERS) for n in REVIEWERS},
}


# -----------------------------------------------------------------------------
# Route guards (pure functions of the state)
# -----------------------------------------------------------------------------
def route_after_gate(state: WorkflowState) -> Union[str, List[str]]:
    if state.control.abort_reason:
        return NodeName.DRAFT.value
    return [n.value for n in REVIEWERS]


def route_after_approval(state: WorkflowState) -> str:
    return NodeName.COMMIT_TO_JIRA.value if state.approved is True else END


TRANSITIONS = {
    NodeName.CONTEXT_GATE: (
        route_after_gate,
        [NodeName.DRAFT.value, *(n.value for n in REVIEWERS)],
    ),
    NodeName.APPROVAL: (route_after_approval, [NodeName.COMMIT_TO_JIRA.value, END]),
}


def guarded(name: NodeName, fn: NodeFn) -> NodeFn:
    """
    Wrap a node with the between-node checks.

    Before the node runs: stop if the run was cancelled, and stop if running
    it (with its parallel siblings) would take the step counter past the
    ceiling. After it runs: count the execution.
    """
    width = PARALLEL_WIDTH.get(name, 1)

    async def node(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
        ctx = runtime.context
        if ctx.is_cancelled(state.run_id):
            logger.info("Run cancelled, not scheduling %s", name.value)
            raise RunCancelled(f"Run {state.run_id} cancelled before {name.value}")

        limit = state.control.max_iteration or ctx.config.max_iterations
        if state.control.iteration + width > limit:
            logger.error(
                "Step ceiling %d reached at %d before %s",
                limit,
                state.control.iteration,
                name.value,
            )
            raise RecursionLimitExceeded(limit, state.run_id)

        update = await fn(state, runtime) or {}
        control = dict(update.get("control") or {})
        control["iteration"] = control.get("iteration", 0) + 1
        return {**update, "control": control}

    node.__name__ = name.value
    node.__doc__ = fn.__doc__
    return node


def build_workflow_graph(checkpointer: Optional[BaseCheckpointSaver] = None):
    """Wire and compile the workflow graph."""
    # 1. Initialize Graph with context schema
    workflow = StateGraph(WorkflowState, context_schema=Ctx)

    # 2. Add Nodes
    for name, fn in NODES.items():
        workflow.add_node(name.value, guarded(name, fn))

    # 3. Add Edges
    for name in INTAKE:
        workflow.add_edge(START, name.value)
    workflow.add_edge([n.value for n in INTAKE], NodeName.EXTRACT.value)
    workflow.add_edge(NodeName.EXTRACT.value, NodeName.CONTEXT_GATE.value)
    workflow.add_edge([n.value for n in REVIEWERS], NodeName.CONFLICT_DETECT.value)
    workflow.add_edge(NodeName.CONFLICT_DETECT.value, NodeName.SYNTHESIZE.value)
    workflow.add_edge(NodeName.SYNTHESIZE.value, NodeName.DRAFT.value)
    workflow.add_edge(NodeName.DRAFT.value, NodeName.APPROVAL.value)
    workflow.add_edge(NodeName.COMMIT_TO_JIRA.value, END)

    for name, (router, destinations) in TRANSITIONS.items():
        workflow.add_conditional_edges(name.value, router, destinations)

    # 4. Compile
    return workflow.compile(checkpointer=checkpointer)
