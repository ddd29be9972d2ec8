"""Tests for individual workflow nodes called outside the graph."""

from unittest.mock import AsyncMock

import pytest

from scrum_agent.core.config import WorkflowConfig
from scrum_agent.core.exceptions import BudgetExceeded
from scrum_agent.services.budget.ledger import BudgetLedger, InMemoryUsageStore
from scrum_agent.services.workflow.approvals import InMemoryApprovalStore
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.nodes import (
    approval,
    biz_review,
    classify,
    commit_to_jira,
    generate_draft,
    qa_review,
    retrieve_context,
    synthesize,
)
from scrum_agent.services.workflow.nodes.gate import BUDGET_EXCEEDED, CONTEXT_INSUFFICIENT
from scrum_agent.services.workflow.schemas import (
    BizReview,
    Classification,
    Conflict,
    Control,
    EnrichedDraft,
    GeneratedDraft,
    QaReview,
    SynthesisOutput,
    WorkflowInput,
)
from scrum_agent.services.workflow.state import WorkflowState
from tests.fakes import (
    DECISION_TEXT,
    FakeModelClient,
    FakeTracker,
    extraction,
    full_responses,
    generated_draft,
    make_llm,
    runtime_for,
    synthesis_output,
)


def make_ctx(client=None, budget=10.0, **kwargs):
    ledger = BudgetLedger(InMemoryUsageStore(), daily_budget_usd=budget)
    client = client or FakeModelClient(full_responses())
    return Ctx(llm=make_llm(client, ledger), ledger=ledger, **kwargs)


def make_state(**update):
    state = WorkflowState(run_id="run-1", input=WorkflowInput(text=DECISION_TEXT))
    return state.model_copy(update=update)


VALID_DRAFT = generated_draft().model_dump()


# -----------------------------------------------------------------------------
# Intake
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_classify_drops_evidence_not_in_input():
    client = FakeModelClient(
        {
            Classification: Classification(
                intent="decision",
                confidence=0.8,
                evidence=["We decided to ship", "the CEO said so"],
            )
        }
    )
    update = await classify(make_state(), runtime_for(make_ctx(client)))

    assert update["classification"].evidence == ["We decided to ship"]


@pytest.mark.asyncio
async def test_retrieve_context_without_retriever():
    update = await retrieve_context(make_state(), runtime_for(make_ctx()))
    assert update == {"retrieved_context": []}


@pytest.mark.asyncio
async def test_retrieve_context_failure_is_swallowed():
    retriever = AsyncMock()
    retriever.search.side_effect = RuntimeError("vector store down")

    update = await retrieve_context(make_state(), runtime_for(make_ctx(retriever=retriever)))

    assert update == {"retrieved_context": []}


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_review_writes_only_its_slot():
    update = await biz_review(make_state(), runtime_for(make_ctx()))

    assert set(update["reviews"]) == {"biz"}
    assert update["reviews"]["biz"].decision.recommendation == "APPROVE"


@pytest.mark.asyncio
async def test_failed_review_leaves_slot_empty():
    responses = full_responses()
    responses[QaReview] = RuntimeError("model returned garbage")

    update = await qa_review(make_state(), runtime_for(make_ctx(FakeModelClient(responses))))

    assert update == {}


@pytest.mark.asyncio
async def test_review_propagates_budget_exhaustion():
    client = FakeModelClient({BizReview: RuntimeError("unused")})
    with pytest.raises(BudgetExceeded):
        await biz_review(make_state(), runtime_for(make_ctx(client, budget=0.0)))
    assert client.calls == []


# -----------------------------------------------------------------------------
# Synthesis and drafting
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_synthesize_dedupes_conflicts_and_fills_criteria():
    existing = Conflict(
        between="biz,qa",
        topic="Business rejects but QA found no risks",
        resolution_proposal="Defer to business rationale",
    )
    output = synthesis_output().model_copy(
        update={
            "conflicts": [
                existing,
                Conflict(between="qa,design", topic="Scope", resolution_proposal="Split"),
            ]
        }
    )
    client = FakeModelClient({SynthesisOutput: output})

    update = await synthesize(
        make_state(conflicts=[existing]), runtime_for(make_ctx(client))
    )

    assert [c.topic for c in update["conflicts"]] == ["Scope"]
    assert update["draft"]["acceptance_criteria"] == ["Toggle persists across sessions"]
    assert update["summary"] == "Implement dark mode toggle"


@pytest.mark.asyncio
async def test_draft_after_synthesis_only_enriches():
    client = FakeModelClient(full_responses())
    state = make_state(draft=VALID_DRAFT)

    update = await generate_draft(state, runtime_for(make_ctx(client)))

    assert "draft" not in update
    assert update["open_questions"] == ["Which pages first?"]
    assert client.count(EnrichedDraft) == 1
    assert client.count(GeneratedDraft) == 0


@pytest.mark.asyncio
async def test_draft_without_reviews_is_generated():
    client = FakeModelClient(full_responses())
    state = make_state(control=Control(abort_reason=CONTEXT_INSUFFICIENT))

    update = await generate_draft(
        state, runtime_for(make_ctx(client, config=WorkflowConfig(project_key="OPS")))
    )

    assert update["draft"]["summary"] == "Generated without reviews"
    assert 'project_key "OPS"' in client.prompts[-1]


@pytest.mark.asyncio
async def test_draft_over_budget_makes_no_model_call():
    client = FakeModelClient(full_responses())
    state = make_state(
        control=Control(abort_reason=BUDGET_EXCEEDED), actions=extraction().actions
    )

    update = await generate_draft(
        state, runtime_for(make_ctx(client, budget=0.0, config=WorkflowConfig(project_key="OPS")))
    )

    assert client.calls == []
    draft = update["draft"]
    assert draft["project_key"] == "OPS"
    assert draft["summary"] == "We decided to ship the dark mode toggle next sprint."
    assert draft["labels"] == ["needs-review"]
    assert "- [task] Build the settings page (@Alice)" in draft["description_md"]


# -----------------------------------------------------------------------------
# Approval
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_approval_without_decision_suspends():
    ctx = make_ctx(approvals=InMemoryApprovalStore())
    assert await approval(make_state(), runtime_for(ctx)) == {}


@pytest.mark.asyncio
async def test_approval_passes_decision_through():
    approvals = InMemoryApprovalStore()
    await approvals.record("run-1", True, approval_id="appr-7")

    update = await approval(make_state(), runtime_for(make_ctx(approvals=approvals)))

    assert update["approved"] is True
    assert update["approval"].status == "approved"
    assert update["approval"].id == "appr-7"


@pytest.mark.asyncio
async def test_invalid_decision_counts_as_rejection():
    approvals = AsyncMock()
    approvals.get_decision.return_value = {"approved": "yes please"}

    update = await approval(make_state(), runtime_for(make_ctx(approvals=approvals)))

    assert update["approved"] is False
    assert update["approval"].status == "rejected"


# -----------------------------------------------------------------------------
# Commit
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_commit_creates_issue(tracker):
    state = make_state(draft=VALID_DRAFT, approved=True)

    update = await commit_to_jira(state, runtime_for(make_ctx(tracker=tracker)))

    assert update["commit_result"] == {
        "issue_key": "PROJ-1",
        "url": "https://jira.example.com/browse/PROJ-1",
    }
    assert tracker.created[0].summary == "Dark mode toggle"


@pytest.mark.asyncio
async def test_commit_records_invalid_draft(tracker):
    state = make_state(draft={"project_key": "PROJ", "summary": "   "}, approved=True)

    update = await commit_to_jira(state, runtime_for(make_ctx(tracker=tracker)))

    assert update["commit_result"]["error"].startswith("DRAFT_INVALID: summary")
    assert tracker.created == []


@pytest.mark.asyncio
async def test_commit_rejects_unknown_priority_and_bad_due_date(tracker):
    draft = dict(VALID_DRAFT, priority="High", due_date="next friday")
    state = make_state(draft=draft, approved=True)

    update = await commit_to_jira(state, runtime_for(make_ctx(tracker=tracker)))

    error = update["commit_result"]["error"]
    assert error.startswith("DRAFT_INVALID: ")
    assert "priority" in error
    assert "due_date" in error
    assert tracker.created == []


@pytest.mark.asyncio
async def test_commit_records_tracker_error():
    tracker = FakeTracker(error=RuntimeError("Jira API error 400: bad project"))
    state = make_state(draft=VALID_DRAFT, approved=True)

    update = await commit_to_jira(state, runtime_for(make_ctx(tracker=tracker)))

    assert update["commit_result"] == {"error": "Jira API error 400: bad project"}


@pytest.mark.asyncio
async def test_commit_times_out():
    tracker = FakeTracker(delay=1.0)
    ctx = make_ctx(tracker=tracker, config=WorkflowConfig(tracker_timeout_seconds=0.01))
    state = make_state(draft=VALID_DRAFT, approved=True)

    update = await commit_to_jira(state, runtime_for(ctx))

    assert "timed out" in update["commit_result"]["error"]


@pytest.mark.asyncio
async def test_commit_without_tracker():
    state = make_state(draft=VALID_DRAFT, approved=True)
    update = await commit_to_jira(state, runtime_for(make_ctx()))
    assert update["commit_result"] == {"error": "Jira not configured"}


@pytest.mark.asyncio
async def test_commit_is_written_once(tracker):
    state = make_state(
        draft=VALID_DRAFT, approved=True, commit_result={"issue_key": "PROJ-9"}
    )
    assert await commit_to_jira(state, runtime_for(make_ctx(tracker=tracker))) == {}
    assert tracker.created == []
