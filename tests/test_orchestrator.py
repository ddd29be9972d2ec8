"""End-to-end tests of the workflow graph through the orchestrator."""

import asyncio
import logging
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from scrum_agent.core.config import WorkflowConfig
from scrum_agent.core.exceptions import (
    ExternalCallFault,
    RecursionLimitExceeded,
    RunNotFound,
)
from scrum_agent.db.models.workflow_run import RunStatus
from scrum_agent.services.budget.ledger import BudgetLedger, InMemoryUsageStore
from scrum_agent.services.llm.client import TokenUsage
from scrum_agent.services.retrieval.retriever import ContextRetriever, content_hash
from scrum_agent.services.retrieval.store import InMemoryContentStore, StoredChunk
from scrum_agent.services.workflow.approvals import InMemoryApprovalStore
from scrum_agent.services.workflow.nodes.gate import BUDGET_EXCEEDED, CONTEXT_INSUFFICIENT
from scrum_agent.services.workflow.orchestrator import WorkflowOrchestrator, checkpoint_serializer
from scrum_agent.services.workflow.run_store import InMemoryCheckpointStore
from scrum_agent.services.workflow.schemas import (
    BizReview,
    Classification,
    Control,
    DesignReview,
    Extraction,
    GeneratedDraft,
    InputKind,
    QaReview,
    SynthesisOutput,
)
from scrum_agent.services.workflow.state import Reviews
from tests.fakes import (
    DECISION_TEXT,
    EMBEDDING,
    FakeModelClient,
    FakeTracker,
    biz_review,
    classification,
    extraction,
    full_responses,
    make_llm,
    qa_review,
)

INPUT = {"kind": "chat", "text": DECISION_TEXT, "channel_ref": "C123"}


def prior_chunk() -> StoredChunk:
    content = "Design review: dark mode must meet WCAG AA."
    return StoredChunk(
        source_type="MEETING_MINUTES",
        source_id="minutes-42",
        content=content,
        content_hash=content_hash(content),
        embedding=list(EMBEDDING),
        event_time=datetime.now(timezone.utc),
        weight_confidence=1.0,
    )


def build(responses=None, usage=None, config=None, with_context=True, budget=10.0):
    ledger = BudgetLedger(InMemoryUsageStore(), daily_budget_usd=budget)
    client = FakeModelClient(responses or full_responses(), usage=usage)
    llm = make_llm(client, ledger)
    retriever = (
        ContextRetriever(llm, InMemoryContentStore([prior_chunk()])) if with_context else None
    )
    store = InMemoryCheckpointStore()
    approvals = InMemoryApprovalStore()
    tracker = FakeTracker()
    orchestrator = WorkflowOrchestrator(
        llm=llm,
        ledger=ledger,
        store=store,
        config=config,
        retriever=retriever,
        tracker=tracker,
        approvals=approvals,
    )
    return SimpleNamespace(
        orchestrator=orchestrator,
        client=client,
        store=store,
        approvals=approvals,
        tracker=tracker,
    )


async def run_to_suspension(h):
    return await h.orchestrator.execute(h.orchestrator.new_state(INPUT))


async def status_of(h, run_id):
    return (await h.store.get_record(run_id)).status


# -----------------------------------------------------------------------------
# Review path
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_run_suspends_for_approval_then_commits():
    h = build()

    state = await run_to_suspension(h)

    assert await status_of(h, state.run_id) == RunStatus.AWAITING_APPROVAL
    assert state.classification.intent == "decision"
    assert [c.source_id for c in state.retrieved_context] == ["minutes-42"]
    assert state.reviews.biz is not None
    assert state.reviews.qa is not None
    assert state.reviews.design is not None
    assert state.draft["summary"] == "Dark mode toggle"
    assert state.summary == "Team agreed to ship dark mode next sprint."
    assert state.open_questions == ["Which pages first?"]
    assert state.approved is None
    assert state.commit_result is None
    assert h.tracker.created == []

    await h.approvals.record(state.run_id, True, approval_id="appr-1")
    final = await h.orchestrator.resume_run(state.run_id)

    assert final.approved is True
    assert final.approval.id == "appr-1"
    assert final.commit_result["issue_key"] == "PROJ-1"
    assert await status_of(h, state.run_id) == RunStatus.COMPLETED
    assert len(h.tracker.created) == 1
    # Resuming does not replay intake or reviews.
    assert h.client.count(Classification) == 1
    assert h.client.count(BizReview) == 1
    assert final.control.iteration <= h.orchestrator.config.max_iterations


@pytest.mark.asyncio
async def test_rejected_run_never_commits():
    h = build()
    state = await run_to_suspension(h)

    await h.approvals.record(state.run_id, False)
    final = await h.orchestrator.resume_run(state.run_id)

    assert final.approved is False
    assert final.approval.status == "rejected"
    assert final.commit_result is None
    assert await status_of(h, state.run_id) == RunStatus.REJECTED
    assert h.tracker.created == []


@pytest.mark.asyncio
async def test_resume_without_decision_stays_suspended():
    h = build()
    state = await run_to_suspension(h)

    again = await h.orchestrator.resume_run(state.run_id)

    assert again.approved is None
    assert await status_of(h, state.run_id) == RunStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_finished_run_is_not_resumed():
    h = build()
    state = await run_to_suspension(h)
    await h.approvals.record(state.run_id, True)
    await h.orchestrator.resume_run(state.run_id)

    await h.orchestrator.resume_run(state.run_id)

    assert len(h.tracker.created) == 1


@pytest.mark.asyncio
async def test_decision_landing_mid_run_commits_once():
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_biz(_system_prompt, _user_input):
        entered.set()
        await release.wait()
        return biz_review()

    responses = full_responses()
    responses[BizReview] = slow_biz
    h = build(responses=responses)

    run_id = await h.orchestrator.start_run(INPUT)
    await entered.wait()
    await h.approvals.record(run_id, True)
    await h.orchestrator.resume_in_background(run_id)
    release.set()
    await h.orchestrator.wait_for(run_id)

    assert await status_of(h, run_id) == RunStatus.COMPLETED
    assert h.client.count(BizReview) == 1
    assert h.client.count(Classification) == 1
    assert [d.summary for d in h.tracker.created] == ["Dark mode toggle"]


@pytest.mark.asyncio
async def test_failed_reviewer_leaves_slot_empty():
    responses = full_responses()
    responses[QaReview] = RuntimeError("model returned garbage")
    h = build(responses=responses)

    state = await run_to_suspension(h)

    assert state.reviews.qa is None
    assert state.reviews.biz is not None
    assert state.reviews.design is not None
    assert state.draft is not None
    assert await status_of(h, state.run_id) == RunStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_rule_conflicts_are_recorded():
    responses = full_responses()
    responses[BizReview] = biz_review("REJECT")
    responses[QaReview] = qa_review(with_risks=False)
    h = build(responses=responses)

    state = await run_to_suspension(h)

    assert [c.between for c in state.conflicts] == ["biz,qa"]


# -----------------------------------------------------------------------------
# Abort paths
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_missing_context_skips_reviewers():
    h = build(with_context=False)

    state = await run_to_suspension(h)

    assert state.control.abort_reason == CONTEXT_INSUFFICIENT
    assert h.client.count(BizReview) == 0
    assert h.client.count(QaReview) == 0
    assert h.client.count(DesignReview) == 0
    assert h.client.count(SynthesisOutput) == 0
    assert state.draft["summary"] == "Generated without reviews"
    assert await status_of(h, state.run_id) == RunStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_manual_input_runs_reviewers_without_context():
    h = build(with_context=False)

    state = await h.orchestrator.execute(
        h.orchestrator.new_state({"kind": "manual", "text": DECISION_TEXT})
    )

    assert state.control.abort_reason is None
    assert h.client.count(BizReview) == 1


@pytest.mark.asyncio
async def test_budget_exhaustion_drafts_without_model():
    h = build(
        usage={Extraction: TokenUsage(prompt_tokens=1_000_000, completion_tokens=0)},
        budget=0.1,
    )

    state = await run_to_suspension(h)

    assert state.control.abort_reason == BUDGET_EXCEEDED
    assert h.client.count(BizReview) == 0
    assert h.client.count(GeneratedDraft) == 0
    assert state.draft["labels"] == ["needs-review"]
    assert state.draft["summary"] == "We decided to ship the dark mode toggle next sprint."
    assert await status_of(h, state.run_id) == RunStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_step_ceiling_stops_before_reviewers():
    h = build(config=WorkflowConfig(max_iterations=4))
    state = h.orchestrator.new_state(INPUT)

    with pytest.raises(RecursionLimitExceeded):
        await h.orchestrator.execute(state)

    assert h.client.count(BizReview) == 0
    record = await h.store.get_record(state.run_id)
    assert record.status == RunStatus.FAILED
    assert "RecursionLimitExceeded" in record.error


@pytest.mark.asyncio
async def test_intake_failure_marks_run_failed():
    responses = full_responses()
    responses[Classification] = RuntimeError("provider down")
    h = build(responses=responses)
    state = h.orchestrator.new_state(INPUT)

    with pytest.raises(ExternalCallFault):
        await h.orchestrator.execute(state)

    assert await status_of(h, state.run_id) == RunStatus.FAILED


# -----------------------------------------------------------------------------
# Resume after interruption
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_interrupted_run_resumes_after_last_node():
    h = build()
    state = h.orchestrator.new_state(INPUT).model_copy(
        update={
            "classification": classification(),
            "actions": extraction().actions,
            "decisions": extraction().decisions,
            "control": Control(iteration=3, max_iteration=25),
        }
    )
    await h.store.save_checkpoint(state.run_id, state.model_dump(mode="json"), "extract")
    await h.store.set_status(state.run_id, RunStatus.RUNNING)

    # No context was retrieved before the interruption, so the gate aborts.
    final = await h.orchestrator.resume_run(state.run_id)

    assert h.client.count(Classification) == 0
    assert h.client.count(Extraction) == 0
    assert final.control.abort_reason == CONTEXT_INSUFFICIENT
    assert final.draft is not None
    assert await status_of(h, state.run_id) == RunStatus.AWAITING_APPROVAL


def test_checkpoint_serializer_restores_state_types(caplog):
    caplog.set_level(logging.WARNING)
    serde = checkpoint_serializer()

    def round_trip(value):
        return serde.loads_typed(serde.dumps_typed(value))

    control = round_trip(Control(iteration=2, abort_reason=BUDGET_EXCEEDED))
    reviews = round_trip(Reviews(biz=biz_review()))

    assert round_trip(InputKind.MANUAL) is InputKind.MANUAL
    assert isinstance(control, Control)
    assert control.abort_reason == BUDGET_EXCEEDED
    assert reviews.biz.model_dump() == biz_review().model_dump()
    assert "unregistered" not in caplog.text


@pytest.mark.asyncio
async def test_unknown_run():
    h = build()
    with pytest.raises(RunNotFound):
        await h.orchestrator.resume_run("missing")
    with pytest.raises(RunNotFound):
        await h.orchestrator.get_run_state("missing")


@pytest.mark.asyncio
async def test_run_state_is_the_latest_snapshot():
    h = build()
    state = await run_to_suspension(h)

    snapshot = await h.orchestrator.get_run_state(state.run_id)

    assert snapshot.draft == state.draft


# -----------------------------------------------------------------------------
# Cancellation and streaming
# -----------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cancel_between_nodes():
    holder = {}

    async def cancel_during_extract(_system_prompt, _user_input):
        await h.orchestrator.cancel_run(holder["run_id"])
        return extraction()

    responses = full_responses()
    responses[Extraction] = cancel_during_extract
    h = build(responses=responses)

    run_id = await h.orchestrator.start_run(INPUT)
    holder["run_id"] = run_id
    await h.orchestrator.wait_for(run_id)

    assert await status_of(h, run_id) == RunStatus.CANCELLED
    assert h.client.count(BizReview) == 0
    assert not h.orchestrator.is_cancelled(run_id)


@pytest.mark.asyncio
async def test_cancel_suspended_run():
    h = build()
    state = await run_to_suspension(h)

    await h.orchestrator.cancel_run(state.run_id)
    await h.approvals.record(state.run_id, True)
    await h.orchestrator.resume_run(state.run_id)

    assert await status_of(h, state.run_id) == RunStatus.CANCELLED
    assert h.tracker.created == []


@pytest.mark.asyncio
async def test_stream_ends_when_run_suspends():
    h = build()
    run_id = await h.orchestrator.start_run(INPUT)

    payloads = []

    async def consume():
        async for payload in h.orchestrator.stream_run(run_id):
            payloads.append(payload)

    await asyncio.wait_for(consume(), timeout=5)

    assert payloads[0]["status"] == RunStatus.RUNNING.value
    assert payloads[-1]["status"] == RunStatus.AWAITING_APPROVAL.value
    assert payloads[-1]["state"]["draft"]["summary"] == "Dark mode toggle"


@pytest.mark.asyncio
async def test_stream_ends_on_abort():
    h = build(with_context=False)
    run_id = await h.orchestrator.start_run(INPUT)

    payloads = []

    async def consume():
        async for payload in h.orchestrator.stream_run(run_id):
            payloads.append(payload)

    await asyncio.wait_for(consume(), timeout=5)
    await h.orchestrator.wait_for(run_id)

    assert payloads[-1]["state"]["control"]["abort_reason"] == CONTEXT_INSUFFICIENT
