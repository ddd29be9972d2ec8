"""Tests for the context gate and the graph routing after it."""

import pytest

from scrum_agent.core.config import WorkflowConfig
from scrum_agent.services.budget.ledger import BudgetLedger, InMemoryUsageStore
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.graph import NodeName, route_after_gate
from scrum_agent.services.workflow.nodes.gate import (
    BUDGET_EXCEEDED,
    CONTEXT_INSUFFICIENT,
    context_gate,
)
from scrum_agent.services.workflow.schemas import ContextItem, Control, InputKind, WorkflowInput
from scrum_agent.services.workflow.state import WorkflowState
from tests.fakes import FakeModelClient, make_llm, runtime_for


def state_with(kind=InputKind.CHAT, chunks=0):
    return WorkflowState(
        input=WorkflowInput(kind=kind, text="We decided to ship."),
        retrieved_context=[
            ContextItem(content=f"c{i}", similarity=0.9, source_id=f"s{i}")
            for i in range(chunks)
        ],
    )


def ctx_with(budget=10.0, min_chunks=1):
    ledger = BudgetLedger(InMemoryUsageStore(), daily_budget_usd=budget)
    return Ctx(
        llm=make_llm(FakeModelClient(), ledger),
        ledger=ledger,
        config=WorkflowConfig(min_context_chunks=min_chunks),
    )


@pytest.mark.asyncio
async def test_enough_context_passes():
    assert await context_gate(state_with(chunks=1), runtime_for(ctx_with())) == {}


@pytest.mark.asyncio
async def test_missing_context_aborts():
    update = await context_gate(state_with(chunks=0), runtime_for(ctx_with()))
    assert update == {"control": {"abort_reason": CONTEXT_INSUFFICIENT}}


@pytest.mark.asyncio
async def test_manual_input_skips_context_floor():
    update = await context_gate(
        state_with(kind=InputKind.MANUAL, chunks=0), runtime_for(ctx_with())
    )
    assert update == {}


@pytest.mark.asyncio
async def test_floor_is_configurable():
    update = await context_gate(state_with(chunks=2), runtime_for(ctx_with(min_chunks=3)))
    assert update["control"]["abort_reason"] == CONTEXT_INSUFFICIENT


@pytest.mark.asyncio
async def test_budget_takes_precedence():
    update = await context_gate(state_with(chunks=0), runtime_for(ctx_with(budget=0.0)))
    assert update == {"control": {"abort_reason": BUDGET_EXCEEDED}}


class TestRouteAfterGate:
    def test_fans_out_to_reviewers(self):
        assert route_after_gate(state_with()) == [
            NodeName.BIZ_REVIEW.value,
            NodeName.QA_REVIEW.value,
            NodeName.DESIGN_REVIEW.value,
        ]

    def test_abort_goes_straight_to_draft(self):
        state = state_with().model_copy(
            update={"control": Control(abort_reason=CONTEXT_INSUFFICIENT)}
        )
        assert route_after_gate(state) == NodeName.DRAFT.value
