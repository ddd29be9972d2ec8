"""Tests for the budget ledger."""

from datetime import datetime, timedelta, timezone

import pytest

from scrum_agent.services.budget.ledger import (
    BudgetLedger,
    InMemoryUsageStore,
    UsageRecord,
    price_usage,
    start_of_day,
)


def test_price_usage_known_model():
    # 1M prompt + 1M completion tokens of gpt-4o
    assert price_usage("gpt-4o", 1_000_000, 1_000_000) == pytest.approx(12.5)


def test_price_usage_unknown_model_uses_default():
    assert price_usage("mystery", 1_000_000, 0) == pytest.approx(0.15)


def test_start_of_day_is_utc_midnight():
    now = datetime(2026, 5, 4, 23, 30, tzinfo=timezone.utc)
    assert start_of_day(now) == datetime(2026, 5, 4, tzinfo=timezone.utc)


def test_should_degrade_at_ceiling():
    ledger = BudgetLedger(InMemoryUsageStore(), daily_budget_usd=5.0)
    assert ledger.should_degrade(4.99).degrade is False
    decision = ledger.should_degrade(5.0)
    assert decision.degrade is True
    assert "5.0" in decision.reason


@pytest.mark.asyncio
async def test_log_usage_and_total():
    ledger = BudgetLedger(InMemoryUsageStore(), daily_budget_usd=5.0)
    await ledger.log_usage("gpt-4o-mini", 1_000_000, 0, run_id="r1")
    await ledger.log_usage("gpt-4o", 0, 100_000, run_id="r1")

    summary = await ledger.get_total_cost()
    assert summary.total_tokens == 1_100_000
    assert summary.estimated_cost_usd == pytest.approx(1.15)
    assert set(summary.by_model) == {"gpt-4o-mini", "gpt-4o"}
    assert summary.by_model["gpt-4o"].cost == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_check_today_ignores_yesterday():
    store = InMemoryUsageStore()
    yesterday = datetime.now(timezone.utc) - timedelta(days=1, hours=1)
    await store.append(
        UsageRecord(model="gpt-4o", total_tokens=1, estimated_cost_usd=100.0, created_at=yesterday)
    )
    ledger = BudgetLedger(store, daily_budget_usd=1.0)

    assert (await ledger.check_today()).degrade is False

    await ledger.log_usage("gpt-4o", 0, 100_000)
    assert (await ledger.check_today()).degrade is True


@pytest.mark.asyncio
async def test_zero_budget_degrades_immediately():
    ledger = BudgetLedger(InMemoryUsageStore(), daily_budget_usd=0.0)
    assert (await ledger.check_today()).degrade is True
