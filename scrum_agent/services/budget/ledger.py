"""
Budget ledger.

Prices token usage per model, appends one usage record per model call and
answers "should the workflow degrade" against the configured daily ceiling.
The ledger is the only object shared between concurrently executing runs;
every write is an append, so totals are never read-modify-written.
"""

import asyncio
from datetime import datetime, time, timezone
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from scrum_agent.core.logging import get_logger
from scrum_agent.db.models.token_usage import TokenUsageLog

logger = get_logger(__name__)

# USD per one million tokens.
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4o": {"prompt": 2.5, "completion": 10.0},
    "gpt-4o-mini": {"prompt": 0.15, "completion": 0.6},
}
DEFAULT_PRICING = {"prompt": 0.15, "completion": 0.6}


class UsageRecord(BaseModel):
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    run_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ModelCost(BaseModel):
    tokens: int = 0
    cost: float = 0.0


class CostSummary(BaseModel):
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    by_model: Dict[str, ModelCost] = Field(default_factory=dict)


class DegradeDecision(BaseModel):
    degrade: bool
    reason: Optional[str] = None


class UsageStore(Protocol):
    """Persistence for usage records."""

    async def append(self, record: UsageRecord) -> None: ...

    async def list_since(self, since: Optional[datetime]) -> List[UsageRecord]: ...


class InMemoryUsageStore:
    """Process-local usage store guarded by an asyncio lock."""

    def __init__(self):
        self._records: List[UsageRecord] = []
        self._lock = asyncio.Lock()

    async def append(self, record: UsageRecord) -> None:
        async with self._lock:
            self._records.append(record)

    async def list_since(self, since: Optional[datetime]) -> List[UsageRecord]:
        async with self._lock:
            records = list(self._records)
        if since is None:
            return records
        return [r for r in records if r.created_at >= since]


class SqlUsageStore:
    """Usage store backed by the token_usage_log table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, record: UsageRecord) -> None:
        async with self.session_factory() as session:
            session.add(TokenUsageLog(**record.model_dump()))
            await session.commit()

    async def list_since(self, since: Optional[datetime]) -> List[UsageRecord]:
        statement = select(TokenUsageLog)
        if since is not None:
            statement = statement.where(TokenUsageLog.created_at >= since)
        async with self.session_factory() as session:
            result = await session.execute(statement)
            rows = result.scalars().all()
        return [
            UsageRecord(
                model=row.model,
                prompt_tokens=row.prompt_tokens,
                completion_tokens=row.completion_tokens,
                total_tokens=row.total_tokens,
                estimated_cost_usd=row.estimated_cost_usd,
                run_id=row.run_id,
                created_at=row.created_at,
            )
            for row in rows
        ]


def start_of_day(now: Optional[datetime] = None) -> datetime:
    """Midnight UTC of the day containing ``now``."""
    now = now or datetime.now(timezone.utc)
    return datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)


def price_usage(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    price = MODEL_PRICING.get(model, DEFAULT_PRICING)
    return (prompt_tokens / 1_000_000) * price["prompt"] + (
        completion_tokens / 1_000_000
    ) * price["completion"]


class BudgetLedger:
    """Running-total cost accounting against a daily ceiling."""

    def __init__(self, store: UsageStore, daily_budget_usd: float = 10.0):
        self.store = store
        self.daily_budget_usd = daily_budget_usd

    async def log_usage(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        run_id: Optional[str] = None,
    ) -> UsageRecord:
        cost = price_usage(model, prompt_tokens, completion_tokens)
        record = UsageRecord(
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            estimated_cost_usd=round(cost, 6),
            run_id=run_id,
        )
        await self.store.append(record)
        logger.info(
            "Logged usage model=%s tokens=%d cost=$%.6f",
            model,
            record.total_tokens,
            record.estimated_cost_usd,
        )
        return record

    async def get_total_cost(self, since: Optional[datetime] = None) -> CostSummary:
        summary = CostSummary()
        for record in await self.store.list_since(since):
            summary.total_tokens += record.total_tokens
            summary.estimated_cost_usd += record.estimated_cost_usd
            bucket = summary.by_model.setdefault(record.model, ModelCost())
            bucket.tokens += record.total_tokens
            bucket.cost += record.estimated_cost_usd
        return summary

    def should_degrade(self, total_cost_usd: float) -> DegradeDecision:
        if total_cost_usd >= self.daily_budget_usd:
            return DegradeDecision(
                degrade=True,
                reason=f"Daily budget limit ${self.daily_budget_usd} exceeded",
            )
        return DegradeDecision(degrade=False)

    async def check_today(self) -> DegradeDecision:
        """Degrade decision for spend since midnight UTC."""
        summary = await self.get_total_cost(start_of_day())
        return self.should_degrade(summary.estimated_cost_usd)
