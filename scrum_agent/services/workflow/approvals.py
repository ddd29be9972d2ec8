"""
Approval decisions.

A decision is attached to a run by a chat button or a dashboard action and
read back by the approval node. Stores only record; waking the run up is the
job of the approval channel (see ``scrum_agent.core.valkey_pubsub``).
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from scrum_agent.db.models.workflow_run import ApprovalDecision


class ApprovalSource(Protocol):
    async def get_decision(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Return ``{"approved": bool, "approval_id": ...}`` or None if undecided."""
        ...


class ApprovalStore(ApprovalSource, Protocol):
    async def record(
        self,
        run_id: str,
        approved: bool,
        approval_id: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> None: ...


class InMemoryApprovalStore:
    def __init__(self):
        self._decisions: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def record(
        self,
        run_id: str,
        approved: bool,
        approval_id: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> None:
        async with self._lock:
            self._decisions[run_id] = {
                "approved": approved,
                "approval_id": approval_id,
                "decided_by": decided_by,
            }

    async def get_decision(self, run_id: str) -> Optional[Dict[str, Any]]:
        decision = self._decisions.get(run_id)
        return dict(decision) if decision is not None else None


class SqlApprovalStore:
    """Approval store backed by the approval_decision table.

    The latest decision for a run wins.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        run_id: str,
        approved: bool,
        approval_id: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> None:
        values = {
            "approved": approved,
            "approval_id": approval_id,
            "decided_by": decided_by,
            "decided_at": datetime.now(timezone.utc),
        }
        stmt = (
            insert(ApprovalDecision)
            .values(run_id=run_id, **values)
            .on_conflict_do_update(index_elements=[ApprovalDecision.run_id], set_=values)
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def get_decision(self, run_id: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ApprovalDecision).where(ApprovalDecision.run_id == run_id)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return {
            "approved": row.approved,
            "approval_id": row.approval_id,
            "decided_by": row.decided_by,
        }
