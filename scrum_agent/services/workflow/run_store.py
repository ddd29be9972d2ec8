"""
Run checkpoint store.

Holds the latest state snapshot per run, the last node whose output the
snapshot contains, and the run status. A run waiting on approval lives here
between process restarts.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from scrum_agent.db.models.workflow_run import RunStatus, WorkflowRun


class RunRecord(BaseModel):
    run_id: str
    status: RunStatus = RunStatus.RUNNING
    last_node: Optional[str] = None
    state: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CheckpointStore(Protocol):
    async def save_checkpoint(
        self, run_id: str, state: Dict[str, Any], last_node: Optional[str] = None
    ) -> None: ...

    async def load_checkpoint(self, run_id: str) -> Optional[Dict[str, Any]]: ...

    async def set_status(
        self, run_id: str, status: RunStatus, error: Optional[str] = None
    ) -> None: ...

    async def get_record(self, run_id: str) -> Optional[RunRecord]: ...


class InMemoryCheckpointStore:
    def __init__(self):
        self._records: Dict[str, RunRecord] = {}
        self._lock = asyncio.Lock()

    async def save_checkpoint(
        self, run_id: str, state: Dict[str, Any], last_node: Optional[str] = None
    ) -> None:
        async with self._lock:
            record = self._records.get(run_id) or RunRecord(run_id=run_id)
            self._records[run_id] = record.model_copy(
                update={
                    "state": state,
                    "last_node": last_node or record.last_node,
                    "updated_at": datetime.now(timezone.utc),
                }
            )

    async def load_checkpoint(self, run_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(run_id)
        return dict(record.state) if record else None

    async def set_status(
        self, run_id: str, status: RunStatus, error: Optional[str] = None
    ) -> None:
        async with self._lock:
            record = self._records.get(run_id) or RunRecord(run_id=run_id)
            self._records[run_id] = record.model_copy(
                update={
                    "status": status,
                    "error": error,
                    "updated_at": datetime.now(timezone.utc),
                }
            )

    async def get_record(self, run_id: str) -> Optional[RunRecord]:
        return self._records.get(run_id)


class SqlCheckpointStore:
    """Checkpoint store backed by the workflow_run table (one row per run)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save_checkpoint(
        self, run_id: str, state: Dict[str, Any], last_node: Optional[str] = None
    ) -> None:
        now = datetime.now(timezone.utc)
        update: Dict[str, Any] = {"state": state, "updated_at": now}
        if last_node:
            update["last_node"] = last_node
        stmt = (
            insert(WorkflowRun)
            .values(
                run_id=run_id,
                status=RunStatus.RUNNING.value,
                last_node=last_node,
                state=state,
                updated_at=now,
            )
            .on_conflict_do_update(index_elements=[WorkflowRun.run_id], set_=update)
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def load_checkpoint(self, run_id: str) -> Optional[Dict[str, Any]]:
        record = await self.get_record(run_id)
        return record.state if record else None

    async def set_status(
        self, run_id: str, status: RunStatus, error: Optional[str] = None
    ) -> None:
        now = datetime.now(timezone.utc)
        stmt = (
            insert(WorkflowRun)
            .values(run_id=run_id, status=status.value, state={}, error=error, updated_at=now)
            .on_conflict_do_update(
                index_elements=[WorkflowRun.run_id],
                set_={"status": status.value, "error": error, "updated_at": now},
            )
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def get_record(self, run_id: str) -> Optional[RunRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(WorkflowRun).where(WorkflowRun.run_id == run_id)
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return RunRecord(
            run_id=row.run_id,
            status=RunStatus(row.status),
            last_node=row.last_node,
            state=row.state or {},
            error=row.error,
            updated_at=row.updated_at,
        )
