"""
Broadcast Service - run status fan-out for SSE (per process)

NOTE: If running multiple workers (uvicorn --workers N), each worker
will have its own broadcaster and only sees the runs it executes.
"""

import asyncio
from typing import Any, Dict, Optional, Set

from scrum_agent.core.logging import get_logger

logger = get_logger(__name__)

# Global instance (Singleton per process)
_broadcaster: Optional["RunStatusBroadcaster"] = None


class RunStatusBroadcaster:
    """
    Holds the latest snapshot per run and pushes every new one to the
    in-memory queues of that run's subscribers.

    - Bounded queues; when a slow client falls behind the oldest snapshot
      is dropped, never the newest.
    - discard() instead of remove() to avoid KeyError on disconnect race.
    - Snapshot-on-connect so late subscribers start from the current state.
    """

    def __init__(self, queue_size: int = 16):
        self.queue_size = queue_size
        self.subscribers: Dict[str, Set[asyncio.Queue]] = {}
        self.latest_payload: Dict[str, Dict[str, Any]] = {}

    def connect(
        self, run_id: str, initial: Optional[Dict[str, Any]] = None
    ) -> asyncio.Queue:
        """
        Register a subscriber for ``run_id`` and send it the latest snapshot,
        or ``initial`` when nothing was published for the run in this process.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self.subscribers.setdefault(run_id, set()).add(queue)

        snapshot = self.latest_payload.get(run_id, initial)
        if snapshot is not None:
            self._put_latest(queue, snapshot)
        return queue

    def disconnect(self, run_id: str, queue: asyncio.Queue) -> None:
        queues = self.subscribers.get(run_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            self.subscribers.pop(run_id, None)

    def publish(self, run_id: str, payload: Dict[str, Any]) -> None:
        self.latest_payload[run_id] = payload
        current_subs = list(self.subscribers.get(run_id, ()))
        if current_subs:
            logger.debug("Broadcasting %s to %d clients.", run_id, len(current_subs))
        for q in current_subs:
            self._put_latest(q, payload)

    def forget(self, run_id: str) -> None:
        """Drop the cached snapshot of a finished run with no subscribers."""
        if not self.subscribers.get(run_id):
            self.latest_payload.pop(run_id, None)

    def _put_latest(self, queue: asyncio.Queue, payload: Dict[str, Any]) -> None:
        """
        Put payload into queue, dropping old data if queue is full.
        This prevents slow clients from causing OOM.
        """
        try:
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            # Drop the old item and put the new one
            try:
                _ = queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning("Dropped snapshot for a stalled subscriber.")


def get_broadcast_service() -> RunStatusBroadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = RunStatusBroadcaster()
    return _broadcaster
