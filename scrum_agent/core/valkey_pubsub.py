"""
Approval channel over Valkey pub/sub (redis-py client, Valkey is
Redis-compatible).

An approval can land on any worker while the run lives in another one's
memory. The receiving worker records the decision, then publishes the run id
on APPROVALS_CHANNEL; every worker subscribes and resumes the run from its
stored checkpoint.
"""

from typing import AsyncIterator, Optional

import redis.asyncio as redis

from scrum_agent.core.config import settings
from scrum_agent.core.exceptions import RunNotFound
from scrum_agent.core.logging import get_logger

logger = get_logger(__name__)

APPROVALS_CHANNEL = "run_approvals"

# Global client instance (lazily initialized)
_redis_client: Optional[redis.Redis] = None


def to_redis_url(url: str) -> str:
    """valkey:// -> redis:// and valkeys:// -> rediss:// for redis-py."""
    for scheme, replacement in (("valkeys://", "rediss://"), ("valkey://", "redis://")):
        if url.startswith(scheme):
            return replacement + url[len(scheme) :]
    return url


async def get_valkey_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            to_redis_url(settings.VALKEY_URL or ""), decode_responses=True
        )
        logger.info("Valkey client initialized.")
    return _redis_client


async def close_valkey() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Valkey client closed.")


async def publish_approval(run_id: str) -> int:
    """
    Announce a recorded decision for ``run_id``.

    Returns:
        The number of subscribed workers that received it. Zero means no
        listener is up and the caller must resume the run itself.
    """
    client = await get_valkey_client()
    receivers = await client.publish(APPROVALS_CHANNEL, run_id)
    if receivers == 0:
        logger.warning("No worker is listening for approvals of run %s", run_id)
    return receivers


async def listen_for_approvals() -> AsyncIterator[str]:
    """Yield run ids published on APPROVALS_CHANNEL until cancelled."""
    client = await get_valkey_client()
    pubsub = client.pubsub()
    await pubsub.subscribe(APPROVALS_CHANNEL)
    logger.info("Listening for approvals on %s", APPROVALS_CHANNEL)
    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            run_id = (message.get("data") or "").strip()
            if run_id:
                yield run_id
    finally:
        await pubsub.unsubscribe(APPROVALS_CHANNEL)
        await pubsub.aclose()
        logger.info("Stopped listening on %s", APPROVALS_CHANNEL)


async def approval_listener(orchestrator) -> None:
    """
    Resume every run whose approval is announced.

    Ids of runs this deployment never stored are logged and skipped.
    """
    async for run_id in listen_for_approvals():
        try:
            await orchestrator.resume_in_background(run_id)
        except RunNotFound:
            logger.warning("Approval announced for unknown run %s", run_id)
            continue
        logger.info("Approval received for run %s, resuming", run_id)
