"""Tests for the approval channel, with the Valkey client mocked out."""

from unittest.mock import AsyncMock

import pytest

from scrum_agent.core import valkey_pubsub
from scrum_agent.core.exceptions import RunNotFound


def test_valkey_schemes_map_to_redis():
    assert valkey_pubsub.to_redis_url("valkey://cache:6379/0") == "redis://cache:6379/0"
    assert valkey_pubsub.to_redis_url("valkeys://cache:6380") == "rediss://cache:6380"
    assert valkey_pubsub.to_redis_url("redis://cache") == "redis://cache"


@pytest.mark.asyncio
async def test_publish_reports_receivers(monkeypatch):
    client = AsyncMock()
    client.publish.return_value = 0
    monkeypatch.setattr(valkey_pubsub, "get_valkey_client", AsyncMock(return_value=client))

    receivers = await valkey_pubsub.publish_approval("run-1")

    assert receivers == 0
    client.publish.assert_awaited_once_with(valkey_pubsub.APPROVALS_CHANNEL, "run-1")


@pytest.mark.asyncio
async def test_listener_resumes_known_runs_and_skips_unknown(monkeypatch):
    async def announced():
        for run_id in ("run-1", "missing", "run-2"):
            yield run_id

    monkeypatch.setattr(valkey_pubsub, "listen_for_approvals", announced)

    async def resume(run_id):
        if run_id == "missing":
            raise RunNotFound(run_id)

    orchestrator = AsyncMock()
    orchestrator.resume_in_background.side_effect = resume

    await valkey_pubsub.approval_listener(orchestrator)

    resumed = [c.args[0] for c in orchestrator.resume_in_background.await_args_list]
    assert resumed == ["run-1", "missing", "run-2"]
