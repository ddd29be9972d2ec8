import json
from contextlib import aclosing

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from scrum_agent.core.config import settings
from scrum_agent.core.exceptions import RunNotFound
from scrum_agent.core.logging import get_logger
from scrum_agent.core.valkey_pubsub import publish_approval
from scrum_agent.db.models.workflow_run import TERMINAL_STATUSES, RunStatus
from scrum_agent.dependencies.orchestrator import ApprovalStoreDep, OrchestratorDep
from scrum_agent.schemas.api import ApprovalRequest, RunPublic, RunStarted
from scrum_agent.services.workflow.orchestrator import WorkflowOrchestrator
from scrum_agent.services.workflow.schemas import WorkflowInput

logger = get_logger(__name__)

router = APIRouter()


async def _get_record(orchestrator: WorkflowOrchestrator, run_id: str):
    try:
        return await orchestrator.get_run(run_id)
    except RunNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


def _public(record) -> RunPublic:
    return RunPublic(
        run_id=record.run_id,
        status=record.status,
        last_node=record.last_node,
        error=record.error,
        state=record.state,
    )


@router.post("", response_model=RunStarted, status_code=202)
async def start_run(workflow_input: WorkflowInput, orchestrator: OrchestratorDep):
    """Start a run for a triggering event; it executes in the background."""
    run_id = await orchestrator.start_run(workflow_input)
    return RunStarted(run_id=run_id)


@router.get("/{run_id}", response_model=RunPublic)
async def get_run(run_id: str, orchestrator: OrchestratorDep):
    """Latest snapshot and status of a run."""
    return _public(await _get_record(orchestrator, run_id))


@router.post("/{run_id}/approval", response_model=RunPublic, status_code=202)
async def submit_approval(
    run_id: str,
    decision: ApprovalRequest,
    orchestrator: OrchestratorDep,
    approvals: ApprovalStoreDep,
):
    """
    Record a human decision and wake the run up.

    With Valkey configured the run id is published so a listening worker
    resumes it. Without Valkey, or with nobody listening, this process
    resumes it directly.
    """
    record = await _get_record(orchestrator, run_id)
    if record.status in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=409, detail=f"Run {run_id} is already {record.status.value}"
        )

    await approvals.record(
        run_id,
        decision.approved,
        approval_id=decision.approval_id,
        decided_by=decision.decided_by,
    )
    logger.info("Approval for run %s recorded: approved=%s", run_id, decision.approved)

    if not settings.VALKEY_URL or await publish_approval(run_id) == 0:
        await orchestrator.resume_in_background(run_id)
    return _public(record)


@router.post("/{run_id}/resume", response_model=RunPublic, status_code=202)
async def resume_run(
    run_id: str, orchestrator: OrchestratorDep, approvals: ApprovalStoreDep
):
    """Resume a run interrupted mid-flight or waiting on a recorded decision."""
    record = await _get_record(orchestrator, run_id)
    if record.status in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=409, detail=f"Run {run_id} is already {record.status.value}"
        )
    if (
        record.status == RunStatus.AWAITING_APPROVAL
        and await approvals.get_decision(run_id) is None
    ):
        raise HTTPException(
            status_code=409, detail=f"Run {run_id} has no approval decision yet"
        )

    await orchestrator.resume_in_background(run_id)
    return _public(record)


@router.post("/{run_id}/cancel", response_model=RunPublic)
async def cancel_run(run_id: str, orchestrator: OrchestratorDep):
    """Stop scheduling further nodes for a run."""
    await _get_record(orchestrator, run_id)
    await orchestrator.cancel_run(run_id)
    return _public(await orchestrator.get_run(run_id))


@router.get("/{run_id}/stream")
async def stream_run(run_id: str, orchestrator: OrchestratorDep):
    """SSE stream of run snapshots; closing it before the run ends cancels the run."""
    await _get_record(orchestrator, run_id)

    async def event_generator():
        updates = orchestrator.stream_run(run_id, cancel_on_close=True)
        async with aclosing(updates):
            async for payload in updates:
                yield {"event": "run-update", "data": json.dumps(payload, default=str)}

    return EventSourceResponse(event_generator())
