"""Approval gate and tracker commit nodes."""

import asyncio

from langgraph.runtime import Runtime

from scrum_agent.core.exceptions import ValidationFault
from scrum_agent.core.logging import get_logger
from scrum_agent.schemas.draft import CommitResult, validate_draft
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.schemas import ApprovalRecord
from scrum_agent.services.workflow.state import WorkflowState

logger = get_logger(__name__)


async def approval(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """
    Pass through the human decision attached to the run.

    No model call. When nobody has decided yet the state is left untouched
    and the run suspends here; it is resumed once a decision lands.
    A malformed decision counts as a rejection.
    """
    source = runtime.context.approvals
    decision = await source.get_decision(state.run_id) if source else None
    if decision is None:
        logger.info("No approval decision yet, suspending run.")
        return {}

    raw = decision.get("approved") if isinstance(decision, dict) else None
    if not isinstance(raw, bool):
        logger.warning("Invalid approval decision %r, treating as rejected.", decision)
    approved = raw is True
    approval_id = decision.get("approval_id") if isinstance(decision, dict) else None

    logger.info("Approval decision: %s", "approved" if approved else "rejected")
    return {
        "approved": approved,
        "approval": ApprovalRecord(
            status="approved" if approved else "rejected",
            id=approval_id if isinstance(approval_id, str) else None,
        ),
    }


async def commit_to_jira(state: WorkflowState, runtime: Runtime[Ctx]) -> dict:
    """
    Validate the draft and create the ticket.

    Every failure is recorded as ``commit_result.error``; nothing is raised.
    Retried submissions are made safe by the tracker's content-hash dedup.
    """
    if state.commit_result is not None:
        logger.warning("Commit already recorded for this run, skipping.")
        return {}

    def record(result: CommitResult) -> dict:
        return {"commit_result": result.model_dump(exclude_none=True)}

    tracker = runtime.context.tracker
    if tracker is None:
        logger.warning("Jira not configured, skipping commit")
        return record(CommitResult(error="Jira not configured"))

    if not state.draft or state.approved is not True:
        reason = "No draft available" if not state.draft else "Draft not approved"
        logger.warning("Skipping Jira commit: %s", reason)
        return record(CommitResult(error=reason))

    try:
        draft = validate_draft(state.draft)
    except ValidationFault as e:
        logger.error("%s: %s", e.error_code, e)
        return record(CommitResult(error=f"{e.error_code}: {e}"))

    timeout = runtime.context.config.tracker_timeout_seconds
    try:
        async with asyncio.timeout(timeout):
            created = await tracker.create_issue(draft)
    except TimeoutError:
        logger.error("Jira commit timed out after %.1fs", timeout)
        return record(CommitResult(error=f"Tracker call timed out after {timeout}s"))
    except Exception as e:
        logger.error("Failed to create Jira issue: %s", e, exc_info=True)
        return record(CommitResult(error=str(e) or type(e).__name__))

    logger.info("Created Jira issue %s", created.key)
    return record(CommitResult(issue_key=created.key, url=created.url))
