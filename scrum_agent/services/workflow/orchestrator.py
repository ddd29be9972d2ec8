"""
Workflow orchestrator.

Runs the decision-to-ticket graph for one triggering event at a time per
run, persisting a snapshot after every step so a run can be resumed, and
projecting the graph outcome onto a run status:

    RUNNING -> AWAITING_APPROVAL -> COMPLETED | REJECTED
            -> FAILED | CANCELLED

The approval step never blocks. A run without a decision is left
AWAITING_APPROVAL and ``resume_run`` is called once a decision lands.
"""

import asyncio
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Union

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.checkpoint.memory import InMemorySaver
from langgraph.checkpoint.serde.jsonplus import JsonPlusSerializer
from langgraph.errors import GraphRecursionError

from scrum_agent.core.broadcast import RunStatusBroadcaster
from scrum_agent.core.config import WorkflowConfig
from scrum_agent.core.exceptions import (
    RecursionLimitExceeded,
    RunCancelled,
    RunNotFound,
)
from scrum_agent.core.logging import bind_run_id, get_logger
from scrum_agent.db.models.workflow_run import TERMINAL_STATUSES, RunStatus
from scrum_agent.services.budget.ledger import BudgetLedger
from scrum_agent.services.jira.issue_service import TicketTracker
from scrum_agent.services.llm.invoker import LLMService
from scrum_agent.services.retrieval.retriever import ContextRetriever
from scrum_agent.services.workflow import schemas as workflow_schemas
from scrum_agent.services.workflow import state as workflow_state
from scrum_agent.services.workflow.approvals import ApprovalSource
from scrum_agent.services.workflow.context import Ctx
from scrum_agent.services.workflow.graph import INTAKE, REVIEWERS, NodeName, build_workflow_graph
from scrum_agent.services.workflow.run_store import CheckpointStore, RunRecord
from scrum_agent.services.workflow.schemas import Control, WorkflowInput
from scrum_agent.services.workflow.state import WorkflowState

logger = get_logger(__name__)

# Where to re-enter the graph after a restart, keyed by the last completed
# node. Parallel steps are re-entered from the node that scheduled them.
_RESUME_FROM: Dict[str, Optional[str]] = {
    **{n.value: None for n in INTAKE},
    **{n.value: NodeName.CONTEXT_GATE.value for n in REVIEWERS},
}

# Headroom over the step ceiling; the node guard always trips first.
_RECURSION_HEADROOM = 5


def checkpoint_serializer() -> JsonPlusSerializer:
    """Checkpoint serializer allowed to restore the types held on the state."""
    allowed = [
        (module.__name__, name)
        for module in (workflow_schemas, workflow_state)
        for name, obj in vars(module).items()
        if isinstance(obj, type) and obj.__module__ == module.__name__
    ]
    return JsonPlusSerializer(allowed_msgpack_modules=allowed)


def status_of(state: WorkflowState) -> RunStatus:
    """Run status implied by a state the graph stopped on."""
    if state.commit_result is not None:
        return RunStatus.COMPLETED
    if state.approved is False:
        return RunStatus.REJECTED
    return RunStatus.AWAITING_APPROVAL


def is_stream_finished(state: WorkflowState, status: RunStatus) -> bool:
    return (
        state.commit_result is not None
        or state.control.abort_reason is not None
        or status != RunStatus.RUNNING
    )


class WorkflowOrchestrator:
    """Starts, resumes, cancels and observes workflow runs."""

    def __init__(
        self,
        llm: LLMService,
        ledger: BudgetLedger,
        store: CheckpointStore,
        config: Optional[WorkflowConfig] = None,
        retriever: Optional[ContextRetriever] = None,
        tracker: Optional[TicketTracker] = None,
        approvals: Optional[ApprovalSource] = None,
        broadcaster: Optional[RunStatusBroadcaster] = None,
        checkpointer: Optional[BaseCheckpointSaver] = None,
    ):
        self.config = config or WorkflowConfig()
        self.store = store
        self.broadcaster = broadcaster or RunStatusBroadcaster()
        self.graph = build_workflow_graph(
            checkpointer or InMemorySaver(serde=checkpoint_serializer())
        )
        self._cancelled: Set[str] = set()
        self._tasks: Dict[str, asyncio.Task] = {}
        self.ctx = Ctx(
            llm=llm,
            ledger=ledger,
            config=self.config,
            retriever=retriever,
            tracker=tracker,
            approvals=approvals,
            is_cancelled=self.is_cancelled,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------
    def new_state(
        self, workflow_input: Union[WorkflowInput, Dict[str, Any]], run_id: Optional[str] = None
    ) -> WorkflowState:
        return WorkflowState(
            run_id=run_id or str(uuid.uuid4()),
            input=WorkflowInput.model_validate(workflow_input),
            control=Control(max_iteration=self.config.max_iterations),
        )

    async def start_run(self, workflow_input: Union[WorkflowInput, Dict[str, Any]]) -> str:
        """Persist a new run and execute it in the background."""
        state = self.new_state(workflow_input)
        await self.store.save_checkpoint(state.run_id, state.model_dump(mode="json"))
        await self.store.set_status(state.run_id, RunStatus.RUNNING)
        self._spawn(state.run_id, self.execute(state))
        logger.info("Started run %s (%s)", state.run_id, state.input.kind.value)
        return state.run_id

    async def execute(self, initial_state: WorkflowState) -> WorkflowState:
        """
        Run the graph from the start until it finishes or suspends.

        Raises:
            RecursionLimitExceeded: The step ceiling was reached.
            RunCancelled: The run was cancelled between two nodes.
            Exception: Any other node failure, after marking the run FAILED.
        """
        graph_input = initial_state.model_dump()
        return await self._drive(initial_state.run_id, graph_input, thread_id=initial_state.run_id)

    async def get_run(self, run_id: str) -> RunRecord:
        record = await self.store.get_record(run_id)
        if record is None:
            raise RunNotFound(run_id)
        return record

    async def get_run_state(self, run_id: str) -> WorkflowState:
        snapshot = await self.store.load_checkpoint(run_id)
        if snapshot is None:
            raise RunNotFound(run_id)
        return WorkflowState.model_validate(snapshot)

    async def resume_run(self, run_id: str) -> WorkflowState:
        """
        Continue a suspended or interrupted run from its last snapshot.

        Finished runs are returned unchanged. A run waiting on approval
        re-enters at the approval step; a run interrupted mid-flight
        re-enters after its last completed node.
        """
        record = await self.get_run(run_id)
        state = WorkflowState.model_validate(record.state)

        if record.status in TERMINAL_STATUSES:
            logger.info("Run %s already %s, nothing to resume", run_id, record.status.value)
            return state
        task = self._tasks.get(run_id)
        if task is not None and not task.done() and task is not asyncio.current_task():
            logger.info("Run %s is executing, not resuming", run_id)
            return state

        if record.status == RunStatus.AWAITING_APPROVAL:
            as_node: Optional[str] = NodeName.DRAFT.value
        else:
            as_node = _RESUME_FROM.get(record.last_node or "", record.last_node)

        await self.store.set_status(run_id, RunStatus.RUNNING)
        thread_id = f"{run_id}:resume:{uuid.uuid4().hex[:8]}"
        logger.info("Resuming run %s after %s", run_id, as_node or "start")
        return await self._drive(
            run_id, state.model_dump(), thread_id=thread_id, as_node=as_node
        )

    async def resume_in_background(self, run_id: str) -> None:
        """
        Schedule ``resume_run``; raises RunNotFound for an unknown run.

        While the run is still executing the resume waits for that execution
        to stop. A decision it already picked up leaves the run finished and
        the resume a no-op.
        """
        await self.get_run(run_id)
        running = self._tasks.get(run_id)
        if running is not None and not running.done():
            logger.info("Run %s is executing, resuming once it stops", run_id)
            self._spawn(run_id, self._resume_after(running, run_id))
            return
        self._spawn(run_id, self.resume_run(run_id))

    async def _resume_after(self, running: asyncio.Task, run_id: str) -> WorkflowState:
        await asyncio.gather(running, return_exceptions=True)
        return await self.resume_run(run_id)

    async def cancel_run(self, run_id: str) -> None:
        """Stop scheduling nodes for ``run_id``; an in-flight node finishes."""
        record = await self.get_run(run_id)
        if record.status in TERMINAL_STATUSES:
            return
        self._cancelled.add(run_id)
        if record.status == RunStatus.AWAITING_APPROVAL:
            await self._set_status(run_id, RunStatus.CANCELLED)
        logger.info("Cancellation requested for run %s", run_id)

    def is_cancelled(self, run_id: str) -> bool:
        return run_id in self._cancelled

    async def wait_for(self, run_id: str) -> None:
        """Wait for the background execution of ``run_id``, if any."""
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def stream_run(
        self, run_id: str, cancel_on_close: bool = False
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield a status payload after every step of ``run_id``.

        Ends once a commit result or abort reason is recorded or the run
        leaves RUNNING. With ``cancel_on_close`` a consumer that stops
        listening before that cancels the run.
        """
        record = await self.get_run(run_id)
        queue = self.broadcaster.connect(run_id, initial=self._payload(record))
        finished = False
        try:
            while True:
                payload = await queue.get()
                yield payload
                state = WorkflowState.model_validate(payload["state"])
                if is_stream_finished(state, RunStatus(payload["status"])):
                    finished = True
                    return
        finally:
            self.broadcaster.disconnect(run_id, queue)
            if cancel_on_close and not finished:
                logger.info("Observer of run %s went away, cancelling", run_id)
                await self.cancel_run(run_id)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------
    async def _drive(
        self,
        run_id: str,
        graph_input: Optional[Dict[str, Any]],
        thread_id: str,
        as_node: Optional[str] = None,
    ) -> WorkflowState:
        config = {
            "configurable": {"thread_id": thread_id},
            "recursion_limit": self.config.max_iterations + _RECURSION_HEADROOM,
        }

        with bind_run_id(run_id):
            if as_node is not None:
                await self.graph.aupdate_state(config, graph_input, as_node=as_node)
                graph_input = None

            completed: List[str] = []
            final: Optional[WorkflowState] = None
            try:
                async for mode, chunk in self.graph.astream(
                    graph_input,
                    config,
                    context=self.ctx,
                    stream_mode=["updates", "values"],
                ):
                    if mode == "updates":
                        completed.extend(k for k in chunk if not k.startswith("__"))
                        continue
                    final = WorkflowState.model_validate(chunk)
                    await self._checkpoint(run_id, final, completed[-1] if completed else None)
            except GraphRecursionError as e:
                await self._fail(run_id, RunStatus.FAILED, str(e))
                raise RecursionLimitExceeded(self.config.max_iterations, run_id) from e
            except RunCancelled:
                await self._fail(run_id, RunStatus.CANCELLED, "cancelled")
                raise
            except Exception as e:
                # Best-effort: mark the run FAILED before re-raising
                await self._fail(run_id, RunStatus.FAILED, f"{type(e).__name__}: {e}")
                raise

            if final is None:
                final = await self.get_run_state(run_id)
            status = status_of(final)
            await self._set_status(run_id, status)
            logger.info(
                "Run %s stopped at %s with status %s",
                run_id,
                completed[-1] if completed else as_node,
                status.value,
            )
            return final

    async def _checkpoint(self, run_id: str, state: WorkflowState, last_node: Optional[str]) -> None:
        await self.store.save_checkpoint(run_id, state.model_dump(mode="json"), last_node)
        self.broadcaster.publish(
            run_id,
            {
                "run_id": run_id,
                "status": RunStatus.RUNNING.value,
                "last_node": last_node,
                "state": state.model_dump(mode="json"),
            },
        )

    async def _set_status(
        self, run_id: str, status: RunStatus, error: Optional[str] = None
    ) -> None:
        await self.store.set_status(run_id, status, error)
        record = await self.store.get_record(run_id)
        if record is not None:
            self.broadcaster.publish(run_id, self._payload(record))
        if status in TERMINAL_STATUSES:
            self._cancelled.discard(run_id)
            self.broadcaster.forget(run_id)

    async def _fail(self, run_id: str, status: RunStatus, error: str) -> None:
        try:
            await self._set_status(run_id, status, error)
            logger.warning("Marked run %s as %s: %s", run_id, status.value, error)
        except Exception as e:
            # Best-effort - don't mask the original failure
            logger.error("Failed to mark run %s as %s: %s", run_id, status.value, e)

    def _spawn(self, run_id: str, coro) -> None:
        task = asyncio.create_task(coro, name=f"run:{run_id}")
        self._tasks[run_id] = task
        task.add_done_callback(lambda t: self._on_done(run_id, t))

    def _on_done(self, run_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(run_id) is task:
            self._tasks.pop(run_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, RunCancelled):
            logger.info("Run %s cancelled", run_id)
        elif exc is not None:
            logger.error("Run %s failed: %s", run_id, exc, exc_info=exc)

    @staticmethod
    def _payload(record: RunRecord) -> Dict[str, Any]:
        return {
            "run_id": record.run_id,
            "status": record.status.value,
            "last_node": record.last_node,
            "error": record.error,
            "state": record.state,
        }
