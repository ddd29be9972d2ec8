"""
Workflow fault taxonomy.

Only BudgetExceeded, RecursionLimitExceeded and (after retries) ExternalCallFault
end a run abnormally. ValidationFault and CommitFault are caught at the commit
boundary and recorded in the state instead of propagating.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for every fault raised by the workflow engine."""

    error_code: str = "WORKFLOW_ERROR"


class BudgetExceeded(WorkflowError):
    """Raised before a model call when today's spend is at or above the ceiling."""

    error_code = "BUDGET_EXCEEDED"


class RecursionLimitExceeded(WorkflowError):
    """Raised by the orchestrator when a run hits its step ceiling."""

    error_code = "RECURSION_LIMIT"

    def __init__(self, limit: int, run_id: Optional[str] = None):
        self.limit = limit
        self.run_id = run_id
        where = f" in run {run_id}" if run_id else ""
        super().__init__(f"Step ceiling of {limit} node executions reached{where}")


class ExternalCallFault(WorkflowError):
    """A model or embedding call failed after exhausting its retries."""

    error_code = "EXTERNAL_CALL_FAILED"

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class ValidationFault(WorkflowError):
    """The draft does not satisfy the canonical-draft schema."""

    error_code = "DRAFT_INVALID"


class CommitFault(WorkflowError):
    """The ticket tracker rejected or failed to process a commit."""

    error_code = "COMMIT_FAILED"


class JiraApiError(CommitFault):
    """Jira returned an error status."""

    error_code = "JIRA_API_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RunNotFound(WorkflowError):
    """No checkpoint exists for the requested run id."""

    error_code = "RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Run {run_id} not found")


class RunCancelled(WorkflowError):
    """Raised between node boundaries once a run has been cancelled."""

    error_code = "RUN_CANCELLED"
