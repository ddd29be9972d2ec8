"""
LangGraph Runtime Context for the decision-to-ticket workflow.

Defines the context schema for dependency injection into LangGraph nodes.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from scrum_agent.core.config import WorkflowConfig
from scrum_agent.services.budget.ledger import BudgetLedger
from scrum_agent.services.jira.issue_service import TicketTracker
from scrum_agent.services.llm.invoker import LLMService
from scrum_agent.services.retrieval.retriever import ContextRetriever
from scrum_agent.services.workflow.approvals import ApprovalSource


def _never_cancelled(_run_id: str) -> bool:
    return False


@dataclass
class Ctx:
    """Runtime context for LangGraph nodes.

    Attributes:
        llm: Budget-aware model invocation wrapper.
        ledger: Shared budget ledger (read by the context gate).
        config: Run-time limits.
        retriever: Context retriever; None disables grounding.
        tracker: Ticket tracker; None means commits record "Jira not configured".
        approvals: Source of human approval decisions.
        is_cancelled: Checked between node boundaries.
    """

    llm: LLMService
    ledger: BudgetLedger
    config: WorkflowConfig = field(default_factory=WorkflowConfig)
    retriever: Optional[ContextRetriever] = None
    tracker: Optional[TicketTracker] = None
    approvals: Optional[ApprovalSource] = None
    is_cancelled: Callable[[str], bool] = _never_cancelled
