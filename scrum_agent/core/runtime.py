"""
Application runtime wiring.

Builds the orchestrator and the services it depends on from settings.
"""

from typing import Optional

from scrum_agent.core.broadcast import get_broadcast_service
from scrum_agent.core.config import Settings, WorkflowConfig, settings
from scrum_agent.core.llm import build_chat_model, build_embeddings
from scrum_agent.db.session import AsyncSessionLocal
from scrum_agent.services.budget.ledger import BudgetLedger, SqlUsageStore
from scrum_agent.services.jira.issue_service import JiraIssueService, SqlSyncLogStore
from scrum_agent.services.jira.jira_client import JiraClient
from scrum_agent.services.llm.client import LangChainModelClient
from scrum_agent.services.llm.invoker import LLMService
from scrum_agent.services.retrieval.retriever import ContextRetriever
from scrum_agent.services.retrieval.store import SqlContentStore
from scrum_agent.services.workflow.approvals import SqlApprovalStore
from scrum_agent.services.workflow.orchestrator import WorkflowOrchestrator
from scrum_agent.services.workflow.run_store import SqlCheckpointStore


def build_tracker(s: Settings = settings) -> Optional[JiraIssueService]:
    """Jira tracker, or None when credentials are missing."""
    if not s.jira_configured:
        return None
    client = JiraClient(
        base_url=s.JIRA_BASE_URL,
        email=s.JIRA_EMAIL,
        api_token=s.JIRA_API_TOKEN,
        timeout=s.JIRA_TIMEOUT_SECONDS,
    )
    return JiraIssueService(
        client, SqlSyncLogStore(AsyncSessionLocal), default_project_key=s.JIRA_PROJECT_KEY
    )


def build_orchestrator(s: Settings = settings) -> WorkflowOrchestrator:
    """
    Build the orchestrator with database-backed stores.
    """
    config = WorkflowConfig.from_settings(s)
    ledger = BudgetLedger(SqlUsageStore(AsyncSessionLocal), config.daily_budget_usd)
    llm = LLMService(
        LangChainModelClient(build_chat_model(s), build_embeddings(s), s.OPENAI_MODEL),
        ledger,
        timeout_seconds=config.llm_timeout_seconds,
        max_retries=config.llm_max_retries,
        retry_base_delay=config.llm_retry_base_delay_seconds,
    )
    retriever = ContextRetriever(
        llm,
        SqlContentStore(AsyncSessionLocal),
        decay_lambda=s.RECENCY_DECAY_LAMBDA,
        default_confidence=s.DEFAULT_SOURCE_CONFIDENCE,
    )
    return WorkflowOrchestrator(
        llm=llm,
        ledger=ledger,
        store=SqlCheckpointStore(AsyncSessionLocal),
        config=config,
        retriever=retriever,
        tracker=build_tracker(s),
        approvals=SqlApprovalStore(AsyncSessionLocal),
        broadcaster=get_broadcast_service(),
    )
