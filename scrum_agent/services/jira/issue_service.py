"""
Jira issue service.

Creates issues from canonical drafts and updates them field by field.
Creation is idempotent: the sha256 of project, type, summary and description
is recorded in the sync log and a repeat submission returns the issue that
was already created instead of opening a duplicate.
"""

import asyncio
import hashlib
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from scrum_agent.core.logging import get_logger
from scrum_agent.db.models.workflow_run import JiraSyncLog
from scrum_agent.schemas.draft import CanonicalDraft
from scrum_agent.services.jira.adf import adf_to_text, markdown_to_adf
from scrum_agent.services.jira.jira_client import JiraClient

logger = get_logger(__name__)

DEFAULT_ISSUE_TYPE = "Task"


class CreatedIssue(BaseModel):
    key: str
    url: str


class UpdateOutcome(BaseModel):
    changed: bool


class SyncRecord(BaseModel):
    jira_key: Optional[str]
    action: str
    content_hash: Optional[str] = None
    request_payload: Optional[Dict[str, Any]] = None
    response_payload: Optional[Dict[str, Any]] = None


class TicketTracker(Protocol):
    """Tracker collaborator used by the commit node."""

    async def create_issue(self, draft: CanonicalDraft) -> CreatedIssue: ...

    async def update_issue(self, issue_key: str, draft: Dict[str, Any]) -> UpdateOutcome: ...


class SyncLogStore(Protocol):
    async def find_created(self, content_hash: str) -> Optional[str]: ...

    async def append(self, record: SyncRecord) -> None: ...


class InMemorySyncLogStore:
    def __init__(self):
        self.records: List[SyncRecord] = []
        self._lock = asyncio.Lock()

    async def find_created(self, content_hash: str) -> Optional[str]:
        for record in self.records:
            if record.action == "create" and record.content_hash == content_hash:
                return record.jira_key
        return None

    async def append(self, record: SyncRecord) -> None:
        async with self._lock:
            self.records.append(record)


class SqlSyncLogStore:
    """SyncLogStore backed by the jira_sync_log table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_created(self, content_hash: str) -> Optional[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(JiraSyncLog.jira_key)
                .where(
                    JiraSyncLog.content_hash == content_hash,
                    JiraSyncLog.action == "create",
                )
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def append(self, record: SyncRecord) -> None:
        async with self.session_factory() as session:
            session.add(JiraSyncLog(**record.model_dump()))
            await session.commit()


def draft_content_hash(
    project_key: str, issue_type: str, summary: str, description_md: Optional[str]
) -> str:
    digest_input = f"{project_key}:{issue_type}:{summary}:{description_md or ''}"
    return hashlib.sha256(digest_input.encode("utf-8")).hexdigest()


class JiraIssueService:
    """TicketTracker implementation talking to JIRA Cloud."""

    def __init__(
        self,
        client: JiraClient,
        sync_log: SyncLogStore,
        default_project_key: str = "PROJ",
    ):
        self.client = client
        self.sync_log = sync_log
        self.default_project_key = default_project_key
        # Serializes check-then-create so concurrent duplicates see each other.
        self._create_lock = asyncio.Lock()

    async def create_issue(self, draft: CanonicalDraft) -> CreatedIssue:
        project_key = draft.project_key or self.default_project_key
        issue_type = draft.issue_type or DEFAULT_ISSUE_TYPE
        content_hash = draft_content_hash(
            project_key, issue_type, draft.summary, draft.description_md
        )

        async with self._create_lock:
            existing_key = await self.sync_log.find_created(content_hash)
            if existing_key:
                logger.warning(
                    "Duplicate issue detected (hash=%s), returning existing %s",
                    content_hash[:8],
                    existing_key,
                )
                return CreatedIssue(
                    key=existing_key, url=self.client.browse_url(existing_key)
                )

            fields: Dict[str, Any] = {
                "project": {"key": project_key},
                "issuetype": {"name": issue_type},
                "summary": draft.summary,
                "description": markdown_to_adf(draft.description_md or ""),
            }
            if draft.priority:
                fields["priority"] = {"name": draft.priority}
            if draft.labels:
                fields["labels"] = draft.labels
            if draft.components:
                fields["components"] = [{"name": c} for c in draft.components]
            if draft.due_date:
                fields["duedate"] = draft.due_date
            payload = {"fields": fields}

            response = await self.client.request("POST", "/rest/api/3/issue", payload)
            jira_key = response["key"]

            await self.sync_log.append(
                SyncRecord(
                    jira_key=jira_key,
                    action="create",
                    content_hash=content_hash,
                    request_payload=payload,
                    response_payload=response,
                )
            )

        logger.info("Created Jira issue %s", jira_key)
        return CreatedIssue(key=jira_key, url=self.client.browse_url(jira_key))

    async def update_issue(self, issue_key: str, draft: Dict[str, Any]) -> UpdateOutcome:
        """Apply the fields of ``draft`` that differ from the current issue.

        No request is sent when nothing changed.
        """
        issue = await self.client.get_issue(
            issue_key, fields="summary,description,priority,labels,duedate"
        )
        diff = self._compute_diff(issue.get("fields") or {}, draft)

        if not diff:
            logger.info("No changes detected for %s, skipping update", issue_key)
            return UpdateOutcome(changed=False)

        payload = {"fields": diff}
        await self.client.request("PUT", f"/rest/api/3/issue/{issue_key}", payload)
        await self.sync_log.append(
            SyncRecord(jira_key=issue_key, action="update", request_payload=payload)
        )
        logger.info("Updated %s fields on %s", sorted(diff), issue_key)
        return UpdateOutcome(changed=True)

    @staticmethod
    def _compute_diff(current: Dict[str, Any], draft: Dict[str, Any]) -> Dict[str, Any]:
        diff: Dict[str, Any] = {}

        summary = draft.get("summary")
        if summary and summary != current.get("summary"):
            diff["summary"] = summary

        description_md = draft.get("description_md")
        if description_md:
            current_text = adf_to_text(current.get("description"))
            new_text = adf_to_text(markdown_to_adf(description_md))
            if new_text != current_text:
                diff["description"] = markdown_to_adf(description_md)

        priority = draft.get("priority")
        current_priority = (current.get("priority") or {}).get("name")
        if priority and priority != current_priority:
            diff["priority"] = {"name": priority}

        labels = draft.get("labels")
        if labels is not None:
            if sorted(labels) != sorted(current.get("labels") or []):
                diff["labels"] = labels

        due_date = draft.get("due_date")
        if due_date and due_date != current.get("duedate"):
            diff["duedate"] = due_date

        return diff
