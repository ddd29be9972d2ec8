"""A client for interacting with the JIRA API."""

from typing import Any, Optional

import httpx

from scrum_agent.core.exceptions import JiraApiError
from scrum_agent.core.logging import get_logger

logger = get_logger(__name__)


class JiraClient:
    """A reusable utility class for interacting with the JIRA API."""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth = (email, api_token)
        self.timeout = timeout
        self._transport = transport

    def browse_url(self, issue_key: str) -> str:
        return f"{self.base_url}/browse/{issue_key}"

    async def request(
        self, method: str, path: str, body: Optional[dict[str, Any]] = None
    ) -> Optional[Any]:
        """Send a request to the JIRA REST API.

        Args:
            method (str): HTTP method.
            path (str): Path below the base URL, e.g. ``/rest/api/3/issue``.
            body (dict, optional): JSON body.

        Returns:
            The decoded JSON body, or None for 204 No Content.

        Raises:
            JiraApiError: JIRA answered with a status of 400 or above.
        """
        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method,
                url,
                auth=self.auth,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                json=body,
            )

        if response.status_code >= 400:
            logger.error("Jira API error: %s %s", response.status_code, response.text)
            raise JiraApiError(
                f"Jira API returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get_issue(
        self, issue_key: str, fields: Optional[str] = None
    ) -> dict[str, Any]:
        """Fetch a JIRA issue by its key.

        Args:
            issue_key (str): The key of the JIRA issue to fetch.
            fields (str, optional): Comma separated field names to return.

        Returns:
            dict[str, Any]: The JIRA issue data.
        """
        path = f"/rest/api/3/issue/{issue_key}"
        if fields:
            path = f"{path}?fields={fields}"
        return await self.request("GET", path) or {}
