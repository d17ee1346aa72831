from __future__ import annotations

import logging
from collections.abc import Iterable

import requests

from harv.core.config import JiraConfig
from harv.core.errors import HarvError, JiraApiError, TransportError
from harv.core.models import Ticket

logger = logging.getLogger(__name__)

TIMEOUT_S = 30


class JiraClient:
    def __init__(self, config: JiraConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.access_token}",
                "Content-Type": "application/json",
            }
        )

    def get_issue(self, key: str) -> Ticket:
        url = f"{self.base_url}/rest/api/3/issue/{key}"
        logger.debug("GET %s", url)
        try:
            resp = self.session.get(url, timeout=TIMEOUT_S)
        except requests.RequestException as e:
            raise TransportError(f"Jira request failed: {e}") from e

        code = resp.status_code
        if code == 404:
            raise JiraApiError(
                f"Ticket {key} not found. Verify the ticket key is correct.", status_code=code
            )
        if code == 401:
            raise JiraApiError(
                "Authentication failed. Check your Jira access token.", status_code=code
            )
        if code == 403:
            raise JiraApiError(
                f"Access denied to ticket {key}. Check your permissions.", status_code=code
            )
        if code >= 300:
            raise JiraApiError(
                f"API request failed with status {code}: {resp.text}", status_code=code
            )

        try:
            data = resp.json()
            fields = data["fields"]
            status = fields.get("status") or {}
            ticket = Ticket(
                key=str(data["key"]),
                summary=str(fields["summary"]),
                status=status.get("name") if isinstance(status, dict) else None,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise JiraApiError(f"Failed to parse issue response for {key}: {e}") from e

        logger.debug("retrieved Jira issue: %s - %s", ticket.key, ticket.summary)
        return ticket

    def get_issues(self, keys: Iterable[str]) -> list[Ticket]:
        """Fetch each ticket; failures become placeholder tickets instead of raising."""
        tickets: list[Ticket] = []
        for key in keys:
            try:
                tickets.append(self.get_issue(key))
            except HarvError as e:
                logger.warning("failed to fetch Jira ticket %s: %s", key, e)
                tickets.append(Ticket(key=key, summary=f"(Failed to fetch: {e})", status=None))
        return tickets

    def ticket_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"
