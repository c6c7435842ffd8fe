"""
Ticket System Port - Abstract interface for external issue trackers.

Implementations:
- JiraApiClient: Atlassian Jira REST API v2

Every failure raised through this port is a ClassifiedError with kind
UNAUTHORIZED (optionally carrying a redirect url), NOT_FOUND or REMOTE_ERROR.
Timeouts and transport failures are REMOTE_ERROR.
"""

from abc import ABC, abstractmethod
from typing import Any


class TicketSystemClientPort(ABC):
    """Contract the sync engine consumes."""

    @abstractmethod
    def fetch_subtickets(self, project_external_key: str, credential: str) -> list[str]:
        """
        Fetch the ticket keys below a main ticket.

        Args:
            project_external_key: Main ticket key (e.g. "OPS-1").
            credential: Decrypted access token. Must never be logged.

        Returns:
            Ordered list of ticket keys. Empty if the ticket has none.
        """
        ...

    @abstractmethod
    def get_issue(self, issue_key: str, credential: str) -> dict[str, Any]:
        """Fetch a single issue."""
        ...

    @abstractmethod
    def search_issues(
        self,
        jql: str,
        credential: str,
        fields: list[str] | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Fetch a list of issues matching a query."""
        ...

    @abstractmethod
    def authorization_url(self) -> str | None:
        """Where an operator re-authorizes the application, if known."""
        ...
