"""
Jira API Client - Low-level HTTP client for the Jira REST API (v2).

Implements the TicketSystemClientPort the sync engine consumes. Only the
read side is covered: fetch issue, fetch issue list, and the authorization
redirect for operators.

Jira REST API documentation:
https://developer.atlassian.com/server/jira/platform/rest-apis/
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from ttsync.core.domain.entities import TicketSystem
from ttsync.core.exceptions import ClassifiedError, ErrorKind
from ttsync.core.ports.config_provider import HttpConfig
from ttsync.core.ports.ticket_system import TicketSystemClientPort


RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


def calculate_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    backoff_factor: float,
    jitter: float,
    retry_after: float | None = None,
) -> float:
    """Exponential backoff with jitter, honouring a server Retry-After."""
    if retry_after is not None:
        return min(retry_after, max_delay)
    delay = min(initial_delay * (backoff_factor**attempt), max_delay)
    return delay + delay * jitter * random.random()


def get_retry_after(response: requests.Response) -> float | None:
    """Parse a Retry-After header given in seconds."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class JiraApiClient(TicketSystemClientPort):
    """
    Jira REST client authenticated with a per-call bearer token.

    The token is passed to each call rather than stored, so one client can
    serve every user of a ticket system.

    Features:
    - Automatic retry with exponential backoff for transient failures
    - Timeout on every request
    - Connection pooling for performance
    """

    API_PATH = "/rest/api/2"

    # Default retry configuration
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_INITIAL_DELAY = 1.0
    DEFAULT_MAX_DELAY = 30.0
    DEFAULT_BACKOFF_FACTOR = 2.0
    DEFAULT_JITTER = 0.1

    # Connection pool settings
    DEFAULT_POOL_CONNECTIONS = 10
    DEFAULT_POOL_MAXSIZE = 10
    DEFAULT_TIMEOUT = 30.0

    EPIC_SEARCH_LIMIT = 100

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        jitter: float = DEFAULT_JITTER,
        authorize_url: str | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize the Jira client.

        Args:
            base_url: Jira instance URL (e.g., https://jira.example.com)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            initial_delay: Initial retry delay in seconds
            max_delay: Maximum retry delay in seconds
            backoff_factor: Multiplier for exponential backoff
            jitter: Random jitter factor (0.1 = 10%)
            authorize_url: Where operators re-authorize the application
            session: Pre-configured session (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}{self.API_PATH}"
        self.timeout = timeout
        self.logger = logging.getLogger("JiraApiClient")

        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

        self._authorize_url = authorize_url

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.DEFAULT_POOL_CONNECTIONS,
                pool_maxsize=self.DEFAULT_POOL_MAXSIZE,
            )
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        self._session = session

    @classmethod
    def from_ticket_system(
        cls, ticket_system: TicketSystem, http: HttpConfig | None = None
    ) -> JiraApiClient:
        """Build a client for a configured ticket system."""
        http = http or HttpConfig()
        return cls(
            base_url=ticket_system.url,
            timeout=http.timeout,
            max_retries=http.max_retries,
            authorize_url=ticket_system.oauth_authorize_url,
        )

    # -------------------------------------------------------------------------
    # Core Request Methods
    # -------------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        credential: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Make an authenticated request to the Jira API with retry.

        Args:
            method: HTTP method
            endpoint: API endpoint relative to /rest/api/2 (e.g., 'issue/OPS-1')
            credential: Bearer token
            **kwargs: Additional arguments for requests

        Returns:
            Decoded JSON object

        Raises:
            ClassifiedError: UNAUTHORIZED, NOT_FOUND or REMOTE_ERROR
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        headers = {"Authorization": f"Bearer {credential}"}
        kwargs.setdefault("timeout", self.timeout)

        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self._session.request(method, url, headers=headers, **kwargs)

                if response.status_code in RETRYABLE_STATUS_CODES:
                    if attempt < self.max_retries:
                        delay = self._delay(attempt, get_retry_after(response))
                        self.logger.warning(
                            f"Retryable error {response.status_code} on {method} {endpoint}, "
                            f"attempt {attempt + 1}/{self.max_retries + 1}, "
                            f"retrying in {delay:.2f}s"
                        )
                        time.sleep(delay)
                        continue

                    raise ClassifiedError.remote_error(
                        f"Jira server error {response.status_code} for {endpoint}",
                        status_code=response.status_code,
                    )

                return self._handle_response(response, endpoint)

            except requests.exceptions.ConnectionError as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._delay(attempt)
                    self.logger.warning(
                        f"Connection error on {method} {endpoint}, retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    continue
                raise ClassifiedError.remote_error(f"Connection failed: {e}", cause=e) from e

            except requests.exceptions.Timeout as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._delay(attempt)
                    self.logger.warning(f"Timeout on {method} {endpoint}, retrying in {delay:.2f}s")
                    time.sleep(delay)
                    continue
                raise ClassifiedError.remote_error(f"Request timed out: {e}", cause=e) from e

        raise ClassifiedError.remote_error(
            f"Request failed after {self.max_retries + 1} attempts", cause=last_exception
        )

    def get(self, endpoint: str, credential: str, **kwargs: Any) -> dict[str, Any]:
        """Perform a GET request."""
        return self.request("GET", endpoint, credential, **kwargs)

    def post(
        self,
        endpoint: str,
        credential: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Perform a POST request."""
        return self.request("POST", endpoint, credential, json=json, **kwargs)

    # -------------------------------------------------------------------------
    # Response Handling
    # -------------------------------------------------------------------------

    def _handle_response(self, response: requests.Response, endpoint: str) -> dict[str, Any]:
        """Handle API response and convert errors to classified failures."""
        if response.ok:
            if not response.text:
                return {}
            try:
                data = response.json()
            except ValueError as e:
                raise ClassifiedError.remote_error(
                    f"Invalid JSON from Jira for {endpoint}", cause=e
                ) from e
            if not isinstance(data, dict):
                raise ClassifiedError.remote_error(
                    f"Unexpected non-object response from Jira for {endpoint}"
                )
            return data

        status = response.status_code
        error_body = response.text[:500] if response.text else ""

        if status == 401:
            redirect_url = response.headers.get("Location") or self._authorize_url
            message = "401 - Unauthorized."
            if redirect_url:
                message += f" Please authorize: {redirect_url}"
            raise ClassifiedError.unauthorized(message, redirect_url=redirect_url)

        if status == 404:
            raise ClassifiedError.not_found(f"404 - Resource is not available: ({endpoint})")

        raise ClassifiedError.remote_error(
            f"Jira API error {status}: {error_body}", status_code=status
        )

    def _delay(self, attempt: int, retry_after: float | None = None) -> float:
        return calculate_delay(
            attempt,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
            jitter=self.jitter,
            retry_after=retry_after,
        )

    # -------------------------------------------------------------------------
    # TicketSystemClientPort Implementation
    # -------------------------------------------------------------------------

    def get_issue(self, issue_key: str, credential: str) -> dict[str, Any]:
        return self.get(f"issue/{issue_key}", credential)

    def search_issues(
        self,
        jql: str,
        credential: str,
        fields: list[str] | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        data = self.post(
            "search",
            credential,
            json={
                "jql": jql,
                "fields": fields or ["key"],
                "maxResults": limit,
            },
        )
        issues = data.get("issues", [])
        return [issue for issue in issues if isinstance(issue, dict)]

    def authorization_url(self) -> str | None:
        return self._authorize_url

    def fetch_subtickets(self, project_external_key: str, credential: str) -> list[str]:
        """
        Collect the keys below a main ticket.

        Includes direct subtasks and, for epics, every issue linked to the
        epic together with that issue's subtasks. A main ticket that does not
        exist has no subtickets.
        """
        if not project_external_key:
            return []

        try:
            issue = self.get_issue(project_external_key, credential)
        except ClassifiedError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                self.logger.info(f"Ticket {project_external_key} does not exist")
                return []
            raise

        fields = issue.get("fields")
        if not isinstance(fields, dict):
            return []

        subtickets = _subtask_keys(fields)

        issuetype = fields.get("issuetype")
        if isinstance(issuetype, dict) and str(issuetype.get("name", "")).lower() == "epic":
            children = self.search_issues(
                f'"Epic Link" = {project_external_key}',
                credential,
                fields=["key", "subtasks"],
                limit=self.EPIC_SEARCH_LIMIT,
            )
            for child in children:
                if child.get("key"):
                    subtickets.append(child["key"])
                child_fields = child.get("fields")
                if isinstance(child_fields, dict):
                    subtickets.extend(_subtask_keys(child_fields))

        self.logger.debug(f"{project_external_key}: {len(subtickets)} subtickets")
        return subtickets

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()


def _subtask_keys(fields: dict[str, Any]) -> list[str]:
    subtasks = fields.get("subtasks")
    if not isinstance(subtasks, list):
        return []
    return [
        subtask["key"] for subtask in subtasks if isinstance(subtask, dict) and subtask.get("key")
    ]
