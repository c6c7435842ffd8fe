"""
Shared pytest fixtures for the ttsync test suite.

Fixture Categories:
- Security: TokenCipher
- Domain: ticket system, project lead, project factory
- Cache: MemoryCache with a controllable clock, ResultCache
- Ticket system: in-process fake client
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from ttsync.adapters.cache import MemoryCache, ResultCache
from ttsync.adapters.store import InMemoryEntityStore
from ttsync.core.domain import Project, TicketSystem, User
from ttsync.core.exceptions import ClassifiedError
from ttsync.core.ports.ticket_system import TicketSystemClientPort
from ttsync.core.security import TokenCipher


SECRET = "test-app-secret"
LEAD_TOKEN = "lead-oauth-token"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTicketClient(TicketSystemClientPort):
    """
    Ticket system double.

    ``subtickets`` maps a main ticket to its keys; ``errors`` maps a main
    ticket to the exception fetch_subtickets raises for it.
    """

    def __init__(self, authorize_url: str | None = None):
        self.subtickets: dict[str, list[str]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.authorize_url = authorize_url

    def fetch_subtickets(self, project_external_key: str, credential: str) -> list[str]:
        self.calls.append((project_external_key, credential))
        if project_external_key in self.errors:
            raise self.errors[project_external_key]
        return list(self.subtickets.get(project_external_key, []))

    def get_issue(self, issue_key: str, credential: str) -> dict:
        raise ClassifiedError.not_found(issue_key)

    def search_issues(self, jql, credential, fields=None, limit=50) -> list[dict]:
        return []

    def authorization_url(self) -> str | None:
        return self.authorize_url


# =============================================================================
# Security
# =============================================================================


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher(SECRET)


# =============================================================================
# Domain
# =============================================================================


@pytest.fixture
def ticket_system() -> TicketSystem:
    return TicketSystem(
        id=1,
        name="Company Jira",
        url="https://jira.example.com",
        oauth_authorize_url="https://jira.example.com/plugins/servlet/oauth/authorize",
    )


@pytest.fixture
def lead_token() -> str:
    """Plaintext of the project lead's stored token."""
    return LEAD_TOKEN


@pytest.fixture
def lead(cipher: TokenCipher, ticket_system: TicketSystem) -> User:
    return User(id=7, username="lead", tokens={ticket_system.id: cipher.encrypt(LEAD_TOKEN)})


@pytest.fixture
def make_project(ticket_system: TicketSystem, lead: User) -> Callable[..., Project]:
    """Factory for projects linked to the Jira fixture and led by ``lead``."""

    def factory(project_id: int = 10, name: str = "Operations", **kwargs) -> Project:
        kwargs.setdefault("ticket_system", ticket_system)
        kwargs.setdefault("jira_ticket", "OPS-1")
        kwargs.setdefault("project_lead", lead)
        return Project(id=project_id, name=name, **kwargs)

    return factory


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


# =============================================================================
# Cache
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock: FakeClock) -> MemoryCache:
    return MemoryCache(max_size=100, default_ttl=300.0, clock=clock)


@pytest.fixture
def result_cache(memory_cache: MemoryCache) -> ResultCache:
    return ResultCache(memory_cache)


# =============================================================================
# Ticket system
# =============================================================================


@pytest.fixture
def fake_client(ticket_system: TicketSystem) -> FakeTicketClient:
    return FakeTicketClient(authorize_url=ticket_system.oauth_authorize_url)
