"""
Subticket Sync Orchestrator - Refreshes each project's subticket list.

For every project linked to a ticket system, the project lead's stored token
is decrypted, the subtickets of each main ticket are fetched (through the
result cache) and the project's list is replaced and persisted.

Failures are classified per project and never stop the batch.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any

from ttsync.adapters.cache.result_cache import ResultCache
from ttsync.core.domain.entities import Project, TicketSystem, natural_sort_key
from ttsync.core.domain.enums import SyncState
from ttsync.core.exceptions import ClassifiedError, ErrorKind
from ttsync.core.ports.config_provider import SyncConfig
from ttsync.core.ports.entity_store import EntityStorePort
from ttsync.core.ports.ticket_system import TicketSystemClientPort
from ttsync.core.security.token_cipher import TokenCipher


ClientFactory = Callable[[TicketSystem], TicketSystemClientPort]

_STATE_BY_KIND = {
    ErrorKind.UNAUTHORIZED: SyncState.UNAUTHORIZED,
    ErrorKind.CREDENTIAL_INVALID: SyncState.CREDENTIAL_INVALID,
    ErrorKind.NOT_CONFIGURED: SyncState.NOT_CONFIGURED,
}


@dataclass
class SyncFailure:
    """Why one project could not be synced."""

    kind: ErrorKind
    message: str
    redirect_url: str | None = None

    def __str__(self) -> str:
        if self.redirect_url:
            return f"{self.message} ({self.redirect_url})"
        return self.message


@dataclass
class SyncResult:
    """Outcome of syncing one project."""

    project_id: int
    project_name: str
    subticket_ids: list[str] = field(default_factory=list)
    succeeded: bool = False
    failure: SyncFailure | None = None

    @classmethod
    def synced(cls, project: Project, subticket_ids: list[str]) -> SyncResult:
        return cls(project.id, project.name, list(subticket_ids), succeeded=True)

    @classmethod
    def failed(cls, project: Project, failure: SyncFailure) -> SyncResult:
        return cls(project.id, project.name, failure=failure)

    @property
    def status(self) -> SyncState:
        """
        Terminal state of the project.

        Cache backend failures are reported as remote errors; the failure
        keeps its own kind.
        """
        if self.succeeded:
            return SyncState.SYNCED
        if self.failure is None:
            return SyncState.PENDING
        return _STATE_BY_KIND.get(self.failure.kind, SyncState.REMOTE_ERROR)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "status": self.status.value,
            "subtickets": list(self.subticket_ids),
        }
        if self.failure is not None:
            data["error"] = {
                "kind": self.failure.kind.value,
                "message": self.failure.message,
                "redirect_url": self.failure.redirect_url,
            }
        return data


@dataclass
class SyncReport:
    """Results of a batch run, in project order."""

    results: list[SyncResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def synced(self) -> list[SyncResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> list[SyncResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def unauthorized(self) -> list[SyncResult]:
        return [r for r in self.results if r.status is SyncState.UNAUTHORIZED]

    @property
    def success(self) -> bool:
        return not self.cancelled and not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "cancelled": self.cancelled,
            "synced": len(self.synced),
            "failed": len(self.failed),
            "projects": [result.to_dict() for result in self.results],
        }

    def summary(self) -> str:
        line = f"{len(self.synced)}/{len(self.results)} projects synced"
        if self.failed:
            line += f", {len(self.failed)} failed"
        if self.cancelled:
            line += " (cancelled)"
        return line


class SubticketSyncOrchestrator:
    """
    Refreshes project subticket lists from their ticket systems.

    Per project:
    0. No ticket system -> not_configured; no main tickets -> empty list
    1. Decrypt the project lead's token for the ticket system
    2. Fetch subtickets of every main ticket through the result cache
    3. Replace and persist the list (main tickets included, natural order)

    A failure leaves the stored list untouched.
    """

    def __init__(
        self,
        store: EntityStorePort,
        cipher: TokenCipher,
        cache: ResultCache,
        client_factory: ClientFactory,
        config: SyncConfig | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Entity store the projects are read from and persisted to
            cipher: Cipher for the stored tokens
            cache: Result cache in front of the ticket system
            client_factory: Builds a client for a ticket system
            config: Sync configuration
        """
        self.store = store
        self.cipher = cipher
        self.cache = cache
        self.client_factory = client_factory
        self.config = config or SyncConfig()
        self.logger = logging.getLogger("SubticketSyncOrchestrator")

        self._clients: dict[int, TicketSystemClientPort] = {}
        self._clients_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Main Entry Points
    # -------------------------------------------------------------------------

    def sync_project(self, project: Project) -> SyncResult:
        """
        Sync one project. Classified failures are returned, not raised.
        """
        ticket_system = project.ticket_system
        if ticket_system is None:
            return SyncResult.failed(
                project,
                SyncFailure(ErrorKind.NOT_CONFIGURED, "Project has no ticket system"),
            )

        main_tickets = project.main_tickets
        if not main_tickets:
            if project.subtickets:
                project.replace_subtickets([])
                self.store.persist(project)
                self.logger.debug(f"Cleared subtickets of project {project.id}")
            return SyncResult.synced(project, [])

        try:
            credential = self._credential_for(project, ticket_system)
        except ClassifiedError as e:
            self.logger.warning(f"Project {project.id}: {e.message}")
            return SyncResult.failed(
                project, SyncFailure(ErrorKind.CREDENTIAL_INVALID, e.message)
            )

        client = None
        try:
            client = self._client_for(ticket_system)
            fetched: list[str] = []
            for ticket in main_tickets:
                fetched.extend(
                    self._fetch_subtickets(project, ticket_system, client, ticket, credential)
                )
        except ClassifiedError as e:
            failure = self._classify(e, ticket_system, client)
            self.logger.warning(f"Project {project.id}: {failure.kind.value}: {e}")
            return SyncResult.failed(project, failure)

        subticket_ids = merge_subtickets(main_tickets, fetched)
        project.replace_subtickets(subticket_ids)
        self.store.persist(project)

        self.logger.debug(f"Project {project.id}: {len(subticket_ids)} subtickets")
        return SyncResult.synced(project, subticket_ids)

    def sync_projects(
        self,
        projects: Iterable[Project],
        cancel_event: threading.Event | None = None,
        on_start: Callable[[Project], None] | None = None,
        on_result: Callable[[SyncResult], None] | None = None,
    ) -> SyncReport:
        """
        Sync several projects, each independently of the others.

        ``cancel_event`` is checked before each project is started; projects
        already synced stay persisted.

        Args:
            projects: Projects to sync
            cancel_event: Stops the batch before the next project when set
            on_start: Called with each project before it is synced. With more
                than one worker it is called from the calling thread once the
                project has finished, right before ``on_result``.
            on_result: Called with each result as soon as it is available

        Returns:
            SyncReport with one result per project that was started. With
            more than one worker the results are ordered by project id.
        """
        projects = list(projects)
        report = SyncReport()

        if self.config.max_workers <= 1:
            for project in projects:
                if cancel_event is not None and cancel_event.is_set():
                    report.cancelled = True
                    break
                if on_start is not None:
                    on_start(project)
                result = self._sync_isolated(project)
                report.results.append(result)
                if on_result is not None:
                    on_result(result)
        else:
            with ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="ttsync-sync"
            ) as pool:
                futures = {
                    pool.submit(self._sync_unless_cancelled, project, cancel_event): project
                    for project in projects
                }
                outcomes = []
                for future in as_completed(futures):
                    result = future.result()
                    outcomes.append(result)
                    if result is None:
                        continue
                    if on_start is not None:
                        on_start(futures[future])
                    if on_result is not None:
                        on_result(result)
            report.results = sorted(
                (result for result in outcomes if result is not None),
                key=lambda result: result.project_id,
            )
            report.cancelled = any(result is None for result in outcomes)

        if report.cancelled:
            self.logger.info(f"Sync cancelled after {len(report.results)} projects")
        self.logger.info(report.summary())
        return report

    def invalidate_project(self, project_id: int) -> int:
        """Drop every cached lookup of one project."""
        return self.cache.invalidate_tag(project_tag(project_id))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _sync_isolated(self, project: Project) -> SyncResult:
        try:
            return self.sync_project(project)
        except Exception as e:
            self.logger.exception(f"Unexpected failure syncing project {project.id}")
            return SyncResult.failed(
                project, SyncFailure(ErrorKind.REMOTE_ERROR, f"Unexpected error: {e}")
            )

    def _sync_unless_cancelled(
        self, project: Project, cancel_event: threading.Event | None
    ) -> SyncResult | None:
        if cancel_event is not None and cancel_event.is_set():
            return None
        return self._sync_isolated(project)

    def _credential_for(self, project: Project, ticket_system: TicketSystem) -> str:
        lead = project.project_lead
        if lead is None:
            raise ClassifiedError.credential_invalid("Project has no project lead")

        encrypted = lead.token_for(ticket_system)
        if not encrypted:
            raise ClassifiedError.credential_invalid(
                f"Project lead {lead.username} has no token for {ticket_system.name}"
            )

        try:
            credential = self.cipher.decrypt(encrypted)
        except ClassifiedError as e:
            if not e.kind.is_token_failure:
                raise
            raise ClassifiedError.credential_invalid(
                f"Stored token of {lead.username} for {ticket_system.name} "
                f"cannot be decrypted ({e.kind.value})",
                cause=e,
            ) from e

        if not credential:
            raise ClassifiedError.credential_invalid(
                f"Project lead {lead.username} has an empty token for {ticket_system.name}"
            )
        return credential

    def _client_for(self, ticket_system: TicketSystem) -> TicketSystemClientPort:
        with self._clients_lock:
            client = self._clients.get(ticket_system.id)
            if client is None:
                client = self.client_factory(ticket_system)
                self._clients[ticket_system.id] = client
            return client

    def _fetch_subtickets(
        self,
        project: Project,
        ticket_system: TicketSystem,
        client: TicketSystemClientPort,
        ticket: str,
        credential: str,
    ) -> list[str]:
        key = subtickets_cache_key(project.id, ticket_system.id, ticket)
        subtickets = self.cache.remember(
            key,
            self.config.cache_ttl,
            lambda: client.fetch_subtickets(ticket, credential),
        )
        self.cache.tag(key, project_tag(project.id), ticket_system_tag(ticket_system.id))
        return list(subtickets)

    def _classify(
        self,
        error: ClassifiedError,
        ticket_system: TicketSystem,
        client: TicketSystemClientPort | None,
    ) -> SyncFailure:
        if error.kind is ErrorKind.UNAUTHORIZED:
            redirect_url = error.redirect_url
            if not redirect_url:
                redirect_url = (
                    client.authorization_url() if client else None
                ) or ticket_system.oauth_authorize_url
            return SyncFailure(ErrorKind.UNAUTHORIZED, error.message, redirect_url=redirect_url)
        if error.kind in (ErrorKind.CACHE_BACKEND_ERROR, ErrorKind.NOT_CONFIGURED):
            return SyncFailure(error.kind, str(error))
        return SyncFailure(ErrorKind.REMOTE_ERROR, str(error))


def subtickets_cache_key(project_id: int, ticket_system_id: int, ticket: str) -> str:
    return f"project_{project_id}_ticket_system_{ticket_system_id}_subtickets_{ticket}"


def project_tag(project_id: int) -> str:
    return f"project_{project_id}"


def ticket_system_tag(ticket_system_id: int) -> str:
    return f"ticket_system_{ticket_system_id}"


def merge_subtickets(main_tickets: list[str], fetched: Iterable[str]) -> list[str]:
    """Main tickets plus fetched keys, de-duplicated, in natural order."""
    return sorted({*main_tickets, *fetched}, key=natural_sort_key)
