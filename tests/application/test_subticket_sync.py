"""
Tests for SubticketSyncOrchestrator.

Tests cover:
- Successful sync: merge, natural order, persistence
- Failure classification: unauthorized, credential_invalid, remote_error,
  not_configured, cache_backend_error
- Batch isolation, parallel ordering and cancellation
- Cache reuse and invalidation
"""

import threading
from unittest.mock import MagicMock

import pytest

from ttsync.adapters.cache import CacheBackend, ResultCache
from ttsync.application.sync import (
    SubticketSyncOrchestrator,
    SyncFailure,
    SyncReport,
    SyncResult,
    merge_subtickets,
    project_tag,
    subtickets_cache_key,
)
from ttsync.core.domain import Project, SyncState, TicketSystem, User
from ttsync.core.exceptions import ClassifiedError, ErrorKind
from ttsync.core.ports.config_provider import SyncConfig
from ttsync.core.security import TokenCipher


@pytest.fixture
def orchestrator(store, cipher, result_cache, fake_client):
    return SubticketSyncOrchestrator(
        store=store,
        cipher=cipher,
        cache=result_cache,
        client_factory=lambda ticket_system: fake_client,
    )


class TestSyncProject:
    """Tests for syncing a single project."""

    def test_success_replaces_and_persists(
        self, orchestrator, store, fake_client, make_project, lead_token
    ):
        project = make_project(subtickets=["STALE-1"])
        store.add_project(project)
        fake_client.subtickets["OPS-1"] = ["OPS-1", "OPS-2"]

        result = orchestrator.sync_project(project)

        assert result.succeeded
        assert result.status is SyncState.SYNCED
        assert result.subticket_ids == ["OPS-1", "OPS-2"]
        assert project.subtickets == ["OPS-1", "OPS-2"]
        assert store.persisted == [project.id]
        assert fake_client.calls == [("OPS-1", lead_token)]

    def test_main_tickets_are_included_in_natural_order(
        self, orchestrator, fake_client, make_project
    ):
        project = make_project(jira_ticket="OPS-1, OPS-20")
        fake_client.subtickets["OPS-1"] = ["OPS-10", "OPS-2"]
        fake_client.subtickets["OPS-20"] = ["OPS-21", "OPS-2"]

        result = orchestrator.sync_project(project)

        assert result.subticket_ids == ["OPS-1", "OPS-2", "OPS-10", "OPS-20", "OPS-21"]

    def test_unauthorized_preserves_state(
        self, orchestrator, store, fake_client, make_project, ticket_system
    ):
        project = make_project(subtickets=["OPS-1", "OPS-9"])
        fake_client.errors["OPS-1"] = ClassifiedError.unauthorized(
            "401 - Unauthorized.", redirect_url="https://jira.example.com/reauth"
        )

        result = orchestrator.sync_project(project)

        assert result.status is SyncState.UNAUTHORIZED
        assert result.failure.redirect_url == "https://jira.example.com/reauth"
        assert project.subtickets == ["OPS-1", "OPS-9"]
        assert store.persisted == []

    def test_unauthorized_falls_back_to_client_authorize_url(
        self, orchestrator, fake_client, make_project, ticket_system
    ):
        fake_client.errors["OPS-1"] = ClassifiedError.unauthorized("401 - Unauthorized.")

        result = orchestrator.sync_project(make_project())

        assert result.failure.redirect_url == ticket_system.oauth_authorize_url

    def test_unauthorized_while_building_client_uses_ticket_system_url(
        self, store, cipher, result_cache, make_project, ticket_system
    ):
        def refuse(ts):
            raise ClassifiedError.unauthorized("401 - Unauthorized.")

        orchestrator = SubticketSyncOrchestrator(store, cipher, result_cache, refuse)

        result = orchestrator.sync_project(make_project())

        assert result.status is SyncState.UNAUTHORIZED
        assert result.failure.redirect_url == ticket_system.oauth_authorize_url

    def test_remote_error_preserves_state(self, orchestrator, store, fake_client, make_project):
        project = make_project(subtickets=["OPS-1"])
        fake_client.errors["OPS-1"] = ClassifiedError.remote_error("timeout")

        result = orchestrator.sync_project(project)

        assert result.status is SyncState.REMOTE_ERROR
        assert result.failure.kind is ErrorKind.REMOTE_ERROR
        assert project.subtickets == ["OPS-1"]
        assert store.persisted == []

    def test_not_found_is_remote_error(self, orchestrator, fake_client, make_project):
        fake_client.errors["OPS-1"] = ClassifiedError.not_found("gone")

        assert orchestrator.sync_project(make_project()).status is SyncState.REMOTE_ERROR

    def test_one_failing_main_ticket_fails_the_project(
        self, orchestrator, store, fake_client, make_project
    ):
        project = make_project(jira_ticket="OPS-1, OPS-2", subtickets=["OLD-1"])
        fake_client.subtickets["OPS-1"] = ["OPS-3"]
        fake_client.errors["OPS-2"] = ClassifiedError.remote_error("boom")

        result = orchestrator.sync_project(project)

        assert not result.succeeded
        assert project.subtickets == ["OLD-1"]

    def test_undecryptable_token_is_credential_invalid(
        self, orchestrator, fake_client, make_project, ticket_system
    ):
        other = TokenCipher("another-secret")
        lead = User(id=8, username="lead", tokens={ticket_system.id: other.encrypt("t")})

        result = orchestrator.sync_project(make_project(project_lead=lead))

        assert result.status is SyncState.CREDENTIAL_INVALID
        assert fake_client.calls == []

    def test_malformed_token_is_credential_invalid(
        self, orchestrator, make_project, ticket_system
    ):
        lead = User(id=8, username="lead", tokens={ticket_system.id: "not base64!"})

        result = orchestrator.sync_project(make_project(project_lead=lead))

        assert result.status is SyncState.CREDENTIAL_INVALID
        assert "malformed_token" in result.failure.message

    def test_missing_token_is_credential_invalid(self, orchestrator, make_project):
        lead = User(id=8, username="newbie")

        result = orchestrator.sync_project(make_project(project_lead=lead))

        assert result.status is SyncState.CREDENTIAL_INVALID
        assert "newbie has no token" in result.failure.message

    def test_missing_lead_is_credential_invalid(self, orchestrator, make_project):
        result = orchestrator.sync_project(make_project(project_lead=None))

        assert result.status is SyncState.CREDENTIAL_INVALID

    def test_no_ticket_system_is_not_configured(self, orchestrator, store):
        project = Project(id=3, name="Internal", jira_ticket="OPS-1")

        result = orchestrator.sync_project(project)

        assert result.status is SyncState.NOT_CONFIGURED
        assert store.persisted == []

    def test_no_main_tickets_clears_list(self, orchestrator, store, fake_client, make_project):
        project = make_project(jira_ticket="", subtickets=["OLD-1"])

        result = orchestrator.sync_project(project)

        assert result.succeeded
        assert project.subtickets == []
        assert store.persisted == [project.id]
        assert fake_client.calls == []

    def test_no_main_tickets_and_empty_list_is_not_persisted(
        self, orchestrator, store, make_project
    ):
        result = orchestrator.sync_project(make_project(jira_ticket=None))

        assert result.succeeded
        assert store.persisted == []

    def test_unsupported_ticket_system_type(self, store, cipher, result_cache, make_project):
        def factory(ticket_system):
            raise ClassifiedError.not_configured("OTRS is not supported")

        orchestrator = SubticketSyncOrchestrator(store, cipher, result_cache, factory)

        result = orchestrator.sync_project(make_project())

        assert result.status is SyncState.NOT_CONFIGURED
        assert "OTRS" in result.failure.message

    def test_cache_backend_error_keeps_kind(self, store, cipher, fake_client, make_project):
        backend = MagicMock(spec=CacheBackend)
        backend.get.side_effect = ClassifiedError.cache_backend_error("redis down")
        orchestrator = SubticketSyncOrchestrator(
            store, cipher, ResultCache(backend), lambda ts: fake_client
        )
        project = make_project(subtickets=["OPS-1"])

        result = orchestrator.sync_project(project)

        assert result.failure.kind is ErrorKind.CACHE_BACKEND_ERROR
        assert result.status is SyncState.REMOTE_ERROR
        assert project.subtickets == ["OPS-1"]
        assert fake_client.calls == []


class TestCaching:
    """Tests for cache use during sync."""

    def test_second_sync_uses_cache(self, orchestrator, fake_client, make_project):
        project = make_project()
        fake_client.subtickets["OPS-1"] = ["OPS-2"]

        orchestrator.sync_project(project)
        orchestrator.sync_project(project)

        assert len(fake_client.calls) == 1

    def test_cache_expires_after_ttl(self, orchestrator, fake_client, make_project, clock):
        project = make_project()

        orchestrator.sync_project(project)
        clock.advance(SyncConfig().cache_ttl + 1)
        orchestrator.sync_project(project)

        assert len(fake_client.calls) == 2

    def test_entries_are_tagged(self, orchestrator, result_cache, make_project, ticket_system):
        project = make_project()

        orchestrator.sync_project(project)

        key = subtickets_cache_key(project.id, ticket_system.id, "OPS-1")
        assert result_cache.tags_for(key) == {"project_10", "ticket_system_1"}

    def test_invalidate_project_forces_refetch(self, orchestrator, fake_client, make_project):
        project = make_project()
        orchestrator.sync_project(project)

        assert orchestrator.invalidate_project(project.id) == 1
        orchestrator.sync_project(project)

        assert len(fake_client.calls) == 2

    def test_failures_are_not_cached(self, orchestrator, fake_client, make_project):
        project = make_project()
        fake_client.errors["OPS-1"] = ClassifiedError.remote_error("boom")
        orchestrator.sync_project(project)

        del fake_client.errors["OPS-1"]
        fake_client.subtickets["OPS-1"] = ["OPS-2"]

        assert orchestrator.sync_project(project).subticket_ids == ["OPS-1", "OPS-2"]

    def test_client_built_once_per_ticket_system(
        self, store, cipher, result_cache, make_project, fake_client
    ):
        factory = MagicMock(return_value=fake_client)
        orchestrator = SubticketSyncOrchestrator(store, cipher, result_cache, factory)

        orchestrator.sync_projects([make_project(1), make_project(2)])

        factory.assert_called_once()


class TestSyncProjects:
    """Tests for batch runs."""

    def test_isolation(self, orchestrator, store, fake_client, make_project):
        a = make_project(1, "A", jira_ticket="A-1")
        b = make_project(2, "B", jira_ticket="B-1", subtickets=["B-1", "B-7"])
        c = make_project(3, "C", jira_ticket="C-1")
        fake_client.errors["B-1"] = ClassifiedError.unauthorized("401 - Unauthorized.")

        report = orchestrator.sync_projects([a, b, c])

        assert [r.status for r in report.results] == [
            SyncState.SYNCED,
            SyncState.UNAUTHORIZED,
            SyncState.SYNCED,
        ]
        assert [r.project_id for r in report.unauthorized] == [2]
        assert b.subtickets == ["B-1", "B-7"]
        assert store.persisted == [1, 3]
        assert not report.success

    def test_unexpected_exception_is_isolated(self, orchestrator, fake_client, make_project):
        fake_client.errors["A-1"] = RuntimeError("bug")

        report = orchestrator.sync_projects(
            [make_project(1, "A", jira_ticket="A-1"), make_project(2, "B", jira_ticket="B-1")]
        )

        assert report.results[0].status is SyncState.REMOTE_ERROR
        assert "Unexpected error: bug" in report.results[0].failure.message
        assert report.results[1].succeeded

    def test_parallel_results_ordered_by_project_id(
        self, store, cipher, result_cache, fake_client, make_project
    ):
        orchestrator = SubticketSyncOrchestrator(
            store, cipher, result_cache, lambda ts: fake_client, SyncConfig(max_workers=4)
        )
        projects = [
            make_project(pid, f"P{pid}", jira_ticket=f"P-{pid}") for pid in (5, 1, 4, 2, 3)
        ]

        report = orchestrator.sync_projects(projects)

        assert [r.project_id for r in report.results] == [1, 2, 3, 4, 5]
        assert report.success

    def test_cancel_between_projects(self, orchestrator, store, fake_client, make_project):
        cancel = threading.Event()
        first = make_project(1, "A", jira_ticket="A-1")
        second = make_project(2, "B", jira_ticket="B-1")

        original = fake_client.fetch_subtickets

        def fetch_and_cancel(key, credential):
            cancel.set()
            return original(key, credential)

        fake_client.fetch_subtickets = fetch_and_cancel

        report = orchestrator.sync_projects([first, second], cancel_event=cancel)

        assert report.cancelled
        assert [r.project_id for r in report.results] == [1]
        assert store.persisted == [1]
        assert "(cancelled)" in report.summary()

    def test_parallel_cancel_before_start(
        self, store, cipher, result_cache, fake_client, make_project
    ):
        orchestrator = SubticketSyncOrchestrator(
            store, cipher, result_cache, lambda ts: fake_client, SyncConfig(max_workers=2)
        )
        cancel = threading.Event()
        cancel.set()

        report = orchestrator.sync_projects([make_project(1), make_project(2)], cancel_event=cancel)

        assert report.cancelled
        assert report.results == []
        assert fake_client.calls == []

    def test_callbacks_follow_each_project(self, orchestrator, fake_client, make_project):
        events = []
        fake_client.subtickets["A-1"] = ["A-2"]
        original = fake_client.fetch_subtickets

        def fetch(key, credential):
            events.append(f"fetch {key}")
            return original(key, credential)

        fake_client.fetch_subtickets = fetch

        orchestrator.sync_projects(
            [make_project(1, "A", jira_ticket="A-1"), make_project(2, "B", jira_ticket="B-1")],
            on_start=lambda project: events.append(f"start {project.id}"),
            on_result=lambda result: events.append(f"done {result.project_id}"),
        )

        assert events == [
            "start 1",
            "fetch A-1",
            "done 1",
            "start 2",
            "fetch B-1",
            "done 2",
        ]

    def test_callbacks_skip_projects_not_started(
        self, orchestrator, fake_client, make_project
    ):
        cancel = threading.Event()
        original = fake_client.fetch_subtickets

        def fetch_and_cancel(key, credential):
            cancel.set()
            return original(key, credential)

        fake_client.fetch_subtickets = fetch_and_cancel
        started, finished = [], []

        orchestrator.sync_projects(
            [make_project(1, "A", jira_ticket="A-1"), make_project(2, "B", jira_ticket="B-1")],
            cancel_event=cancel,
            on_start=lambda project: started.append(project.id),
            on_result=lambda result: finished.append(result.project_id),
        )

        assert started == [1]
        assert finished == [1]

    def test_parallel_callbacks_run_on_calling_thread(
        self, store, cipher, result_cache, fake_client, make_project
    ):
        orchestrator = SubticketSyncOrchestrator(
            store, cipher, result_cache, lambda ts: fake_client, SyncConfig(max_workers=3)
        )
        caller = threading.current_thread()
        seen = []

        def on_result(result):
            assert threading.current_thread() is caller
            seen.append(result.project_id)

        orchestrator.sync_projects(
            [make_project(pid, f"P{pid}", jira_ticket=f"P-{pid}") for pid in (3, 1, 2)],
            on_start=lambda project: seen.append(f"start {project.id}"),
            on_result=on_result,
        )

        assert sorted(item for item in seen if isinstance(item, int)) == [1, 2, 3]
        for pid in (1, 2, 3):
            assert seen.index(f"start {pid}") == seen.index(pid) - 1

    def test_empty_batch(self, orchestrator):
        report = orchestrator.sync_projects([])

        assert report.success
        assert report.summary() == "0/0 projects synced"


class TestReports:
    """Tests for SyncResult and SyncReport serialization."""

    def test_result_to_dict(self):
        project = Project(id=1, name="A")
        failure = SyncFailure(ErrorKind.UNAUTHORIZED, "401", redirect_url="https://x")

        data = SyncResult.failed(project, failure).to_dict()

        assert data["status"] == "unauthorized"
        assert data["error"] == {
            "kind": "unauthorized",
            "message": "401",
            "redirect_url": "https://x",
        }

    def test_pending_without_failure(self):
        assert SyncResult(project_id=1, project_name="A").status is SyncState.PENDING

    def test_report_summary(self):
        project = Project(id=1, name="A")
        report = SyncReport(
            results=[
                SyncResult.synced(project, ["A-1"]),
                SyncResult.failed(project, SyncFailure(ErrorKind.REMOTE_ERROR, "boom")),
            ]
        )

        assert report.summary() == "1/2 projects synced, 1 failed"
        assert report.to_dict()["synced"] == 1
        assert report.to_dict()["failed"] == 1


class TestHelpers:
    """Tests for the module helpers."""

    def test_cache_key_and_tag(self):
        assert subtickets_cache_key(1, 2, "OPS-1") == "project_1_ticket_system_2_subtickets_OPS-1"
        assert project_tag(1) == "project_1"

    def test_merge_dedupes(self):
        assert merge_subtickets(["OPS-1"], ["OPS-1", "ops-3", "OPS-2"]) == [
            "OPS-1",
            "OPS-2",
            "ops-3",
        ]


class TestEndToEnd:
    """Orchestrator against the store with a mixed project set."""

    def test_project_without_ticket_system_is_untouched(
        self, orchestrator, store, fake_client, make_project
    ):
        linked = make_project(1, "Linked", jira_ticket="OPS-1")
        internal = Project(id=2, name="Internal", subtickets=["X-1"])
        store.add_project(linked)
        store.add_project(internal)
        fake_client.subtickets["OPS-1"] = ["OPS-1", "OPS-2"]

        report = orchestrator.sync_projects(store.find_projects_with_ticket_system())

        assert len(report.results) == 1
        assert store.find_project_by_id(1).subtickets == ["OPS-1", "OPS-2"]
        assert internal.subtickets == ["X-1"]
        assert store.persisted == [1]

    def test_ticket_system_is_passed_to_factory(
        self, store, cipher, result_cache, make_project, fake_client
    ):
        seen: list[TicketSystem] = []

        def factory(ticket_system):
            seen.append(ticket_system)
            return fake_client

        orchestrator = SubticketSyncOrchestrator(store, cipher, result_cache, factory)
        project = make_project()

        orchestrator.sync_project(project)

        assert seen == [project.ticket_system]
