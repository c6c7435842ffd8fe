"""
Subticket sync command handler.

ttsync sync-subtickets [project]

Refreshes the subticket list of one project, or of every project linked to a
ticket system. Per-project failures are reported but never change the exit
code; only an unknown project, a configuration problem or cancellation do.
"""

from __future__ import annotations

import argparse
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ttsync.application.sync import SubticketSyncOrchestrator
from ttsync.core.exceptions import ConfigError
from ttsync.core.ports.entity_store import EntityStorePort

from ..exit_codes import ExitCode
from ..logging import get_logger
from ..output import Console
from .wiring import build_orchestrator, load_config, open_store


__all__ = ["run_sync_subtickets"]


def run_sync_subtickets(
    args: argparse.Namespace,
    console: Console,
    store: EntityStorePort | None = None,
    orchestrator: SubticketSyncOrchestrator | None = None,
    cancel_event: threading.Event | None = None,
) -> int:
    """
    Run the subticket sync.

    Args:
        args: Parsed command-line arguments (``project``, ``refresh``, ...).
        console: Output helper.
        store: Entity store; built from configuration when omitted.
        orchestrator: Sync orchestrator; built from configuration when omitted.
        cancel_event: Set to stop before the next project; a SIGINT handler
            sets it while the command runs.

    Returns:
        Exit code.
    """
    logger = get_logger("SyncSubticketsCommand", command="sync-subtickets")

    try:
        config = load_config(args) if store is None or orchestrator is None else None
        if store is None:
            store = open_store(config)
    except ConfigError as e:
        console.config_errors([e.message])
        console.flush_errors()
        return ExitCode.CONFIG_ERROR

    project_id = getattr(args, "project", None)
    if project_id is not None:
        project = store.find_project_by_id(project_id)
        if project is None:
            console.error(f"Project {project_id} does not exist")
            console.flush_errors()
            return ExitCode.ERROR
        projects = [project]
    else:
        projects = list(store.find_projects_with_ticket_system())
        console.projects_found(len(projects))

    if orchestrator is None:
        try:
            orchestrator = build_orchestrator(config, store)
        except ConfigError as e:
            console.config_errors([e.message])
            console.flush_errors()
            return ExitCode.CONFIG_ERROR

    if getattr(args, "refresh", False):
        dropped = sum(orchestrator.invalidate_project(project.id) for project in projects)
        logger.debug(f"Dropped {dropped} cached lookups")

    cancel_event = cancel_event or threading.Event()
    logger.info(f"Syncing {len(projects)} projects")

    with _cancel_on_sigint(cancel_event, console):
        report = orchestrator.sync_projects(
            projects,
            cancel_event=cancel_event,
            on_start=lambda project: console.project_started(project.id, project.name),
            on_result=console.project_result,
        )

    console.sync_summary(report)

    if report.cancelled:
        return ExitCode.CANCELLED
    return ExitCode.SUCCESS


@contextmanager
def _cancel_on_sigint(cancel_event: threading.Event, console: Console) -> Iterator[None]:
    """Turn the first Ctrl+C into a cancel request honoured between projects."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handle(signum, frame):  # noqa: ARG001
        if cancel_event.is_set():
            raise KeyboardInterrupt
        console.warning("Cancelling after the current project (Ctrl+C again to abort)")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
