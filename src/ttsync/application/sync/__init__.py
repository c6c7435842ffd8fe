"""
Sync Module - Subticket synchronization.
"""

from .orchestrator import (
    SubticketSyncOrchestrator,
    SyncFailure,
    SyncReport,
    SyncResult,
    merge_subtickets,
    project_tag,
    subtickets_cache_key,
    ticket_system_tag,
)


__all__ = [
    "SubticketSyncOrchestrator",
    "SyncFailure",
    "SyncReport",
    "SyncResult",
    "merge_subtickets",
    "project_tag",
    "subtickets_cache_key",
    "ticket_system_tag",
]
