"""
Domain layer - Entities and enums shared by every other layer.
"""

from .entities import Project, TicketSystem, User, natural_sort_key
from .enums import SyncState, TicketSystemType


__all__ = [
    "Project",
    "SyncState",
    "TicketSystem",
    "TicketSystemType",
    "User",
    "natural_sort_key",
]
