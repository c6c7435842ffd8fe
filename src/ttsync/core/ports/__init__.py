"""
Ports - Abstract interfaces for external dependencies.

Ports define the contracts that adapters must implement.
This enables dependency inversion and easy testing.
"""

from .config_provider import (
    AppConfig,
    CacheBackendType,
    CacheConfig,
    ConfigProviderPort,
    HttpConfig,
    SyncConfig,
)
from .entity_store import EntityStorePort
from .ticket_system import TicketSystemClientPort


__all__ = [
    "AppConfig",
    "CacheBackendType",
    "CacheConfig",
    "ConfigProviderPort",
    "EntityStorePort",
    "HttpConfig",
    "SyncConfig",
    "TicketSystemClientPort",
]
