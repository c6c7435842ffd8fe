"""
Wiring - Builds configured adapters and use cases for the commands.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from ttsync.adapters.cache import ResultCache, create_backend
from ttsync.adapters.config import EnvironmentConfigProvider
from ttsync.adapters.jira import JiraApiClient
from ttsync.adapters.store import YamlEntityStore
from ttsync.application.sync import SubticketSyncOrchestrator
from ttsync.core.domain.entities import TicketSystem
from ttsync.core.domain.enums import TicketSystemType
from ttsync.core.exceptions import ClassifiedError, ConfigError
from ttsync.core.ports.config_provider import AppConfig, HttpConfig
from ttsync.core.ports.entity_store import EntityStorePort
from ttsync.core.ports.ticket_system import TicketSystemClientPort
from ttsync.core.security.token_cipher import TokenCipher


def load_config(args: argparse.Namespace) -> AppConfig:
    """
    Load and validate configuration for a command.

    Raises:
        ConfigError: With every validation problem in the message.
    """
    provider = EnvironmentConfigProvider(
        env_file=Path(args.env_file) if getattr(args, "env_file", None) else None,
        config_file=Path(args.config) if getattr(args, "config", None) else None,
        cli_overrides={
            "data_file": getattr(args, "data_file", None),
            "workers": getattr(args, "workers", None),
            "cache_backend": getattr(args, "cache_backend", None),
        },
    )
    errors = provider.validate()
    if errors:
        raise ConfigError("; ".join(errors))
    return provider.load()


def open_store(config: AppConfig) -> EntityStorePort:
    if not config.data_file:
        raise ConfigError("No data file configured (TTSYNC_DATA_FILE or --data-file)")
    return YamlEntityStore(config.data_file)


def create_client(ticket_system: TicketSystem, http: HttpConfig) -> TicketSystemClientPort:
    """Client for a ticket system; only Jira is supported."""
    if ticket_system.type is not TicketSystemType.JIRA:
        raise ClassifiedError.not_configured(
            f"Ticket system {ticket_system.name} has unsupported type {ticket_system.type.value}"
        )
    return JiraApiClient.from_ticket_system(ticket_system, http)


def build_orchestrator(config: AppConfig, store: EntityStorePort) -> SubticketSyncOrchestrator:
    """
    Raises:
        ConfigError: Missing secret or unavailable cache backend.
    """
    cipher = TokenCipher(config.encryption_key)
    try:
        backend = create_backend(config.cache)
    except ImportError as e:
        raise ConfigError(str(e), cause=e) from e

    cache = ResultCache(
        backend, prefix=config.cache.key_prefix, default_ttl=config.cache.default_ttl
    )
    return SubticketSyncOrchestrator(
        store=store,
        cipher=cipher,
        cache=cache,
        client_factory=lambda ticket_system: create_client(ticket_system, config.http),
        config=config.sync,
    )
