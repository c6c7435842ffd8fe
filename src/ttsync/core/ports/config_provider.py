"""
Configuration Provider Port - Abstract interface for configuration.

Implementations:
- EnvironmentConfigProvider: Load from env vars and .env
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CacheBackendType(Enum):
    """Supported cache backing stores."""

    MEMORY = "memory"
    REDIS = "redis"


@dataclass
class CacheConfig:
    """Configuration for the result cache."""

    backend: CacheBackendType = CacheBackendType.MEMORY
    key_prefix: str = "query_"
    default_ttl: float = 300.0  # 5 minutes
    max_size: int = 1000  # Memory backend only

    # Redis backend
    redis_url: str = "redis://localhost:6379/0"
    redis_timeout: float = 5.0


@dataclass
class HttpConfig:
    """Configuration for calls to the ticket system."""

    timeout: float = 30.0
    max_retries: int = 3


@dataclass
class SyncConfig:
    """Configuration for subticket sync runs."""

    cache_ttl: float = 60.0  # Short: remote subtickets change often
    max_workers: int = 1  # 1 = sequential


@dataclass
class AppConfig:
    """Complete application configuration."""

    encryption_key: str
    data_file: str | None = None
    cache: CacheConfig = field(default_factory=CacheConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    def validate(self) -> list[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.encryption_key:
            errors.append("Missing encryption key (TTSYNC_ENCRYPTION_KEY or APP_SECRET)")
        if self.http.timeout <= 0:
            errors.append("HTTP timeout must be positive (TTSYNC_HTTP_TIMEOUT)")
        if self.sync.max_workers < 1:
            errors.append("Worker count must be at least 1 (TTSYNC_WORKERS)")

        return errors


class ConfigProviderPort(ABC):
    """
    Abstract interface for configuration providers.

    Configuration can come from various sources:
    - Environment variables
    - .env files
    - Command line arguments
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def load(self) -> AppConfig:
        """Load configuration from source."""
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a specific configuration value."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """
        Validate loaded configuration.

        Returns:
            List of validation errors
        """
        ...
