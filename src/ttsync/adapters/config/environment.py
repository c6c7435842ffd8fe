"""
Environment Config Provider - Load configuration from environment.

Configuration precedence (highest to lowest):
1. CLI arguments (cli_overrides)
2. Environment variables
3. .env file
4. Config file (ttsync.yaml)
5. Defaults
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ttsync.core.exceptions import ConfigError
from ttsync.core.ports.config_provider import (
    AppConfig,
    CacheBackendType,
    CacheConfig,
    ConfigProviderPort,
    HttpConfig,
    SyncConfig,
)


# Environment variable -> internal key
ENV_KEYS = {
    "TTSYNC_ENCRYPTION_KEY": "encryption_key",
    "TTSYNC_DATA_FILE": "data_file",
    "TTSYNC_CACHE_BACKEND": "cache_backend",
    "TTSYNC_REDIS_URL": "redis_url",
    "TTSYNC_CACHE_PREFIX": "cache_prefix",
    "TTSYNC_CACHE_TTL": "cache_ttl",
    "TTSYNC_HTTP_TIMEOUT": "http_timeout",
    "TTSYNC_WORKERS": "workers",
}

# Legacy name for the encryption secret, used when no encryption_key is set
FALLBACK_ENV_KEYS = {
    "APP_SECRET": "app_secret",
}

# Config file section/field -> internal key
FILE_KEYS = {
    ("encryption_key",): "encryption_key",
    ("data_file",): "data_file",
    ("cache", "backend"): "cache_backend",
    ("cache", "redis_url"): "redis_url",
    ("cache", "prefix"): "cache_prefix",
    ("cache", "default_ttl"): "cache_default_ttl",
    ("cache", "max_size"): "cache_max_size",
    ("http", "timeout"): "http_timeout",
    ("http", "max_retries"): "http_max_retries",
    ("sync", "cache_ttl"): "cache_ttl",
    ("sync", "workers"): "workers",
}

DEFAULT_CONFIG_FILES = ("ttsync.yaml", "ttsync.yml", ".ttsync.yaml")


class EnvironmentConfigProvider(ConfigProviderPort):
    """
    Configuration provider that loads from environment variables.

    Environment variables:
    - TTSYNC_ENCRYPTION_KEY: Secret for token encryption (fallback APP_SECRET)
    - TTSYNC_DATA_FILE: YAML data file with ticket systems, users, projects
    - TTSYNC_CACHE_BACKEND: memory or redis
    - TTSYNC_REDIS_URL: Redis connection URL
    - TTSYNC_CACHE_PREFIX: Cache key prefix
    - TTSYNC_CACHE_TTL: Lifetime of cached subticket lookups in seconds
    - TTSYNC_HTTP_TIMEOUT: Ticket system request timeout in seconds
    - TTSYNC_WORKERS: Projects synced in parallel
    """

    def __init__(
        self,
        env_file: Path | None = None,
        config_file: Path | None = None,
        cli_overrides: dict[str, Any] | None = None,
    ):
        """
        Initialize the provider.

        Args:
            env_file: Path to .env file (defaults to .env in cwd)
            config_file: Path to YAML config file (auto-detected in cwd)
            cli_overrides: Values from command line, keyed by internal key
        """
        self.env_file = env_file
        self.config_file = config_file
        self.cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
        self._values: dict[str, Any] = {}
        self._loaded_file: Path | None = None
        self.logger = logging.getLogger("EnvironmentConfigProvider")

        self._load_config_file()
        self._load_env_file()
        self._load_environment()
        self._values.update(self.cli_overrides)

    # -------------------------------------------------------------------------
    # ConfigProviderPort Implementation
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        if self._loaded_file is not None:
            return f"Environment ({self._loaded_file.name})"
        return "Environment"

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def validate(self) -> list[str]:
        try:
            config = self._build()
        except ConfigError as e:
            return [e.message]

        errors = config.validate()
        if not config.encryption_key:
            errors = [
                err.replace(
                    "Missing encryption key",
                    "Missing encryption key: set TTSYNC_ENCRYPTION_KEY in the environment, "
                    "a .env file, or encryption_key in the config file",
                )
                for err in errors
            ]
        return errors

    def load(self) -> AppConfig:
        """
        Build the typed configuration.

        Raises:
            ConfigError: If a value cannot be converted to its type.
        """
        return self._build()

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _build(self) -> AppConfig:
        backend_name = str(self.get("cache_backend", CacheBackendType.MEMORY.value)).lower()
        try:
            backend = CacheBackendType(backend_name)
        except ValueError as e:
            raise ConfigError(
                f"Unknown cache backend '{backend_name}' (TTSYNC_CACHE_BACKEND: memory or redis)"
            ) from e

        cache = CacheConfig(
            backend=backend,
            key_prefix=str(self.get("cache_prefix", CacheConfig.key_prefix)),
            default_ttl=self._float("cache_default_ttl", CacheConfig.default_ttl),
            max_size=self._int("cache_max_size", CacheConfig.max_size),
            redis_url=str(self.get("redis_url", CacheConfig.redis_url)),
        )
        http = HttpConfig(
            timeout=self._float("http_timeout", HttpConfig.timeout),
            max_retries=self._int("http_max_retries", HttpConfig.max_retries),
        )
        sync = SyncConfig(
            cache_ttl=self._float("cache_ttl", SyncConfig.cache_ttl),
            max_workers=self._int("workers", SyncConfig.max_workers),
        )

        data_file = self.get("data_file")
        return AppConfig(
            encryption_key=str(self.get("encryption_key") or self.get("app_secret") or ""),
            data_file=str(data_file) if data_file else None,
            cache=cache,
            http=http,
            sync=sync,
        )

    def _float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid number for {key}: {value!r}") from e

    def _int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid integer for {key}: {value!r}") from e

    def _load_config_file(self) -> None:
        path = self.config_file
        if path is None:
            for candidate in DEFAULT_CONFIG_FILES:
                if Path(candidate).is_file():
                    path = Path(candidate)
                    break
        if path is None:
            return

        path = Path(path)
        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}", cause=e) from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {path}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        for path_parts, key in FILE_KEYS.items():
            value: Any = data
            for part in path_parts:
                value = value.get(part) if isinstance(value, dict) else None
            if value is not None:
                self._values[key] = value

        self._loaded_file = path
        self.logger.debug(f"Loaded config file {path}")

    def _load_env_file(self) -> None:
        env_path = self.env_file or Path(".env")
        if not env_path.is_file():
            return

        with env_path.open(encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                name, _, value = line.partition("=")
                name = name.strip()
                if name.startswith("export "):
                    name = name[len("export ") :].strip()
                value = value.strip().strip('"').strip("'")
                self._apply_env(name, value)

        self.logger.debug(f"Loaded {env_path}")

    def _load_environment(self) -> None:
        for name in (*FALLBACK_ENV_KEYS, *ENV_KEYS):
            value = os.environ.get(name)
            if value is not None:
                self._apply_env(name, value)

    def _apply_env(self, name: str, value: str) -> None:
        key = ENV_KEYS.get(name) or FALLBACK_ENV_KEYS.get(name)
        if key is not None:
            self._values[key] = value
