"""
Adapters - Implementations of the core ports.
"""

from .cache import MemoryCache, ResultCache, create_backend
from .config import EnvironmentConfigProvider
from .jira import JiraApiClient
from .store import InMemoryEntityStore, YamlEntityStore


__all__ = [
    "EnvironmentConfigProvider",
    "InMemoryEntityStore",
    "JiraApiClient",
    "MemoryCache",
    "ResultCache",
    "YamlEntityStore",
    "create_backend",
]
