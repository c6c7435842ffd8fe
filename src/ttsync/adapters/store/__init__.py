"""
Entity Store Adapters.
"""

from .memory import InMemoryEntityStore
from .yaml_store import YamlEntityStore


__all__ = ["InMemoryEntityStore", "YamlEntityStore"]
