"""
Entity Store Port - Abstract interface for the persistent entity store.

Implementations:
- InMemoryEntityStore: process-local, used by tests and embedding callers
- YamlEntityStore: a YAML data file
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ttsync.core.domain.entities import Project, User


class EntityStorePort(ABC):
    """Read and persist the entities the sync engine works on."""

    @abstractmethod
    def find_project_by_id(self, project_id: int) -> Project | None:
        """Return the project with this id, or None."""
        ...

    @abstractmethod
    def find_projects_with_ticket_system(self) -> Sequence[Project]:
        """Return every project linked to a ticket system, in store order."""
        ...

    @abstractmethod
    def persist(self, project: Project) -> None:
        """Write the project's current state."""
        ...

    @abstractmethod
    def find_users(self) -> Sequence[User]:
        """Return all users (credential maintenance)."""
        ...

    @abstractmethod
    def persist_user(self, user: User) -> None:
        """Write a user's current state."""
        ...
