"""
In-Memory Entity Store - process-local EntityStorePort.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence

from ttsync.core.domain.entities import Project, TicketSystem, User
from ttsync.core.ports.entity_store import EntityStorePort


class InMemoryEntityStore(EntityStorePort):
    """
    Entity store backed by dicts, in insertion order.

    ``persisted`` records the id of every project written through persist(),
    in call order.
    """

    def __init__(
        self,
        projects: Iterable[Project] = (),
        users: Iterable[User] = (),
        ticket_systems: Iterable[TicketSystem] = (),
    ):
        self._lock = threading.RLock()
        self._projects: dict[int, Project] = {p.id: p for p in projects}
        self._users: dict[int, User] = {u.id: u for u in users}
        self._ticket_systems: dict[int, TicketSystem] = {t.id: t for t in ticket_systems}
        self.persisted: list[int] = []

    def add_project(self, project: Project) -> None:
        with self._lock:
            self._projects[project.id] = project

    def add_user(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = user

    def add_ticket_system(self, ticket_system: TicketSystem) -> None:
        with self._lock:
            self._ticket_systems[ticket_system.id] = ticket_system

    def find_project_by_id(self, project_id: int) -> Project | None:
        with self._lock:
            return self._projects.get(project_id)

    def find_projects_with_ticket_system(self) -> Sequence[Project]:
        with self._lock:
            return [p for p in self._projects.values() if p.has_ticket_system]

    def find_users(self) -> Sequence[User]:
        with self._lock:
            return list(self._users.values())

    def find_ticket_systems(self) -> Sequence[TicketSystem]:
        with self._lock:
            return list(self._ticket_systems.values())

    def persist(self, project: Project) -> None:
        with self._lock:
            self._projects[project.id] = project
            self.persisted.append(project.id)

    def persist_user(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = user
