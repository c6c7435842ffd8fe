"""
YAML Entity Store - EntityStorePort backed by a YAML data file.

File layout:

    ticket_systems:
      - id: 1
        name: Company Jira
        url: https://jira.example.com
        type: jira
        oauth_authorize_url: https://jira.example.com/plugins/servlet/oauth/authorize
    users:
      - id: 7
        username: lead
        tokens:
          1: <base64 EncryptedToken>
    projects:
      - id: 10
        name: Operations
        ticket_system: 1
        jira_ticket: OPS-1, OPS-2
        project_lead: 7
        subtickets: [OPS-1, OPS-2, OPS-3]

Tokens are written verbatim; the store never decrypts them.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from ttsync.core.domain.entities import Project, TicketSystem, User
from ttsync.core.domain.enums import TicketSystemType
from ttsync.core.exceptions import ConfigError

from .memory import InMemoryEntityStore


logger = logging.getLogger("YamlEntityStore")


class YamlEntityStore(InMemoryEntityStore):
    """
    Entity store that loads a YAML file once and rewrites it on every persist.

    Writes go to a temporary file in the same directory which then replaces
    the data file, so a crash never leaves a half-written file behind.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def persist(self, project: Project) -> None:
        with self._lock:
            super().persist(project)
            self._save()

    def persist_user(self, user: User) -> None:
        with self._lock:
            super().persist_user(user)
            self._save()

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read data file {self.path}", cause=e) from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in data file {self.path}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Data file {self.path} must contain a mapping")

        try:
            for raw in data.get("ticket_systems") or []:
                self.add_ticket_system(_ticket_system_from_dict(raw))
            ticket_systems = {t.id: t for t in self.find_ticket_systems()}

            for raw in data.get("users") or []:
                self.add_user(_user_from_dict(raw))
            users = {u.id: u for u in self.find_users()}

            for raw in data.get("projects") or []:
                self.add_project(_project_from_dict(raw, ticket_systems, users))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Malformed entity in data file {self.path}: {e}", cause=e) from e

        logger.debug(
            f"Loaded {len(self._projects)} projects, {len(self._users)} users "
            f"from {self.path}"
        )

    def _save(self) -> None:
        data = {
            "ticket_systems": [t.to_dict() for t in self._ticket_systems.values()],
            "users": [u.to_dict() for u in self._users.values()],
            "projects": [p.to_dict() for p in self._projects.values()],
        }

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Wrote {self.path}")


def _ticket_system_from_dict(raw: dict[str, Any]) -> TicketSystem:
    return TicketSystem(
        id=int(raw["id"]),
        name=str(raw.get("name", "")),
        url=str(raw["url"]),
        type=TicketSystemType.from_string(str(raw.get("type", "jira"))),
        oauth_authorize_url=raw.get("oauth_authorize_url"),
    )


def _user_from_dict(raw: dict[str, Any]) -> User:
    tokens = raw.get("tokens") or {}
    return User(
        id=int(raw["id"]),
        username=str(raw.get("username", "")),
        tokens={int(ts_id): str(token) for ts_id, token in tokens.items() if token is not None},
    )


def _project_from_dict(
    raw: dict[str, Any],
    ticket_systems: dict[int, TicketSystem],
    users: dict[int, User],
) -> Project:
    ticket_system = None
    if raw.get("ticket_system") is not None:
        ticket_system_id = int(raw["ticket_system"])
        if ticket_system_id not in ticket_systems:
            raise ValueError(
                f"project {raw.get('id')} references unknown ticket system {ticket_system_id}"
            )
        ticket_system = ticket_systems[ticket_system_id]

    lead_id = raw.get("project_lead")

    return Project(
        id=int(raw["id"]),
        name=str(raw.get("name", "")),
        ticket_system=ticket_system,
        jira_ticket=raw.get("jira_ticket"),
        project_lead=users.get(int(lead_id)) if lead_id is not None else None,
        subtickets=[str(ticket) for ticket in raw.get("subtickets") or []],
    )
