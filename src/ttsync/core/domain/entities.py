"""
Domain Entities - Objects owned by the persistent entity store.

ttsync only reads ticket systems and users, and only mutates a project's
subticket list. Creating and deleting entities belongs to the store.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .enums import TicketSystemType


_NATURAL_CHUNK = re.compile(r"(\d+)")


def natural_sort_key(value: str) -> list[Any]:
    """
    Key for natural, case-insensitive ordering ("OPS-2" before "OPS-10").
    """
    return [
        (0, int(chunk), "") if chunk.isdigit() else (1, 0, chunk.lower())
        for chunk in _NATURAL_CHUNK.split(value)
        if chunk
    ]


@dataclass
class TicketSystem:
    """An external issue tracker instance."""

    id: int
    name: str
    url: str
    type: TicketSystemType = TicketSystemType.JIRA
    oauth_authorize_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type.value,
            "oauth_authorize_url": self.oauth_authorize_url,
        }


@dataclass
class User:
    """
    An application user.

    ``tokens`` maps a ticket system id to the user's EncryptedToken for it.
    The values are base64 blobs and are never decrypted in place.
    """

    id: int
    username: str
    tokens: dict[int, str] = field(default_factory=dict)

    def token_for(self, ticket_system: TicketSystem) -> str | None:
        """Return the stored (encrypted) token for a ticket system, if any."""
        return self.tokens.get(ticket_system.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "tokens": dict(self.tokens),
        }


@dataclass
class Project:
    """
    A time-tracking project, optionally linked to a ticket system.

    ``jira_ticket`` holds the project's main ticket keys, comma separated.
    ``subtickets`` is replaced wholesale by a successful sync.
    """

    id: int
    name: str
    ticket_system: TicketSystem | None = None
    jira_ticket: str | None = None
    project_lead: User | None = None
    subtickets: list[str] = field(default_factory=list)

    @property
    def has_ticket_system(self) -> bool:
        return self.ticket_system is not None

    @property
    def main_tickets(self) -> list[str]:
        """Main ticket keys, trimmed, with empty entries dropped."""
        if not self.jira_ticket:
            return []
        return [key.strip() for key in self.jira_ticket.split(",") if key.strip()]

    def replace_subtickets(self, ticket_ids: list[str]) -> None:
        """Replace the stored subticket list (no merge)."""
        self.subtickets = list(ticket_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ticket_system": self.ticket_system.id if self.ticket_system else None,
            "jira_ticket": self.jira_ticket,
            "project_lead": self.project_lead.id if self.project_lead else None,
            "subtickets": list(self.subtickets),
        }

    def __str__(self) -> str:
        return f"{self.id} {self.name}"
