"""
Domain enums - Ticket system types and per-project sync states.
"""

from __future__ import annotations

from enum import Enum


class TicketSystemType(Enum):
    """Supported external ticket systems."""

    JIRA = "jira"
    OTRS = "otrs"

    @classmethod
    def from_string(cls, value: str) -> TicketSystemType:
        """Parse a ticket system type, defaulting to Jira."""
        value = (value or "").strip().lower()
        for member in cls:
            if member.value == value:
                return member
        return cls.JIRA


class SyncState(Enum):
    """
    Lifecycle of one project within a sync run.

    PENDING is the only non-terminal state; there are no retries within a run.
    """

    PENDING = "pending"
    SYNCED = "synced"
    UNAUTHORIZED = "unauthorized"
    REMOTE_ERROR = "remote_error"
    CREDENTIAL_INVALID = "credential_invalid"
    NOT_CONFIGURED = "not_configured"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncState.PENDING

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ")
