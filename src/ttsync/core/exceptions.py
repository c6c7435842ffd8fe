"""
Exceptions - Centralized error types for ttsync.

Failures are classified rather than subclassed: every runtime failure that
crosses a component boundary is a ClassifiedError whose ``kind`` names the
failure class. Callers dispatch on ``error.kind`` instead of ordering
``except`` clauses by subclass.

    TtSyncError
    ├── ConfigError          startup preconditions (missing secret, bad file)
    └── ClassifiedError      runtime failures, tagged with an ErrorKind
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Failure classification shared by the cipher, the cache and the sync engine."""

    CREDENTIAL_INVALID = "credential_invalid"
    UNAUTHORIZED = "unauthorized"
    REMOTE_ERROR = "remote_error"
    MALFORMED_TOKEN = "malformed_token"
    CACHE_BACKEND_ERROR = "cache_backend_error"
    NOT_FOUND = "not_found"
    NOT_CONFIGURED = "not_configured"

    @property
    def is_remote(self) -> bool:
        """Whether the failure originated at the ticket system."""
        return self in (ErrorKind.UNAUTHORIZED, ErrorKind.REMOTE_ERROR, ErrorKind.NOT_FOUND)

    @property
    def is_token_failure(self) -> bool:
        """Whether the failure happened while decoding a stored token."""
        return self in (ErrorKind.MALFORMED_TOKEN, ErrorKind.CREDENTIAL_INVALID)


class TtSyncError(Exception):
    """
    Base exception for all ttsync errors.

    Attributes:
        message: Human-readable description.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigError(TtSyncError):
    """Configuration is missing or invalid; raised at construction time."""


class ClassifiedError(TtSyncError):
    """
    A runtime failure tagged with its ErrorKind.

    Attributes:
        kind: The failure classification.
        redirect_url: Re-authentication target (UNAUTHORIZED only).
        status_code: HTTP status of the remote response, when there was one.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: BaseException | None = None,
        redirect_url: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, cause=cause)
        self.kind = kind
        self.redirect_url = redirect_url
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ClassifiedError({self.kind.value!r}, {self.message!r})"

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def malformed_token(cls, message: str, cause: BaseException | None = None) -> ClassifiedError:
        return cls(ErrorKind.MALFORMED_TOKEN, message, cause=cause)

    @classmethod
    def credential_invalid(
        cls, message: str, cause: BaseException | None = None
    ) -> ClassifiedError:
        return cls(ErrorKind.CREDENTIAL_INVALID, message, cause=cause)

    @classmethod
    def unauthorized(
        cls,
        message: str,
        redirect_url: str | None = None,
        cause: BaseException | None = None,
    ) -> ClassifiedError:
        return cls(
            ErrorKind.UNAUTHORIZED,
            message,
            cause=cause,
            redirect_url=redirect_url,
            status_code=401,
        )

    @classmethod
    def not_found(cls, message: str, cause: BaseException | None = None) -> ClassifiedError:
        return cls(ErrorKind.NOT_FOUND, message, cause=cause, status_code=404)

    @classmethod
    def remote_error(
        cls,
        message: str,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ) -> ClassifiedError:
        return cls(ErrorKind.REMOTE_ERROR, message, cause=cause, status_code=status_code)

    @classmethod
    def not_configured(cls, message: str) -> ClassifiedError:
        return cls(ErrorKind.NOT_CONFIGURED, message)

    @classmethod
    def cache_backend_error(
        cls, message: str, cause: BaseException | None = None
    ) -> ClassifiedError:
        return cls(ErrorKind.CACHE_BACKEND_ERROR, message, cause=cause)


__all__ = [
    "ClassifiedError",
    "ConfigError",
    "ErrorKind",
    "TtSyncError",
]
