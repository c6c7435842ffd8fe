"""
Core layer - Domain model, ports, errors and security primitives.

Nothing in core depends on adapters, application or cli.
"""

from .exceptions import ClassifiedError, ConfigError, ErrorKind, TtSyncError
from .result import Err, Ok, Result, ResultError


__all__ = [
    "ClassifiedError",
    "ConfigError",
    "Err",
    "ErrorKind",
    "Ok",
    "Result",
    "ResultError",
    "TtSyncError",
]
