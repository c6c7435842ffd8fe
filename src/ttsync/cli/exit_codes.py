"""
Exit codes for the ttsync command line.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    ERROR = 1  # General error, including an unknown project
    CONFIG_ERROR = 2  # Missing encryption key, unreadable data file
    CANCELLED = 130  # Interrupted by the operator (128 + SIGINT)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ExitCode.SUCCESS: "Success",
    ExitCode.ERROR: "Error",
    ExitCode.CONFIG_ERROR: "Configuration error",
    ExitCode.CANCELLED: "Cancelled by user",
}
