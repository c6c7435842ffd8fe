"""
Output - Console output formatting for the ttsync commands.

Provides coloured status lines and the per-project sync report.
"""

import json
import sys

from ttsync.application.credentials import CredentialReport
from ttsync.application.sync import SyncReport, SyncResult
from ttsync.core.domain.enums import SyncState


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


class Symbols:
    """Unicode symbols for terminal output."""

    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    DOT = "•"
    WARN = "⚠"
    INFO = "ℹ"
    LINK = "🔗"

    BOX_H = "─"


class Console:
    """
    Console output helper with colors and verbosity levels.

    Verbosity:
        0: failures only
        1: projects found, each project synced and its subticket count
        2: additionally the subticket ids

    Attributes:
        color: Whether to use ANSI color codes.
        verbosity: 0, 1 or 2.
        quiet: Whether to suppress everything but errors.
        json_mode: Whether to output JSON format for programmatic use.
    """

    def __init__(
        self,
        color: bool = True,
        verbosity: int = 0,
        quiet: bool = False,
        json_mode: bool = False,
    ):
        """
        Initialize the console output helper.

        Args:
            color: Enable colored output. Automatically disabled if stdout is not a TTY.
            verbosity: Number of -v flags given.
            quiet: Suppress most output, only show errors.
            json_mode: Output one JSON document instead of text.
        """
        self.json_mode = json_mode
        self.color = color and sys.stdout.isatty() and not json_mode
        self.quiet = quiet or json_mode
        # Quiet mode overrides verbose
        self.verbosity = 0 if self.quiet else verbosity

        self._json_errors: list[str] = []

    @property
    def verbose(self) -> bool:
        return self.verbosity >= 1

    @property
    def very_verbose(self) -> bool:
        return self.verbosity >= 2

    def _c(self, text: str, *codes: str) -> str:
        if not self.color:
            return text
        return "".join(codes) + text + Colors.RESET

    def print(self, text: str = "", force: bool = False) -> None:
        """
        Print text to stdout.

        Args:
            text: Text to print. Defaults to empty string for blank line.
            force: Print even in quiet mode.
        """
        if self.quiet and not force:
            return
        print(text)

    def header(self, text: str) -> None:
        if self.quiet:
            return
        width = max(len(text) + 4, 50)
        border = self._c(Symbols.BOX_H * width, Colors.CYAN) if self.color else "-" * width

        self.print(border)
        self.print(self._c(f"  {text}", Colors.BOLD, Colors.CYAN))
        self.print(border)

    def section(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"{Symbols.ARROW} {text}", Colors.BOLD, Colors.BLUE))

    def success(self, text: str) -> None:
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.CHECK} {text}", Colors.GREEN))

    def error(self, text: str) -> None:
        """
        Print an error message with cross symbol.

        Always prints, even in quiet mode. Collected in JSON mode.
        """
        if self.json_mode:
            self._json_errors.append(text)
            return
        print(self._c(f"{Symbols.CROSS} {text}", Colors.RED))

    def config_errors(self, errors: list[str]) -> None:
        """Print configuration errors; always shown."""
        if self.json_mode:
            self._json_errors.extend(errors)
            return
        print(self._c(f"{Symbols.CROSS} Configuration error", Colors.RED, Colors.BOLD))
        for error in errors:
            print(self._c(f"    {Symbols.DOT} {error}", Colors.RED))

    def warning(self, text: str) -> None:
        """Print a warning. Shown in normal mode, hidden by --quiet."""
        if self.quiet:
            return
        self.print(self._c(f"{Symbols.WARN} {text}", Colors.YELLOW))

    def info(self, text: str) -> None:
        """Print an info line (verbose only)."""
        if not self.verbose:
            return
        self.print(text)

    def detail(self, text: str) -> None:
        """Print a detail line (very verbose only)."""
        if not self.very_verbose:
            return
        self.print(self._c(text, Colors.DIM))

    # -------------------------------------------------------------------------
    # Sync output
    # -------------------------------------------------------------------------

    def projects_found(self, count: int) -> None:
        self.info(f"Found {count} projects with ticket system")

    def project_started(self, project_id: int, project_name: str) -> None:
        self.info(f"Syncing {project_id} {project_name}")

    def project_result(self, result: SyncResult) -> None:
        """
        Print the outcome of one project.

        Failures are always shown (unauthorized with the redirect url); the
        subticket count needs -v, the ids -vv.
        """
        if result.succeeded:
            self.info(f" {len(result.subticket_ids)} subtickets found")
            self.detail(f" {','.join(result.subticket_ids)}")
            return

        failure = result.failure
        if failure is None:
            return

        if result.status is SyncState.UNAUTHORIZED:
            message = f"{failure.message} Project: {result.project_name}"
            if failure.redirect_url and failure.redirect_url not in failure.message:
                message += f" {Symbols.LINK} {failure.redirect_url}"
            self.error(message)
        else:
            self.error(
                f"Project {result.project_id} {result.project_name}: "
                f"{result.status.display_name}: {failure.message}"
            )

    def sync_report(self, report: SyncReport) -> None:
        """Print every project result, then the summary."""
        for result in report.results:
            self.project_started(result.project_id, result.project_name)
            self.project_result(result)
        self.sync_summary(report)

    def sync_summary(self, report: SyncReport) -> None:
        """Print the summary line (verbose), or the JSON document."""
        if self.json_mode:
            output = report.to_dict()
            output["errors"] = self._json_errors
            print(json.dumps(output, indent=2))
            return

        if report.cancelled:
            self.warning(f"Cancelled: {report.summary()}")
        else:
            self.info(report.summary())

    def flush_errors(self) -> None:
        """
        In JSON mode, print the collected errors as a failed-run document.

        Used by commands that stop before they have a report to print.
        """
        if not self.json_mode:
            return
        print(json.dumps({"success": False, "errors": self._json_errors}, indent=2))
        self._json_errors = []

    def credential_report(self, report: CredentialReport, operation: str) -> None:
        for (user_id, ticket_system_id), error in report.failures.items():
            self.error(
                f"User {user_id}, ticket system {ticket_system_id}: "
                f"{error.kind.value}: {error.message}"
            )

        if self.json_mode:
            print(
                json.dumps(
                    {
                        "success": report.success,
                        "updated": report.changed,
                        "unchanged": report.unchanged,
                        "errors": self._json_errors,
                    },
                    indent=2,
                )
            )
            return

        if report.success:
            self.success(f"{operation}: {report.summary()}")
        else:
            self.warning(f"{operation}: {report.summary()}")
