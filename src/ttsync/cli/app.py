"""
CLI App - Main entry point for the ttsync command line tool.
"""

from __future__ import annotations

import argparse
import logging
import sys

from ttsync import __version__

from .commands import run_encrypt_tokens, run_rotate_tokens, run_sync_subtickets
from .exit_codes import ExitCode
from .logging import setup_logging
from .output import Console


def _common_options() -> argparse.ArgumentParser:
    """Options accepted by every subcommand."""
    common = argparse.ArgumentParser(add_help=False)

    output = common.add_argument_group("output")
    output.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Show progress (-v) and subticket ids (-vv)",
    )
    output.add_argument(
        "-q", "--quiet", action="store_true", help="Only print errors (for cron and scripts)"
    )
    output.add_argument("--no-color", action="store_true", help="Disable colored output")
    output.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    output.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log format (default: text)",
    )
    output.add_argument("--log-file", metavar="PATH", help="Also write logs to this file")

    config = common.add_argument_group("configuration")
    config.add_argument("--config", "-c", metavar="PATH", help="YAML config file")
    config.add_argument("--env-file", metavar="PATH", help=".env file (default: ./.env)")
    config.add_argument(
        "--data-file", metavar="PATH", help="YAML data file (overrides TTSYNC_DATA_FILE)"
    )
    config.add_argument(
        "--cache-backend",
        choices=["memory", "redis"],
        help="Cache backend (overrides TTSYNC_CACHE_BACKEND)",
    )
    return common


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser for ttsync.

    Returns:
        Configured ArgumentParser instance.
    """
    common = _common_options()

    parser = argparse.ArgumentParser(
        prog="ttsync",
        description="Time tracking ticket-system maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync subtickets of every project linked to a ticket system
  ttsync sync-subtickets

  # Sync one project and list the subtickets found
  ttsync sync-subtickets 12 -vv

  # Bypass cached lookups, four projects in parallel
  ttsync sync-subtickets --refresh --workers 4

  # Re-encrypt all tokens after changing TTSYNC_ENCRYPTION_KEY
  TTSYNC_OLD_ENCRYPTION_KEY=previous ttsync rotate-tokens

Environment Variables:
  TTSYNC_ENCRYPTION_KEY  Secret for stored tokens (fallback: APP_SECRET)
  TTSYNC_DATA_FILE       YAML file with ticket systems, users and projects
  TTSYNC_CACHE_BACKEND   memory (default) or redis
  TTSYNC_REDIS_URL       Redis URL for the redis backend
  TTSYNC_CACHE_TTL       Seconds a subticket lookup stays cached (default: 60)
  TTSYNC_HTTP_TIMEOUT    Ticket system request timeout (default: 30)
  TTSYNC_WORKERS         Projects synced in parallel (default: 1)
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    sync = subparsers.add_parser(
        "sync-subtickets",
        parents=[common],
        help="Sync the subtickets of projects from their ticket system",
        description="Sync the subtickets of projects from their ticket system",
    )
    sync.add_argument(
        "project",
        nargs="?",
        type=int,
        help="Project id (default: every project with a ticket system)",
    )
    sync.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Sync N projects in parallel (overrides TTSYNC_WORKERS)",
    )
    sync.add_argument(
        "--refresh",
        action="store_true",
        help="Ignore cached ticket-system lookups",
    )
    sync.set_defaults(handler=run_sync_subtickets)

    rotate = subparsers.add_parser(
        "rotate-tokens",
        parents=[common],
        help="Re-encrypt every stored ticket-system token",
    )
    rotate.set_defaults(handler=run_rotate_tokens)

    encrypt = subparsers.add_parser(
        "encrypt-tokens",
        parents=[common],
        help="Encrypt tokens still stored in plaintext",
    )
    encrypt.set_defaults(handler=run_encrypt_tokens)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Parse arguments and run the selected command.

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.quiet:
        log_level = logging.ERROR
    elif args.verbose >= 2:
        log_level = logging.DEBUG
    elif args.verbose == 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    setup_logging(
        level=log_level,
        log_format=args.log_format,
        log_file=args.log_file,
        static_fields={"service": "ttsync", "version": __version__},
    )

    console = Console(
        color=not args.no_color,
        verbosity=args.verbose,
        quiet=args.quiet,
        json_mode=args.output == "json",
    )

    try:
        return int(args.handler(args, console))
    except KeyboardInterrupt:
        console.error("Interrupted")
        console.flush_errors()
        return ExitCode.CANCELLED


def run() -> None:
    """Console script entry point."""
    sys.exit(main())
