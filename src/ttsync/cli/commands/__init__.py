"""
CLI Commands Package - Command handlers for the ttsync CLI.
"""

from .credentials import run_encrypt_tokens, run_rotate_tokens
from .sync_subtickets import run_sync_subtickets


__all__ = [
    "run_encrypt_tokens",
    "run_rotate_tokens",
    "run_sync_subtickets",
]
