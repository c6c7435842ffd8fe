"""
Application layer - Use cases built on the core ports.
"""

from .credentials import CredentialReport, encrypt_plaintext_credentials, rotate_credentials
from .sync import SubticketSyncOrchestrator, SyncFailure, SyncReport, SyncResult


__all__ = [
    "CredentialReport",
    "SubticketSyncOrchestrator",
    "SyncFailure",
    "SyncReport",
    "SyncResult",
    "encrypt_plaintext_credentials",
    "rotate_credentials",
]
