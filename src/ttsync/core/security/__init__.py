"""
Security - Protection of stored credentials.

Provides:
- TokenCipher: AES-256-GCM encryption of ticket-system tokens
"""

from .token_cipher import TokenCipher


__all__ = ["TokenCipher"]
