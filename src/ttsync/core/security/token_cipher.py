"""
Token Cipher - Authenticated encryption for stored ticket-system tokens.

Tokens are encrypted with AES-256-GCM under a key derived once from the
application secret. The stored form is::

    base64( nonce[12] || tag[16] || ciphertext )

Plaintext never leaves this module except as the return value of decrypt().
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ttsync.core.exceptions import ClassifiedError, ConfigError


logger = logging.getLogger("TokenCipher")


class TokenCipher:
    """
    Encrypt, decrypt and rotate credential secrets.

    Example:
        >>> cipher = TokenCipher("app-secret")
        >>> blob = cipher.encrypt("oauth-token")
        >>> cipher.decrypt(blob)
        'oauth-token'
    """

    KEY_LENGTH = 32  # AES-256
    NONCE_LENGTH = 12  # 96-bit GCM nonce
    TAG_LENGTH = 16  # 128-bit GCM tag

    def __init__(self, secret: str | bytes | None):
        """
        Initialize the cipher.

        Args:
            secret: Application secret the key is derived from.

        Raises:
            ConfigError: If no secret is configured.
        """
        if secret is None or len(secret) == 0:
            raise ConfigError(
                "Encryption key not configured. Set TTSYNC_ENCRYPTION_KEY in environment."
            )
        if isinstance(secret, str):
            secret = secret.encode("utf-8")

        self._aead = AESGCM(self.derive_key(secret))

    @classmethod
    def derive_key(cls, secret: bytes) -> bytes:
        """Derive the 32-byte cipher key from the configured secret (SHA-256)."""
        return hashlib.sha256(secret).digest()

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a token.

        Args:
            plaintext: The token. An empty string is returned unchanged.

        Returns:
            Base64 EncryptedToken with a fresh nonce.
        """
        if not plaintext:
            return ""

        nonce = os.urandom(self.NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        # cryptography appends the tag; storage order is nonce || tag || ciphertext
        ciphertext, tag = sealed[: -self.TAG_LENGTH], sealed[-self.TAG_LENGTH :]

        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a token produced by encrypt().

        Args:
            blob: Base64 EncryptedToken. An empty string is returned unchanged.

        Returns:
            The plaintext token.

        Raises:
            ClassifiedError: MALFORMED_TOKEN if the blob is not valid base64 or
                too short; CREDENTIAL_INVALID if authentication fails.
        """
        if not blob:
            return ""

        combined = self._decode(blob)
        nonce = combined[: self.NONCE_LENGTH]
        tag = combined[self.NONCE_LENGTH : self.NONCE_LENGTH + self.TAG_LENGTH]
        ciphertext = combined[self.NONCE_LENGTH + self.TAG_LENGTH :]

        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.debug("Token authentication failed")
            raise ClassifiedError.credential_invalid(
                "Token authentication failed - token may be corrupted or tampered", cause=e
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ClassifiedError.malformed_token("Decrypted token is not valid UTF-8") from e

    def rotate(self, blob: str) -> str:
        """
        Re-encrypt a token under a fresh nonce.

        Raises:
            ClassifiedError: Whatever decrypt() raises; never a silent no-op.
        """
        return self.encrypt(self.decrypt(blob))

    def has_token_layout(self, value: str) -> bool:
        """Whether ``value`` is shaped like an EncryptedToken, under any key."""
        try:
            self._decode(value)
        except ClassifiedError:
            return False
        return True

    def is_encrypted(self, value: str) -> bool:
        """Whether ``value`` decrypts under this key."""
        try:
            self.decrypt(value)
        except ClassifiedError:
            return False
        return True

    def _decode(self, blob: str) -> bytes:
        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ClassifiedError.malformed_token("Invalid encrypted token format", cause=e) from e

        if len(combined) < self.NONCE_LENGTH + self.TAG_LENGTH:
            raise ClassifiedError.malformed_token("Encrypted token too short")
        return combined

    def __repr__(self) -> str:
        return "TokenCipher(aes-256-gcm)"
