"""
Credential maintenance - bulk operations over stored ticket-system tokens.

- rotate_credentials: re-encrypt every token with a fresh nonce, or move
  every token from an old secret to a new one
- encrypt_plaintext_credentials: one-time migration of tokens that were
  stored before encryption was introduced

Each user is handled independently: a token that cannot be processed is
reported and left as it is, and the remaining users are still written.
Token values are never logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ttsync.core.domain.entities import User
from ttsync.core.exceptions import ClassifiedError
from ttsync.core.ports.entity_store import EntityStorePort
from ttsync.core.result import Err, Ok, Result
from ttsync.core.security.token_cipher import TokenCipher


logger = logging.getLogger("credentials")

CredentialKey = tuple[int, int]  # (user id, ticket system id)


@dataclass
class CredentialReport:
    """
    Per-credential outcomes of a maintenance run.

    ``outcomes`` maps (user id, ticket system id) to Ok(changed) or
    Err(ClassifiedError).
    """

    outcomes: dict[CredentialKey, Result] = field(default_factory=dict)

    @property
    def changed(self) -> int:
        return sum(1 for outcome in self.outcomes.values() if outcome.is_ok() and outcome.unwrap())

    @property
    def unchanged(self) -> int:
        return sum(
            1 for outcome in self.outcomes.values() if outcome.is_ok() and not outcome.unwrap()
        )

    @property
    def failures(self) -> dict[CredentialKey, ClassifiedError]:
        return {
            key: outcome.unwrap_err()
            for key, outcome in self.outcomes.items()
            if outcome.is_err()
        }

    @property
    def success(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return (
            f"{self.changed} updated, {self.unchanged} unchanged, "
            f"{len(self.failures)} failed"
        )


def rotate_credentials(
    store: EntityStorePort,
    cipher: TokenCipher,
    old_cipher: TokenCipher | None = None,
) -> CredentialReport:
    """
    Re-encrypt every stored token.

    Args:
        store: Entity store holding the users.
        cipher: Cipher the tokens are written with.
        old_cipher: Cipher the tokens are currently encrypted with. Defaults
            to ``cipher`` (same key, fresh nonce).

    Returns:
        CredentialReport; tokens that fail to decrypt are reported and kept.
    """
    source = old_cipher or cipher

    def reencrypt(token: str) -> str:
        return cipher.encrypt(source.decrypt(token))

    report = _apply(store, reencrypt, "rotate")
    logger.info(f"Token rotation: {report.summary()}")
    return report


def encrypt_plaintext_credentials(store: EntityStorePort, cipher: TokenCipher) -> CredentialReport:
    """
    Encrypt tokens still stored in plaintext.

    Values that already decrypt under ``cipher`` are left untouched, so the
    migration can be run repeatedly. A value shaped like an encrypted token
    that fails authentication was written under another key; it is reported
    as CREDENTIAL_INVALID and never wrapped a second time.
    """

    def encrypt_if_plain(token: str) -> str:
        if not cipher.has_token_layout(token):
            return cipher.encrypt(token)
        cipher.decrypt(token)
        return token

    report = _apply(store, encrypt_if_plain, "encrypt")
    logger.info(f"Plaintext token migration: {report.summary()}")
    return report


def _apply(store: EntityStorePort, transform, operation: str) -> CredentialReport:
    report = CredentialReport()

    for user in store.find_users():
        new_tokens = dict(user.tokens)
        dirty = False

        for ticket_system_id, token in user.tokens.items():
            key = (user.id, ticket_system_id)
            if not token:
                report.outcomes[key] = Ok(False)
                continue
            try:
                new_token = transform(token)
            except ClassifiedError as e:
                logger.warning(
                    f"Cannot {operation} token of user {user.id} for ticket system "
                    f"{ticket_system_id}: {e.kind.value}"
                )
                report.outcomes[key] = Err(e)
                continue

            changed = new_token != token
            report.outcomes[key] = Ok(changed)
            if changed:
                new_tokens[ticket_system_id] = new_token
                dirty = True

        if dirty:
            _persist(store, user, new_tokens)

    return report


def _persist(store: EntityStorePort, user: User, tokens: dict[int, str]) -> None:
    user.tokens = tokens
    store.persist_user(user)
    logger.debug(f"Updated tokens of user {user.id}")
