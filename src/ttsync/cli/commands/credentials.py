"""
Credential maintenance command handlers.

- run_rotate_tokens: re-encrypt every stored token (fresh nonce, or from the
  secret in TTSYNC_OLD_ENCRYPTION_KEY to the current one)
- run_encrypt_tokens: encrypt tokens still stored in plaintext
"""

from __future__ import annotations

import argparse
import os

from ttsync.application.credentials import encrypt_plaintext_credentials, rotate_credentials
from ttsync.core.exceptions import ConfigError
from ttsync.core.ports.entity_store import EntityStorePort
from ttsync.core.security.token_cipher import TokenCipher

from ..exit_codes import ExitCode
from ..output import Console
from .wiring import load_config, open_store


__all__ = ["run_encrypt_tokens", "run_rotate_tokens"]

OLD_KEY_ENV = "TTSYNC_OLD_ENCRYPTION_KEY"


def run_rotate_tokens(
    args: argparse.Namespace,
    console: Console,
    store: EntityStorePort | None = None,
) -> int:
    try:
        config = load_config(args)
        cipher = TokenCipher(config.encryption_key)
        old_secret = os.environ.get(OLD_KEY_ENV)
        old_cipher = TokenCipher(old_secret) if old_secret else None
        if store is None:
            store = open_store(config)
    except ConfigError as e:
        console.config_errors([e.message])
        console.flush_errors()
        return ExitCode.CONFIG_ERROR

    report = rotate_credentials(store, cipher, old_cipher=old_cipher)
    console.credential_report(report, "Token rotation")
    return ExitCode.SUCCESS if report.success else ExitCode.ERROR


def run_encrypt_tokens(
    args: argparse.Namespace,
    console: Console,
    store: EntityStorePort | None = None,
) -> int:
    try:
        config = load_config(args)
        cipher = TokenCipher(config.encryption_key)
        if store is None:
            store = open_store(config)
    except ConfigError as e:
        console.config_errors([e.message])
        console.flush_errors()
        return ExitCode.CONFIG_ERROR

    report = encrypt_plaintext_credentials(store, cipher)
    console.credential_report(report, "Plaintext token migration")
    return ExitCode.SUCCESS if report.success else ExitCode.ERROR
