"""
Tests for the exception hierarchy.
"""

import pytest

from ttsync.core.exceptions import ClassifiedError, ConfigError, ErrorKind, TtSyncError


class TestTtSyncError:
    """Tests for the base exception."""

    def test_message_only(self) -> None:
        error = TtSyncError("Something failed")

        assert str(error) == "Something failed"
        assert error.cause is None

    def test_cause_is_included(self) -> None:
        error = TtSyncError("Wrapper", cause=ValueError("inner"))

        assert str(error) == "Wrapper (caused by: inner)"

    def test_config_error_is_ttsync_error(self) -> None:
        with pytest.raises(TtSyncError):
            raise ConfigError("missing key")


class TestClassifiedError:
    """Tests for ClassifiedError constructors."""

    def test_unauthorized_carries_redirect(self) -> None:
        error = ClassifiedError.unauthorized("401", redirect_url="https://jira/authorize")

        assert error.kind is ErrorKind.UNAUTHORIZED
        assert error.redirect_url == "https://jira/authorize"
        assert error.status_code == 401

    def test_not_found(self) -> None:
        error = ClassifiedError.not_found("gone")

        assert error.kind is ErrorKind.NOT_FOUND
        assert error.status_code == 404

    def test_remote_error_status(self) -> None:
        error = ClassifiedError.remote_error("boom", status_code=500)

        assert error.kind is ErrorKind.REMOTE_ERROR
        assert error.status_code == 500

    @pytest.mark.parametrize(
        ("factory", "kind"),
        [
            (ClassifiedError.malformed_token, ErrorKind.MALFORMED_TOKEN),
            (ClassifiedError.credential_invalid, ErrorKind.CREDENTIAL_INVALID),
            (ClassifiedError.cache_backend_error, ErrorKind.CACHE_BACKEND_ERROR),
            (ClassifiedError.not_configured, ErrorKind.NOT_CONFIGURED),
        ],
    )
    def test_constructors_set_kind(self, factory, kind) -> None:
        assert factory("message").kind is kind

    def test_repr(self) -> None:
        assert repr(ClassifiedError.not_found("gone")) == "ClassifiedError('not_found', 'gone')"


class TestErrorKind:
    """Tests for ErrorKind helpers."""

    def test_token_failures(self) -> None:
        assert ErrorKind.MALFORMED_TOKEN.is_token_failure
        assert ErrorKind.CREDENTIAL_INVALID.is_token_failure
        assert not ErrorKind.UNAUTHORIZED.is_token_failure

    def test_remote_kinds(self) -> None:
        assert ErrorKind.UNAUTHORIZED.is_remote
        assert ErrorKind.REMOTE_ERROR.is_remote
        assert not ErrorKind.CACHE_BACKEND_ERROR.is_remote
