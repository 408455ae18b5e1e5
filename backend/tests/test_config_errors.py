"""
Tests for settings validation and the security error taxonomy.
"""

import pytest
from pydantic import ValidationError

from loginguard.config import Settings
from loginguard.core import (
    ErrorCode,
    ErrorKind,
    SecurityError,
    Severity,
    as_security_error,
    authentication_error,
    rate_limit_error,
    security_error,
    validation_error,
)


def make_settings(**overrides):
    return Settings(_env_file=None, database_url="sqlite://", **overrides)


class TestSettings:
    """Tests for Settings."""

    def test_defaults_match_login_policy(self):
        settings = make_settings()
        limits = settings.rate_limit_config()
        assert limits.max_attempts == 5
        assert limits.window_seconds == 900
        assert limits.escalation_threshold == 10
        assert limits.escalation_window_seconds == 3600

        timer = settings.session_timer_config()
        assert timer.timeout_seconds == 1800
        assert timer.warning_delay_seconds == 1500
        assert timer.throttle_seconds == 2.0

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("SESSION_TIMEOUT_MINUTES", "10")
        settings = make_settings()
        assert settings.rate_limit_config().max_attempts == 3
        assert settings.session_timer_config().timeout_seconds == 600

    def test_log_level_normalized(self):
        assert make_settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            make_settings(log_level="LOUD")

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            make_settings(environment="qa")

    def test_escalation_window_must_cover_base_window(self):
        with pytest.raises(ValidationError):
            make_settings(rate_limit_window_seconds=7200, rate_limit_escalation_window_seconds=3600)

    def test_escalation_threshold_must_cover_max_attempts(self):
        with pytest.raises(ValidationError):
            make_settings(rate_limit_max_attempts=10, rate_limit_escalation_threshold=5)

    def test_production_rejects_warning_after_timeout(self):
        with pytest.raises(ValidationError):
            make_settings(
                environment="production", session_timeout_minutes=5, session_warning_minutes=5
            )

    def test_development_tolerates_warning_after_timeout(self):
        settings = make_settings(session_timeout_minutes=5, session_warning_minutes=5)
        assert settings.session_timer_config().warning_delay_seconds == 240

    def test_bootstrap_email_normalized(self):
        assert make_settings(bootstrap_admin_email=" Root@Example.COM ").bootstrap_admin_email == (
            "root@example.com"
        )


class TestSecurityErrors:
    """Tests for the tagged error constructors."""

    def test_validation_error(self):
        error = validation_error("too short", field="password", context="login")
        assert error.kind is ErrorKind.VALIDATION
        assert error.severity is Severity.LOW
        assert error.status_code == 400
        assert error.user_message == "Invalid password. Please check your input."

    def test_rate_limit_message_rounds_up_minutes(self):
        error = rate_limit_error(retry_after=61)
        assert error.user_message == "Too many attempts. Please try again in 2 minutes."
        assert error.status_code == 429
        assert error.to_response().to_dict()["error"]["details"] == {"retry_after_seconds": 61}

    def test_rate_limit_without_retry_after(self):
        error = rate_limit_error()
        assert error.user_message == "Too many attempts. Please try again later."
        assert error.to_response().details is None

    def test_response_hides_internal_message(self):
        error = authentication_error("hash mismatch for uid-7", code=ErrorCode.INVALID_CREDENTIALS)
        body = error.to_response(request_id="req-1").to_dict()
        assert body == {
            "error": {
                "code": "E2001",
                "message": "Authentication failed. Please check your credentials.",
                "request_id": "req-1",
            }
        }

    def test_to_log_carries_internals(self):
        error = security_error("store timeout", severity=Severity.HIGH, context="login")
        log = error.to_log()
        assert log["message"] == "store timeout"
        assert log["severity"] == "high"
        assert log["context"] == "login"
        assert log["timestamp"].endswith("Z")

    def test_as_security_error_wraps_unknown(self):
        wrapped = as_security_error(KeyError("secret-key"), context="login")
        assert isinstance(wrapped, SecurityError)
        assert wrapped.kind is ErrorKind.SECURITY
        assert wrapped.code == ErrorCode.INTERNAL_ERROR
        assert "secret-key" not in wrapped.user_message

    def test_as_security_error_passes_through(self):
        original = validation_error("bad")
        assert as_security_error(original) is original

    def test_severity_order(self):
        ranks = [s.rank for s in (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)]
        assert ranks == [0, 1, 2, 3]
