"""Tests for the structlog processor that keeps credentials out of logs."""

from campusconnect.logging import redact_secrets


class TestRedactSecrets:
    """Tests for redact_secrets."""

    def test_long_token_keeps_last_four_characters(self):
        event = redact_secrets(None, "info", {"event": "session_started", "token": "eyJhbGciOiJIUzI1NiJ9.abcd"})
        assert event["token"] == "...abcd"

    def test_short_values_fully_masked(self):
        event = redact_secrets(None, "info", {"event": "sign_in_rejected", "password": "hunter2"})
        assert event["password"] == "***"

    def test_other_keys_untouched(self):
        event = redact_secrets(None, "info", {"event": "session_ended", "session_id": "s-1", "reason": "sign_out"})
        assert event == {"event": "session_ended", "session_id": "s-1", "reason": "sign_out"}
