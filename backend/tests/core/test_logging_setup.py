"""Tests for logging helpers: secret redaction and error events."""
from unittest.mock import MagicMock

from mtg_ingest.core.logging import format_backtrace, log_error, redact_secrets, redact_value


class TestRedaction:
    def test_redacts_api_keys(self):
        assert redact_value("GET /cards?api_key=abc123&x=1") == "GET /cards?api_key=[REDACTED]&x=1"

    def test_redacts_bearer_tokens(self):
        assert redact_value("Authorization: Bearer eyJhbGciOi.x-y") == "Authorization: bearer [REDACTED]"

    def test_redacts_secret_and_token_assignments(self):
        value = redact_value("secret=hunter2 token: 'xyz'")

        assert "hunter2" not in value
        assert "xyz" not in value
        assert "secret=[REDACTED]" in value
        assert "token=[REDACTED]" in value

    def test_plain_text_untouched(self):
        assert redact_value("Fetched top commanders") == "Fetched top commanders"

    def test_processor_only_touches_strings(self):
        event = {"event": "request", "url": "https://x?api_key=abc", "count": 3}

        result = redact_secrets(None, "info", event)

        assert result["url"] == "https://x?api_key=[REDACTED]"
        assert result["count"] == 3


def _raise_nested(depth):
    if depth == 0:
        raise ValueError("boom")
    _raise_nested(depth - 1)


class TestErrorLogging:
    def test_backtrace_is_limited_to_five_frames(self):
        try:
            _raise_nested(10)
        except ValueError as e:
            frames = format_backtrace(e)

        assert len(frames) == 5
        assert all("_raise_nested" in frame for frame in frames)

    def test_log_error_emits_error_occurred(self):
        logger = MagicMock()
        try:
            _raise_nested(0)
        except ValueError as e:
            log_error(logger, e, commander_id=7)

        logger.error.assert_called_once()
        args, kwargs = logger.error.call_args
        assert args == ("error_occurred",)
        assert kwargs["error_class"] == "ValueError"
        assert kwargs["error_message"] == "boom"
        assert kwargs["commander_id"] == 7
        assert 1 <= len(kwargs["backtrace"]) <= 5
