"""
Tests for structured logging processors and context.
"""

import pytest
import structlog

from app.observability.logging import (
    REDACTED,
    build_processors,
    log_context,
    mask_email,
    redact_sensitive,
)


class TestRedaction:
    """Tests for redact_sensitive."""

    def test_secrets_are_redacted(self):
        """Credential values never reach the renderer."""
        event = redact_sensitive(
            None,
            "info",
            {"event": "x", "x-api-key": "k-123", "cron_secret": "s", "resend_api_key": "re_1"},
        )
        assert event["x-api-key"] == REDACTED
        assert event["cron_secret"] == REDACTED
        assert event["resend_api_key"] == REDACTED

    def test_empty_secret_kept(self):
        """An empty value shows the credential was missing."""
        event = redact_sensitive(None, "info", {"event": "x", "api_key": ""})
        assert event["api_key"] == ""

    def test_recipient_masked(self):
        """Recipient addresses keep only the first letter and domain."""
        event = redact_sensitive(None, "info", {"event": "email_sent", "to": "billing@acme.test"})
        assert event["to"] == "b***@acme.test"

    def test_other_fields_untouched(self):
        """Ordinary context passes through."""
        event = redact_sensitive(None, "info", {"event": "x", "entity": "clients", "row": 3})
        assert event == {"event": "x", "entity": "clients", "row": 3}

    def test_mask_without_at(self):
        """A value that is not an address is fully redacted."""
        assert mask_email("not-an-address") == REDACTED


class TestProcessors:
    """Tests for build_processors."""

    def test_json_renderer_last(self):
        """JSON format ends with the JSON renderer after redaction."""
        processors = build_processors("json", debug=False)
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert processors.index(redact_sensitive) < len(processors) - 1

    def test_console_renderer(self):
        """Console format uses the dev renderer."""
        processors = build_processors("console", debug=True)
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestLogContext:
    """Tests for log_context."""

    def test_binds_and_unbinds(self):
        """Context is visible inside the block and removed after."""
        with log_context(entity="clients", file_name="clients.csv"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["entity"] == "clients"
            assert bound["file_name"] == "clients.csv"

        assert "entity" not in structlog.contextvars.get_contextvars()

    def test_none_values_skipped(self):
        """None values are not bound."""
        with log_context(client_id=None, request_id="req-1"):
            bound = structlog.contextvars.get_contextvars()
            assert "client_id" not in bound
            assert bound["request_id"] == "req-1"

    def test_unbinds_on_error(self):
        """Context is removed when the block raises."""
        with pytest.raises(ValueError), log_context(request_id="req-2"):
            raise ValueError("boom")
        assert "request_id" not in structlog.contextvars.get_contextvars()
