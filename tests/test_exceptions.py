"""
Tests for exception classes.

Covers all exception types and their string representations.
"""

from uuid import uuid4

import pytest

from app.exceptions import (
    AuthenticationError,
    ConsoleError,
    EmailConfigurationError,
    EmailDeliveryError,
    ImportFormatError,
    MissingRecipientError,
    ResourceNotFoundError,
)


class TestConsoleError:
    """Tests for base ConsoleError."""

    def test_is_exception(self):
        """ConsoleError is a subclass of Exception."""
        assert issubclass(ConsoleError, Exception)

    @pytest.mark.parametrize(
        "exc_type",
        [
            AuthenticationError,
            EmailConfigurationError,
            EmailDeliveryError,
            ImportFormatError,
            MissingRecipientError,
            ResourceNotFoundError,
        ],
    )
    def test_hierarchy(self, exc_type: type):
        """Every domain error derives from ConsoleError."""
        assert issubclass(exc_type, ConsoleError)


class TestResourceNotFoundError:
    """Tests for ResourceNotFoundError."""

    def test_attributes_and_message(self):
        """Resource name and id are kept and shown."""
        resource_id = uuid4()
        exc = ResourceNotFoundError("Invoice", resource_id)
        assert exc.resource == "Invoice"
        assert exc.resource_id == resource_id
        assert str(exc) == f"Invoice not found: {resource_id}"


class TestMissingRecipientError:
    """Tests for MissingRecipientError."""

    def test_message(self):
        """The client id is part of the message."""
        exc = MissingRecipientError("client-1")
        assert exc.client_id == "client-1"
        assert "client-1" in str(exc)


class TestEmailErrors:
    """Tests for email exceptions."""

    def test_delivery_error(self):
        """Delivery errors keep the provider message and optional status."""
        exc = EmailDeliveryError("Domain not verified", status_code=403)
        assert exc.message == "Domain not verified"
        assert exc.status_code == 403
        assert str(exc) == "Email delivery failed: Domain not verified"

    def test_configuration_error(self):
        """Configuration errors are prefixed."""
        exc = EmailConfigurationError("RESEND_API_KEY not configured")
        assert str(exc).startswith("Email configuration error:")


class TestOtherErrors:
    """Tests for the remaining message-only exceptions."""

    @pytest.mark.parametrize(
        ("exc_type", "prefix"),
        [
            (ImportFormatError, "Import format error"),
            (AuthenticationError, "Authentication failed"),
        ],
    )
    def test_prefixes(self, exc_type: type, prefix: str):
        """Each error keeps its message and prefixes its string form."""
        exc = exc_type("boom")
        assert exc.message == "boom"
        assert str(exc) == f"{prefix}: boom"
