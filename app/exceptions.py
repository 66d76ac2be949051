"""
Exception Classes - Strongly typed exception hierarchy.

The revenue, alert and CSV computations never raise; these exceptions
belong to the database and email layers above them.
"""

from uuid import UUID


class ConsoleError(Exception):
    """Base exception for all console errors."""

    pass


class ResourceNotFoundError(ConsoleError):
    """Raised when a requested row doesn't exist."""

    def __init__(self, resource: str, resource_id: UUID | str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class MissingRecipientError(ConsoleError):
    """Raised when a client has no email address to send to."""

    def __init__(self, client_id: UUID | str) -> None:
        self.client_id = client_id
        super().__init__(f"Client {client_id} has no email address")


class EmailConfigurationError(ConsoleError):
    """Raised when the email provider is not configured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Email configuration error: {message}")


class EmailDeliveryError(ConsoleError):
    """Raised when the email provider rejects a message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"Email delivery failed: {message}")


class ImportFormatError(ConsoleError):
    """Raised when an uploaded import file cannot be read."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Import format error: {message}")


class AuthenticationError(ConsoleError):
    """Raised when authentication fails (invalid API key or cron secret)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")

