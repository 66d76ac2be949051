"""
FastAPI Dependencies - Shared-secret authentication and service construction.
"""

import hmac
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, Query, status
from structlog import get_logger

from app.config import settings
from app.exceptions import AuthenticationError, EmailConfigurationError
from app.services.email_sender import EmailSender

logger = get_logger(__name__)


def _secrets_match(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode(), expected.encode())


def verify_read_only_key(provided: str | None) -> None:
    """
    Validate a read-only proxy key against configuration.

    An unset server key rejects every request.

    Raises:
        AuthenticationError: If the key is missing or does not match
    """
    expected = settings.read_only_api_key
    if not expected or not provided or not _secrets_match(provided, expected):
        raise AuthenticationError("Invalid or missing API key")


async def require_read_only_api_key(
    x_api_key: str | None = Header(None, description="Read-only proxy key"),
    api_key: str | None = Query(None, description="Read-only proxy key"),
) -> None:
    """
    FastAPI dependency for the read-only proxy.

    Accepts the key from the X-API-Key header or the api_key query parameter.

    Raises:
        HTTPException 401 if the key is missing or invalid
    """
    try:
        verify_read_only_key(x_api_key or api_key)
    except AuthenticationError as exc:
        logger.warning("read_proxy_auth_failed", has_key=bool(x_api_key or api_key))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "ApiKey"},
        ) from exc


async def require_cron_secret(
    x_cron_secret: str | None = Header(None, description="Scheduler shared secret"),
) -> None:
    """
    FastAPI dependency guarding scheduler-triggered endpoints.

    Only enforced when CRON_SECRET is configured.

    Raises:
        HTTPException 401 if the secret is configured and does not match
    """
    expected = settings.cron_secret
    if not expected:
        return
    if not x_cron_secret or not _secrets_match(x_cron_secret, expected):
        logger.warning("cron_secret_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def get_email_sender() -> AsyncGenerator[EmailSender, None]:
    """
    FastAPI dependency building the transactional email sender.

    Raises:
        HTTPException 500 if the mail provider key is not configured
    """
    try:
        sender = EmailSender(
            api_key=settings.resend_api_key,
            from_email=settings.mail_from_email,
            api_url=settings.resend_api_url,
        )
    except EmailConfigurationError as exc:
        logger.error("email_sender_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc

    try:
        yield sender
    finally:
        await sender.close()
