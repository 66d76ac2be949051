"""
Invoice generation - Delegates period invoicing to the hosted database.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

logger = get_logger(__name__)

GENERATE_PERIOD_INVOICES_QUERY = text("SELECT generate_period_invoices()")


async def generate_period_invoices(session: AsyncSession) -> int:
    """Run the generate_period_invoices database function; returns invoices created."""
    generated = (await session.execute(GENERATE_PERIOD_INVOICES_QUERY)).scalar_one_or_none()
    await session.commit()
    count = generated if isinstance(generated, int) else 0
    logger.info("period_invoices_generated", generated=count)
    return count
