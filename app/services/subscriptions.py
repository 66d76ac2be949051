"""
Subscription Service - Create subscriptions priced from a plan.
"""

from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import Subscription, SubscriptionPlan
from app.exceptions import ResourceNotFoundError
from app.models.api import BillingCycle, SubscriptionStatus
from app.services.billing_cycle import next_invoice_date

logger = get_logger(__name__)


class SubscriptionService:
    """Write-side subscription operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_subscription(
        self,
        client_id: UUID,
        plan_id: UUID,
        device_id: UUID | None = None,
        start_date: date | None = None,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        notes: str | None = None,
    ) -> Subscription:
        """
        Create a subscription from a plan.

        Plan name, billing cycle, amount and currency are copied onto the
        subscription so later plan edits never reprice it. The first
        invoice falls one billing cycle after the start date, which
        defaults to today.
        """
        plan = await self.session.get(SubscriptionPlan, plan_id)
        if plan is None:
            raise ResourceNotFoundError("Plan", plan_id)

        start = start_date or date.today()
        billing_cycle = plan.billing_cycle or BillingCycle.MONTHLY.value
        subscription = Subscription(
            id=uuid4(),
            client_id=client_id,
            device_id=device_id,
            plan_id=plan.id,
            plan_name=plan.name,
            billing_cycle=billing_cycle,
            amount=plan.amount,
            currency=plan.currency or "USD",
            status=status.value,
            start_date=start,
            next_invoice_date=next_invoice_date(start, billing_cycle),
            notes=notes,
        )
        self.session.add(subscription)
        await self.session.commit()

        logger.info(
            "subscription_created",
            subscription_id=str(subscription.id),
            client_id=str(client_id),
            plan=plan.name,
            next_invoice_date=subscription.next_invoice_date.isoformat(),
        )
        return subscription
