"""
Tests for SubscriptionService.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.db.models import Subscription, SubscriptionPlan
from app.exceptions import ResourceNotFoundError
from app.models.api import SubscriptionStatus
from app.services.billing_cycle import add_months
from app.services.subscriptions import SubscriptionService


def make_plan(**overrides) -> SubscriptionPlan:
    values = {
        "id": uuid4(),
        "name": "Fleet Basic",
        "billing_cycle": "quarterly",
        "amount": Decimal("90.00"),
        "currency": "EUR",
    }
    values.update(overrides)
    return SubscriptionPlan(**values)


class TestCreateSubscription:
    """Tests for create_subscription."""

    @pytest.mark.asyncio
    async def test_copies_plan_pricing(self, db_session: AsyncMock):
        """Plan name, cycle, amount and currency are copied onto the subscription."""
        plan = make_plan()
        db_session.get = AsyncMock(return_value=plan)
        client_id = uuid4()

        subscription = await SubscriptionService(db_session).create_subscription(
            client_id, plan.id, start_date=date(2026, 1, 31)
        )

        assert isinstance(subscription, Subscription)
        assert subscription.id is not None
        assert subscription.client_id == client_id
        assert subscription.plan_id == plan.id
        assert subscription.plan_name == "Fleet Basic"
        assert subscription.billing_cycle == "quarterly"
        assert subscription.amount == Decimal("90.00")
        assert subscription.currency == "EUR"
        assert subscription.status == "active"
        db_session.add.assert_called_once_with(subscription)
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_next_invoice_one_cycle_after_start(self, db_session: AsyncMock):
        """The first invoice is one billing cycle after the start, clamped to month end."""
        plan = make_plan()
        db_session.get = AsyncMock(return_value=plan)

        subscription = await SubscriptionService(db_session).create_subscription(
            uuid4(), plan.id, start_date=date(2026, 1, 31)
        )

        assert subscription.start_date == date(2026, 1, 31)
        assert subscription.next_invoice_date == date(2026, 4, 30)

    @pytest.mark.asyncio
    async def test_defaults_today_monthly_usd(self, db_session: AsyncMock):
        """Without a start date, cycle or currency: today, monthly and USD."""
        plan = make_plan(billing_cycle=None, currency=None)
        db_session.get = AsyncMock(return_value=plan)

        subscription = await SubscriptionService(db_session).create_subscription(
            uuid4(), plan.id, status=SubscriptionStatus.PAUSED, notes="trial"
        )

        assert subscription.start_date == date.today()
        assert subscription.next_invoice_date == add_months(date.today(), 1)
        assert subscription.billing_cycle == "monthly"
        assert subscription.currency == "USD"
        assert subscription.status == "paused"
        assert subscription.notes == "trial"

    @pytest.mark.asyncio
    async def test_unknown_plan(self, db_session: AsyncMock):
        """A missing plan raises ResourceNotFoundError and writes nothing."""
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await SubscriptionService(db_session).create_subscription(uuid4(), uuid4())

        assert exc_info.value.resource == "Plan"
        db_session.add.assert_not_called()
        db_session.commit.assert_not_awaited()
