"""
Billing-cycle date arithmetic.
"""

import calendar
from datetime import date, timedelta

from app.models.api import BillingCycle

_CYCLE_MONTH_STEP = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.YEARLY: 12,
}


def add_months(d: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the target month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def add_billing_cycle(d: date, billing_cycle: str | None) -> date:
    """Date one billing period after d; unknown cycles and one_time advance one month."""
    return add_months(d, _CYCLE_MONTH_STEP.get(billing_cycle or "monthly", 1))


def next_invoice_date(start_date: date | None, billing_cycle: str | None) -> date:
    """First invoice date for a subscription starting on start_date (today if unset)."""
    return add_billing_cycle(start_date or date.today(), billing_cycle)


def window_end(today: date, days: int) -> date:
    """Last date of a window of the given length starting today."""
    return today + timedelta(days=days)
