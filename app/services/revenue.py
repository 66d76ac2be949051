"""
Revenue Aggregation - Monthly recurring revenue over subscription rows.

Pure functions over rows already fetched by the dashboard service. Callers
filter to active subscriptions before aggregating.
"""

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable
from datetime import date
from decimal import Decimal
from typing import TypeVar

from app.models.api import BillingCycle
from app.models.domain import InvoiceAmount, RevenueBucket, SubscriptionCharge

T = TypeVar("T")

ZERO = Decimal("0")
UNASSIGNED = "Unassigned"

# Divisor turning one charge into its monthly equivalent; one-time charges
# carry no recurring revenue.
_CYCLE_MONTHS: dict[str, int | None] = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.YEARLY: 12,
    BillingCycle.ONE_TIME: None,
}


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce an amount column to Decimal, null as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def monthly_equivalent(
    amount: Decimal | int | float | None, billing_cycle: str | None
) -> Decimal:
    """
    Convert a charge to its monthly-equivalent amount.

    Unknown or missing cycles are treated as monthly.
    """
    value = to_decimal(amount)
    if billing_cycle not in _CYCLE_MONTHS:
        return value
    months = _CYCLE_MONTHS[billing_cycle]
    if months is None:
        return ZERO
    if months == 1:
        return value
    return value / months


def calculate_mrr(charges: Iterable[SubscriptionCharge]) -> Decimal:
    """Sum monthly equivalents over all charges."""
    return sum(
        (monthly_equivalent(c.amount, c.billing_cycle) for c in charges),
        start=ZERO,
    )


def group_mrr(
    charges: Iterable[SubscriptionCharge],
    top_n: int | None = None,
    fallback: str = UNASSIGNED,
) -> list[RevenueBucket]:
    """
    Sum monthly equivalents per group key.

    Rows without a key land in the fallback bucket. Buckets with a total of
    zero or less are dropped; the rest are ordered by total, largest first,
    and optionally cut to the first top_n.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for charge in charges:
        key = charge.group_key if charge.group_key else fallback
        totals[key] += monthly_equivalent(charge.amount, charge.billing_cycle)

    buckets = [
        RevenueBucket(key=key, monthly_total=total) for key, total in totals.items() if total > 0
    ]
    buckets.sort(key=lambda b: b.monthly_total, reverse=True)
    if top_n is not None:
        buckets = buckets[: max(top_n, 0)]
    return buckets


def revenue_by_month(
    invoices: Iterable[InvoiceAmount], months: int | None = None
) -> list[tuple[str, Decimal]]:
    """
    Sum invoice amounts by YYYY-MM of their issue date.

    Invoices without an issue date are skipped. Months are returned oldest
    first; with months set, only the most recent ones are kept.
    """
    by_month: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for invoice in invoices:
        issued = invoice.issued_at
        if isinstance(issued, date):
            issued = issued.isoformat()
        month = (issued or "")[:7]
        if not month:
            continue
        by_month[month] += to_decimal(invoice.amount)

    ordered = sorted(by_month.items())
    if months is not None:
        ordered = ordered[-months:] if months > 0 else []
    return ordered


def sum_amounts(amounts: Iterable[Decimal | int | float | None]) -> Decimal:
    """Plain sum of amounts, null as zero."""
    return sum((to_decimal(a) for a in amounts), start=ZERO)


def count_by(
    rows: Iterable[T], key: Callable[[T], Hashable | None], fallback: str = "unknown"
) -> dict[str, int]:
    """Count rows per key value, in first-seen order."""
    counts: dict[str, int] = {}
    for row in rows:
        value = key(row)
        label = str(value) if value is not None else fallback
        counts[label] = counts.get(label, 0) + 1
    return counts
