"""
Tests for revenue aggregation.

Covers monthly-equivalent normalization, MRR totals, grouped breakdowns
and the invoice revenue trend.
"""

from datetime import date
from decimal import Decimal

import pytest

from app.models.domain import InvoiceAmount, RevenueBucket, SubscriptionCharge
from app.services.revenue import (
    UNASSIGNED,
    calculate_mrr,
    count_by,
    group_mrr,
    monthly_equivalent,
    revenue_by_month,
    sum_amounts,
    to_decimal,
)


class TestToDecimal:
    """Tests for amount coercion."""

    def test_none_is_zero(self):
        """Null amounts count as zero."""
        assert to_decimal(None) == Decimal("0")

    def test_float_goes_through_str(self):
        """Floats keep their printed value rather than binary noise."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_str(self):
        """Ints and numeric strings convert exactly."""
        assert to_decimal(30) == Decimal("30")
        assert to_decimal("12.50") == Decimal("12.50")


class TestMonthlyEquivalent:
    """Tests for monthly_equivalent."""

    @pytest.mark.parametrize(
        ("amount", "cycle", "expected"),
        [
            (Decimal("30"), "monthly", Decimal("30")),
            (Decimal("90"), "quarterly", Decimal("30")),
            (Decimal("120"), "yearly", Decimal("10")),
            (Decimal("500"), "one_time", Decimal("0")),
        ],
    )
    def test_known_cycles(self, amount: Decimal, cycle: str, expected: Decimal):
        """Each known cycle divides by its length in months."""
        assert monthly_equivalent(amount, cycle) == expected

    def test_unknown_cycle_treated_as_monthly(self):
        """An unrecognized cycle returns the amount unchanged."""
        assert monthly_equivalent(Decimal("45"), "weekly") == Decimal("45")

    def test_missing_cycle_treated_as_monthly(self):
        """A null cycle returns the amount unchanged."""
        assert monthly_equivalent(Decimal("45"), None) == Decimal("45")

    def test_missing_amount_is_zero(self):
        """A null amount contributes nothing."""
        assert monthly_equivalent(None, "yearly") == Decimal("0")


class TestCalculateMRR:
    """Tests for calculate_mrr."""

    def test_monthly_plus_yearly(self):
        """30 monthly plus 120 yearly is 40 per month."""
        charges = [
            SubscriptionCharge(amount=Decimal("30"), billing_cycle="monthly"),
            SubscriptionCharge(amount=Decimal("120"), billing_cycle="yearly"),
        ]
        assert calculate_mrr(charges) == Decimal("40")

    def test_empty_is_zero(self):
        """No charges means zero MRR."""
        assert calculate_mrr([]) == Decimal("0")

    def test_one_time_excluded(self):
        """One-time charges add no recurring revenue."""
        charges = [
            SubscriptionCharge(amount=Decimal("250"), billing_cycle="one_time"),
            SubscriptionCharge(amount=Decimal("15"), billing_cycle="monthly"),
        ]
        assert calculate_mrr(charges) == Decimal("15")


class TestGroupMRR:
    """Tests for group_mrr."""

    def test_groups_sorted_descending(self):
        """Buckets are ordered by monthly total, largest first."""
        charges = [
            SubscriptionCharge(Decimal("10"), "monthly", group_key="Basic"),
            SubscriptionCharge(Decimal("600"), "yearly", group_key="Fleet"),
            SubscriptionCharge(Decimal("20"), "monthly", group_key="Basic"),
        ]
        assert group_mrr(charges) == [
            RevenueBucket(key="Fleet", monthly_total=Decimal("50")),
            RevenueBucket(key="Basic", monthly_total=Decimal("30")),
        ]

    def test_missing_key_uses_fallback(self):
        """Rows without a group key land in the Unassigned bucket."""
        charges = [SubscriptionCharge(Decimal("10"), "monthly", group_key=None)]
        assert group_mrr(charges)[0].key == UNASSIGNED

    def test_custom_fallback(self):
        """The fallback label can be overridden."""
        charges = [SubscriptionCharge(Decimal("10"), "monthly", group_key="")]
        assert group_mrr(charges, fallback="No plan")[0].key == "No plan"

    def test_zero_buckets_dropped(self):
        """Groups whose total is zero are not reported."""
        charges = [
            SubscriptionCharge(Decimal("99"), "one_time", group_key="Setup"),
            SubscriptionCharge(Decimal("10"), "monthly", group_key="Basic"),
        ]
        assert [b.key for b in group_mrr(charges)] == ["Basic"]

    def test_top_n_truncates(self):
        """top_n keeps only the largest groups."""
        charges = [
            SubscriptionCharge(Decimal(str(n)), "monthly", group_key=f"plan-{n}")
            for n in range(1, 6)
        ]
        buckets = group_mrr(charges, top_n=2)
        assert [b.key for b in buckets] == ["plan-5", "plan-4"]

    def test_top_n_zero_returns_nothing(self):
        """A non-positive top_n yields an empty list."""
        charges = [SubscriptionCharge(Decimal("5"), "monthly", group_key="a")]
        assert group_mrr(charges, top_n=0) == []


class TestRevenueByMonth:
    """Tests for revenue_by_month."""

    def test_sums_per_month_oldest_first(self):
        """Invoices are bucketed by YYYY-MM and sorted ascending."""
        invoices = [
            InvoiceAmount(issued_at=date(2026, 2, 14), amount=Decimal("50")),
            InvoiceAmount(issued_at="2026-01-03", amount=Decimal("20")),
            InvoiceAmount(issued_at=date(2026, 2, 1), amount=Decimal("25")),
        ]
        assert revenue_by_month(invoices) == [
            ("2026-01", Decimal("20")),
            ("2026-02", Decimal("75")),
        ]

    def test_skips_missing_issue_date(self):
        """Invoices without an issue date are ignored."""
        invoices = [
            InvoiceAmount(issued_at=None, amount=Decimal("999")),
            InvoiceAmount(issued_at="2026-03-09", amount=None),
        ]
        assert revenue_by_month(invoices) == [("2026-03", Decimal("0"))]

    def test_keeps_most_recent_months(self):
        """months limits the result to the latest N months."""
        invoices = [
            InvoiceAmount(issued_at=f"2026-0{m}-01", amount=Decimal("1")) for m in range(1, 6)
        ]
        assert [m for m, _ in revenue_by_month(invoices, months=2)] == ["2026-04", "2026-05"]


class TestSumAndCount:
    """Tests for sum_amounts and count_by."""

    def test_sum_amounts_handles_nulls(self):
        """Null amounts are skipped in the total."""
        assert sum_amounts([Decimal("10.50"), None, 4]) == Decimal("14.50")

    def test_count_by_first_seen_order(self):
        """Counts keep the order keys were first seen."""
        counts = count_by(["assigned", "in_stock", "assigned", None], lambda s: s)
        assert list(counts.items()) == [("assigned", 2), ("in_stock", 1), ("unknown", 1)]
