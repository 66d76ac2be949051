"""
Tests for billing-cycle date arithmetic.
"""

from datetime import date

import pytest

from app.services.billing_cycle import (
    add_billing_cycle,
    add_months,
    next_invoice_date,
    window_end,
)


class TestAddMonths:
    """Tests for add_months."""

    def test_simple_shift(self):
        """Mid-month dates keep their day."""
        assert add_months(date(2026, 1, 15), 1) == date(2026, 2, 15)

    def test_clamps_to_month_end(self):
        """Jan 31 plus one month is the last day of February."""
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)

    def test_clamps_in_leap_year(self):
        """Leap years clamp to Feb 29."""
        assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)

    def test_crosses_year(self):
        """Shifting past December rolls the year."""
        assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)

    def test_negative_months(self):
        """Negative shifts move backwards."""
        assert add_months(date(2026, 3, 31), -1) == date(2026, 2, 28)
        assert add_months(date(2026, 1, 1), -6) == date(2025, 7, 1)


class TestAddBillingCycle:
    """Tests for add_billing_cycle."""

    @pytest.mark.parametrize(
        ("cycle", "expected"),
        [
            ("monthly", date(2026, 2, 10)),
            ("quarterly", date(2026, 4, 10)),
            ("yearly", date(2027, 1, 10)),
            ("one_time", date(2026, 2, 10)),
            (None, date(2026, 2, 10)),
        ],
    )
    def test_cycles(self, cycle: str | None, expected: date):
        """Each cycle advances by its period; others advance one month."""
        assert add_billing_cycle(date(2026, 1, 10), cycle) == expected


class TestNextInvoiceDate:
    """Tests for next_invoice_date."""

    def test_from_start_date(self):
        """First invoice is one period after the start date."""
        assert next_invoice_date(date(2026, 5, 31), "quarterly") == date(2026, 8, 31)

    def test_defaults_to_today(self):
        """A missing start date counts from today."""
        assert next_invoice_date(None, "monthly") == add_months(date.today(), 1)


class TestWindowEnd:
    """Tests for window_end."""

    def test_window(self, fixed_today: date):
        """Window end is today plus N days."""
        assert window_end(fixed_today, 14) == date(2026, 3, 24)
