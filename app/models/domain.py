"""
Domain Models - Internal business logic models using dataclasses.

All data structures are strongly typed immutable dataclasses. They are
derived per call from hosted-database rows and never persisted.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from app.models.api import AlertSeverity


@dataclass(frozen=True)
class SubscriptionCharge:
    """Amount and billing cycle of one subscription, optionally with a group key."""

    amount: Decimal | None
    billing_cycle: str | None
    group_key: str | None = None


@dataclass(frozen=True)
class RevenueBucket:
    """Summed monthly-equivalent revenue for one group key."""

    key: str
    monthly_total: Decimal


@dataclass(frozen=True)
class InvoiceAmount:
    """Issued date and amount of one client invoice."""

    issued_at: date | str | None
    amount: Decimal | None


@dataclass(frozen=True)
class AlertRow:
    """Row shape produced by the get_unified_alerts database function."""

    id: str
    alert_type: str
    severity: str
    date_val: str | None
    title: str
    subtitle: str
    link_path: str
    entity_type: str
    entity_id: str | None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "AlertRow":
        """Build from a result row mapping; dates are rendered as ISO strings."""
        date_val = row.get("date_val")
        if isinstance(date_val, date):
            date_val = date_val.isoformat()
        entity_id = row.get("entity_id")
        return cls(
            id=str(row["id"]),
            alert_type=str(row.get("alert_type") or ""),
            severity=str(row.get("severity") or ""),
            date_val=date_val,
            title=str(row.get("title") or ""),
            subtitle=str(row.get("subtitle") or ""),
            link_path=str(row.get("link_path") or ""),
            entity_type=str(row.get("entity_type") or ""),
            entity_id=str(entity_id) if entity_id is not None else None,
        )


@dataclass(frozen=True)
class UnifiedAlert:
    """A normalized, severity-ranked alert."""

    id: str
    type: str
    severity: AlertSeverity
    date: str
    title: str
    subtitle: str
    link: str
    entity_type: str
    entity_id: str


@dataclass(frozen=True)
class DedupResult:
    """Accepted rows with their original 1-based line numbers, plus skip count."""

    unique_rows: tuple[tuple[tuple[str, ...], int], ...]
    skipped: int


@dataclass(frozen=True)
class ImportRowError:
    """A row that failed to insert."""

    row: int
    message: str


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one CSV import call."""

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: tuple[ImportRowError, ...] = field(default_factory=tuple)

    @property
    def processed(self) -> int:
        """Rows seen in the file, duplicates included."""
        return self.success + self.failed + self.skipped


@dataclass(frozen=True)
class EmailResult:
    """Outcome of one transactional email send."""

    ok: bool
    error: str | None = None
    message_id: str | None = None


@dataclass(frozen=True)
class InvoiceEmailData:
    """Invoice fields rendered into the invoice email."""

    invoice_number: str
    amount: Decimal
    currency: str
    due_at: str | None
    client_name: str | None
    period_start: str | None = None
    period_end: str | None = None
    plan_name: str | None = None
    plan_billing_cycle: str | None = None
    device_label: str | None = None


@dataclass(frozen=True)
class DueItem:
    """One row of a dashboard due-date list (renewals, overdue items, maintenance)."""

    id: str
    label: str
    client_name: str | None
    date: str | None
    amount: Decimal | None = None


@dataclass(frozen=True)
class MailContent:
    """Subject and HTML body before placeholder substitution."""

    subject: str
    body_html: str


@dataclass(frozen=True)
class BroadcastResult:
    """Outcome of one broadcast; errors read "<client>: <reason>"."""

    sent: int = 0
    failed: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def recipients(self) -> int:
        return self.sent + self.failed
