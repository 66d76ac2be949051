"""
Dashboard Service - Hosted-database reads feeding the revenue and alert computations.

Queries only fetch rows; every aggregation happens in app.services.revenue
and app.services.alerts.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import (
    Client,
    ClientInvoice,
    Device,
    DeviceAssignment,
    ProviderPayment,
    Subscription,
)
from app.models.api import (
    DeviceStatus,
    InvoiceStatus,
    MRRDimension,
    ProviderPaymentStatus,
    SubscriptionStatus,
)
from app.models.domain import (
    AlertRow,
    DueItem,
    InvoiceAmount,
    RevenueBucket,
    SubscriptionCharge,
    UnifiedAlert,
)
from app.services.alerts import rank_alerts
from app.services.billing_cycle import add_months, window_end
from app.services.revenue import (
    calculate_mrr,
    count_by,
    group_mrr,
    revenue_by_month,
    sum_amounts,
)

logger = get_logger(__name__)

OPEN_PROVIDER_PAYMENT_STATUSES = (
    ProviderPaymentStatus.PENDING.value,
    ProviderPaymentStatus.SCHEDULED.value,
    ProviderPaymentStatus.OVERDUE.value,
)
REVENUE_INVOICE_STATUSES = (
    InvoiceStatus.PAID.value,
    InvoiceStatus.SENT.value,
    InvoiceStatus.OVERDUE.value,
)
UNPAID_INVOICE_STATUSES = (InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)

UNIFIED_ALERTS_QUERY = text("SELECT * FROM get_unified_alerts(:p_limit)")


def _utc_today() -> date:
    """Current UTC date."""
    return datetime.now(UTC).date()


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class DashboardStats:
    """Headline dashboard figures."""

    total_devices: int
    assigned_devices: int
    active_subscriptions: int
    mrr: Decimal
    provider_due: Decimal


@dataclass(frozen=True)
class MRRBreakdown:
    """Grouped MRR plus display labels for the bucket keys."""

    dimension: MRRDimension
    total_mrr: Decimal
    buckets: list[RevenueBucket]
    labels: dict[str, str]


class DashboardService:
    """Read-only dashboard queries over the hosted database."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize dashboard service with database session."""
        self.session = session

    async def get_stats(self) -> DashboardStats:
        """Device counts, active subscription count, MRR and provider payments due."""
        total_devices = (
            await self.session.execute(select(func.count()).select_from(Device))
        ).scalar_one()
        assigned_devices = (
            await self.session.execute(
                select(func.count())
                .select_from(DeviceAssignment)
                .where(DeviceAssignment.unassigned_at.is_(None))
            )
        ).scalar_one()
        active = (
            await self.session.execute(
                select(Subscription.amount, Subscription.billing_cycle).where(
                    Subscription.status == SubscriptionStatus.ACTIVE.value
                )
            )
        ).all()
        provider_amounts = (
            await self.session.execute(
                select(ProviderPayment.amount).where(
                    ProviderPayment.status.in_(OPEN_PROVIDER_PAYMENT_STATUSES)
                )
            )
        ).scalars().all()

        charges = [SubscriptionCharge(amount=a, billing_cycle=c) for a, c in active]
        stats = DashboardStats(
            total_devices=total_devices or 0,
            assigned_devices=assigned_devices or 0,
            active_subscriptions=len(charges),
            mrr=calculate_mrr(charges),
            provider_due=sum_amounts(provider_amounts),
        )
        logger.debug("dashboard_stats_computed", mrr=str(stats.mrr))
        return stats

    async def mrr_breakdown(
        self, dimension: MRRDimension, top_n: int | None = None
    ) -> MRRBreakdown:
        """
        MRR of active subscriptions grouped by plan, client or device type.

        Client buckets are keyed by client id and labelled with the client name.
        """
        base = select(Subscription.amount, Subscription.billing_cycle)
        active = Subscription.status == SubscriptionStatus.ACTIVE.value

        labels: dict[str, str] = {}
        if dimension == MRRDimension.PLAN:
            query = base.add_columns(Subscription.plan_name).where(active)
            rows = (await self.session.execute(query)).all()
            charges = [SubscriptionCharge(a, c, group_key=plan) for a, c, plan in rows]
        elif dimension == MRRDimension.CLIENT:
            query = (
                base.add_columns(Subscription.client_id, Client.name)
                .outerjoin(Client, Client.id == Subscription.client_id)
                .where(active)
            )
            rows = (await self.session.execute(query)).all()
            charges = []
            for amount, cycle, client_id, name in rows:
                key = str(client_id) if client_id is not None else None
                if key is not None and name:
                    labels[key] = name
                charges.append(SubscriptionCharge(amount, cycle, group_key=key))
        else:
            query = (
                base.add_columns(Device.device_type)
                .outerjoin(Device, Device.id == Subscription.device_id)
                .where(active)
            )
            rows = (await self.session.execute(query)).all()
            charges = [SubscriptionCharge(a, c, group_key=dt) for a, c, dt in rows]

        buckets = group_mrr(charges, top_n=top_n)
        return MRRBreakdown(
            dimension=dimension,
            total_mrr=calculate_mrr(charges),
            buckets=buckets,
            labels={b.key: labels.get(b.key, b.key) for b in buckets},
        )

    async def revenue_trend(
        self, months: int = 6, today: date | None = None
    ) -> list[tuple[str, Decimal]]:
        """Invoiced revenue per month over the last N months."""
        today = today or _utc_today()
        start = add_months(today.replace(day=1), -months)
        rows = (
            await self.session.execute(
                select(ClientInvoice.issued_at, ClientInvoice.amount).where(
                    ClientInvoice.issued_at >= start,
                    ClientInvoice.status.in_(REVENUE_INVOICE_STATUSES),
                )
            )
        ).all()
        return revenue_by_month(
            (InvoiceAmount(issued_at=i, amount=a) for i, a in rows), months=months
        )

    async def device_status_breakdown(self) -> dict[str, int]:
        """Device count per status."""
        statuses = (await self.session.execute(select(Device.status))).scalars().all()
        return count_by(statuses, lambda s: s)

    async def unified_alerts(self, limit: int) -> tuple[UnifiedAlert, ...]:
        """Ranked alerts from the get_unified_alerts database function."""
        result = await self.session.execute(UNIFIED_ALERTS_QUERY, {"p_limit": limit})
        rows = [AlertRow.from_mapping(row) for row in result.mappings().all()]
        alerts = rank_alerts(rows)
        logger.info("unified_alerts_ranked", count=len(alerts), limit=limit)
        return alerts

    async def renewals_due(
        self, window_days: int, limit: int = 10, today: date | None = None
    ) -> list[DueItem]:
        """Active subscriptions invoicing between today and the end of the window."""
        today = today or _utc_today()
        query = (
            select(
                Subscription.id,
                Subscription.plan_name,
                Client.name,
                Subscription.next_invoice_date,
                Subscription.amount,
            )
            .outerjoin(Client, Client.id == Subscription.client_id)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.next_invoice_date.is_not(None),
                Subscription.next_invoice_date >= today,
                Subscription.next_invoice_date <= window_end(today, window_days),
            )
            .order_by(Subscription.next_invoice_date.asc())
            .limit(limit)
        )
        return await self._due_items(query)

    async def subscriptions_ending(
        self, days: int, limit: int = 10, today: date | None = None
    ) -> list[DueItem]:
        """Subscriptions whose end date falls within the next N days."""
        today = today or _utc_today()
        query = (
            select(
                Subscription.id,
                Subscription.plan_name,
                Client.name,
                Subscription.end_date,
            )
            .outerjoin(Client, Client.id == Subscription.client_id)
            .where(
                Subscription.end_date.is_not(None),
                Subscription.end_date >= today,
                Subscription.end_date <= window_end(today, days),
            )
            .order_by(Subscription.end_date.asc())
            .limit(limit)
        )
        return await self._due_items(query)

    async def overdue_subscriptions(
        self, limit: int = 10, today: date | None = None
    ) -> list[DueItem]:
        """Active subscriptions whose next invoice date has passed."""
        today = today or _utc_today()
        query = (
            select(
                Subscription.id,
                Subscription.plan_name,
                Client.name,
                Subscription.next_invoice_date,
                Subscription.amount,
            )
            .outerjoin(Client, Client.id == Subscription.client_id)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.next_invoice_date < today,
            )
            .order_by(Subscription.next_invoice_date.asc())
            .limit(limit)
        )
        return await self._due_items(query)

    async def overdue_invoices(self, limit: int = 10, today: date | None = None) -> list[DueItem]:
        """Sent or overdue invoices past their due date."""
        today = today or _utc_today()
        query = (
            select(
                ClientInvoice.id,
                ClientInvoice.invoice_number,
                Client.name,
                ClientInvoice.due_at,
                ClientInvoice.amount,
            )
            .outerjoin(Client, Client.id == ClientInvoice.client_id)
            .where(
                ClientInvoice.status.in_(UNPAID_INVOICE_STATUSES),
                ClientInvoice.due_at < today,
            )
            .order_by(ClientInvoice.due_at.asc())
            .limit(limit)
        )
        return await self._due_items(query)

    async def devices_in_maintenance(
        self, older_than_days: int, limit: int = 10, now: datetime | None = None
    ) -> list[DueItem]:
        """Devices in maintenance not updated for more than N days."""
        cutoff = (now or datetime.now(UTC)) - timedelta(days=older_than_days)
        rows = (
            await self.session.execute(
                select(Device.id, Device.name, Device.identifier, Device.updated_at)
                .where(
                    Device.status == DeviceStatus.MAINTENANCE.value,
                    Device.updated_at < cutoff,
                )
                .order_by(Device.updated_at.asc())
                .limit(limit)
            )
        ).all()
        return [
            DueItem(
                id=str(device_id),
                label=name or identifier or "Unnamed device",
                client_name=None,
                date=_iso(updated_at),
            )
            for device_id, name, identifier, updated_at in rows
        ]

    async def _due_items(self, query) -> list[DueItem]:  # type: ignore[no-untyped-def]
        rows = (await self.session.execute(query)).all()
        return [
            DueItem(
                id=str(row[0]),
                label=row[1],
                client_name=row[2],
                date=_iso(row[3]),
                amount=row[4] if len(row) > 4 else None,
            )
            for row in rows
        ]
