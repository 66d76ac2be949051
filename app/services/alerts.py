"""
Alert Ranking - Merge unified-alert rows into one severity-ordered list.

Rows come from the get_unified_alerts database function, which already
unions overdue invoices, overdue subscriptions, upcoming renewals,
subscriptions ending soon and long-running maintenance.
"""

from collections.abc import Iterable

from app.models.api import AlertSeverity, AlertType
from app.models.domain import AlertRow, UnifiedAlert

SEVERITY_ORDER: dict[AlertSeverity, int] = {
    AlertSeverity.HIGH: 0,
    AlertSeverity.MEDIUM: 1,
    AlertSeverity.LOW: 2,
}

ALERT_TYPE_LABELS: dict[AlertType, str] = {
    AlertType.OVERDUE_INVOICE: "Overdue invoices",
    AlertType.OVERDUE_SUBSCRIPTION: "Overdue subscriptions",
    AlertType.RENEWAL_DUE: "Renewals due",
    AlertType.SUBSCRIPTION_ENDING_SOON: "Subscriptions ending soon",
    AlertType.DEVICE_MAINTENANCE_LONG: "Devices in maintenance",
    AlertType.CLIENT_MAIL_SENT: "Emails sent",
    AlertType.CLIENT_MAIL_BROADCAST: "Mail broadcasts",
}

ALERT_TYPE_LINKS: dict[AlertType, str] = {
    AlertType.OVERDUE_INVOICE: "/invoices?status=overdue",
    AlertType.OVERDUE_SUBSCRIPTION: "/subscriptions",
    AlertType.RENEWAL_DUE: "/subscriptions",
    AlertType.SUBSCRIPTION_ENDING_SOON: "/subscriptions?end_within=30",
    AlertType.DEVICE_MAINTENANCE_LONG: "/devices?status=maintenance",
    AlertType.CLIENT_MAIL_SENT: "/mail",
    AlertType.CLIENT_MAIL_BROADCAST: "/mail",
}


def coerce_severity(value: str | None) -> AlertSeverity:
    """Map a raw severity string to AlertSeverity, low when unrecognized."""
    try:
        return AlertSeverity(value)
    except ValueError:
        return AlertSeverity.LOW


def to_unified_alert(row: AlertRow) -> UnifiedAlert:
    """Map one database row to the alert shape served to the dashboard."""
    return UnifiedAlert(
        id=row.id,
        type=row.alert_type,
        severity=coerce_severity(row.severity),
        date=row.date_val or "",
        title=row.title,
        subtitle=row.subtitle,
        link=row.link_path,
        entity_type=row.entity_type,
        entity_id=row.entity_id or "",
    )


def _rank_key(alert: UnifiedAlert) -> tuple[int, str]:
    # ISO dates order lexicographically; an empty date sorts first.
    return SEVERITY_ORDER[alert.severity], alert.date


def rank_alerts(rows: Iterable[AlertRow]) -> tuple[UnifiedAlert, ...]:
    """
    Rank alert rows by severity (high first), then by date ascending.

    The sort is stable, so rows with equal severity and date keep their
    input order. Rows for the same entity are never merged.
    """
    return tuple(sorted((to_unified_alert(r) for r in rows), key=_rank_key))


def group_alerts_by_type(alerts: Iterable[UnifiedAlert]) -> dict[str, list[UnifiedAlert]]:
    """Group ranked alerts per type, keeping ranked order within each group."""
    grouped: dict[str, list[UnifiedAlert]] = {}
    for alert in alerts:
        grouped.setdefault(alert.type, []).append(alert)
    return grouped


def alert_label(alert_type: str) -> str:
    """Display label for an alert type; unknown types are shown as-is."""
    try:
        return ALERT_TYPE_LABELS[AlertType(alert_type)]
    except ValueError:
        return alert_type


def alert_link(alert_type: str) -> str:
    """Console page listing every alert of a type; unknown types link to /alerts."""
    try:
        return ALERT_TYPE_LINKS[AlertType(alert_type)]
    except ValueError:
        return "/alerts"
