"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from app.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    ENTITY = "entity"
    OUTCOME = "outcome"
    KIND = "kind"
    ERROR_TYPE = "error_type"


class ConsoleMetrics:
    """
    Centralized metrics for the inventory console API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - CSV imports (rows by outcome)
    - Transactional email (sends by outcome)
    - Alerts and generated invoices
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "console_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "console_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "console_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "console_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Import Metrics
        # ====================================================================
        self.import_rows_total = Counter(
            "console_import_rows_total",
            "CSV rows processed by import outcome",
            [MetricLabels.ENTITY, MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Email Metrics
        # ====================================================================
        self.emails_sent_total = Counter(
            "console_emails_sent_total",
            "Transactional emails by kind and outcome",
            [MetricLabels.KIND, MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Dashboard Metrics
        # ====================================================================
        self.alerts_served_total = Counter(
            "console_alerts_served_total",
            "Ranked alerts returned to clients",
        )

        self.invoices_generated_total = Counter(
            "console_invoices_generated_total",
            "Client invoices generated by the period job",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "console_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_import(self, entity: str, success: int, failed: int, skipped: int) -> None:
        """Record row outcomes of one CSV import."""
        for outcome, count in (("success", success), ("failed", failed), ("skipped", skipped)):
            if count:
                self.import_rows_total.labels(entity=entity, outcome=outcome).inc(count)

    def record_email(self, kind: str, ok: bool, count: int = 1) -> None:
        """Record transactional email sends (count > 1 for broadcasts)."""
        self.emails_sent_total.labels(kind=kind, outcome="sent" if ok else "failed").inc(count)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = ConsoleMetrics()
