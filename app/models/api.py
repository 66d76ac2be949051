"""
API Models - Pydantic models for request/response validation.

All data structures are strongly typed.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEVICE_TYPE_SLUG = re.compile(r"[a-z_]+")


class BillingCycle(str, Enum):
    """Recurrence period of a charge."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONE_TIME = "one_time"


class SubscriptionStatus(str, Enum):
    """Subscription status enumeration."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELED = "canceled"
    EXPIRED = "expired"


class InvoiceStatus(str, Enum):
    """Client invoice status enumeration."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"


class DeviceStatus(str, Enum):
    """Device lifecycle status enumeration."""

    IN_STOCK = "in_stock"
    ASSIGNED = "assigned"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"
    LOST = "lost"


class ProviderPaymentStatus(str, Enum):
    """Provider payment status enumeration."""

    SCHEDULED = "scheduled"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class AlertType(str, Enum):
    """Business conditions that surface as unified alerts."""

    OVERDUE_INVOICE = "overdue_invoice"
    OVERDUE_SUBSCRIPTION = "overdue_subscription"
    RENEWAL_DUE = "renewal_due"
    SUBSCRIPTION_ENDING_SOON = "subscription_ending_soon"
    DEVICE_MAINTENANCE_LONG = "device_maintenance_long"
    CLIENT_MAIL_SENT = "client_mail_sent"
    CLIENT_MAIL_BROADCAST = "client_mail_broadcast"


class AlertSeverity(str, Enum):
    """Alert severity, ranked high first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImportEntity(str, Enum):
    """Entities with a CSV import template."""

    CAR_TRACKERS = "car_trackers"
    CLIENTS = "clients"
    SUBSCRIPTIONS = "subscriptions"
    PROVIDER_PAYMENTS = "provider_payments"


class MRRDimension(str, Enum):
    """Grouping attribute for the MRR breakdown."""

    PLAN = "plan"
    CLIENT = "client"
    DEVICE_TYPE = "device_type"


class ReadableTable(str, Enum):
    """Tables exposed through the read-only proxy."""

    DEVICES = "devices"
    CLIENTS = "clients"


# ============================================================================
# Dashboard Models
# ============================================================================


class DashboardStatsResponse(BaseModel):
    """GET /v1/dashboard/stats response."""

    total_devices: int
    assigned_devices: int
    active_subscriptions: int
    mrr: Decimal
    provider_due: Decimal


class RevenueBucketResponse(BaseModel):
    """One group of the MRR breakdown."""

    key: str
    label: str
    monthly_total: Decimal


class MRRBreakdownResponse(BaseModel):
    """GET /v1/dashboard/mrr/{dimension} response."""

    dimension: MRRDimension
    total_mrr: Decimal
    buckets: list[RevenueBucketResponse]


class MonthlyRevenueResponse(BaseModel):
    """Invoiced revenue for one calendar month."""

    month: str = Field(..., description="YYYY-MM")
    revenue: Decimal


class RevenueTrendResponse(BaseModel):
    """GET /v1/dashboard/revenue-trend response."""

    months: list[MonthlyRevenueResponse]


class StatusCountResponse(BaseModel):
    """Count of rows sharing one status value."""

    status: str
    count: int


# ============================================================================
# Alert Models
# ============================================================================


class UnifiedAlertResponse(BaseModel):
    """A single ranked alert."""

    id: str
    type: str
    severity: AlertSeverity
    date: str
    title: str
    subtitle: str
    link: str
    entity_type: str
    entity_id: str


class AlertGroupResponse(BaseModel):
    """Alerts of one type, as shown in one panel of the alerts page."""

    type: str
    label: str
    link: str
    count: int
    alerts: list[UnifiedAlertResponse]


class AlertListResponse(BaseModel):
    """GET /v1/alerts response."""

    alerts: list[UnifiedAlertResponse]
    total: int
    groups: list[AlertGroupResponse] = Field(default_factory=list)


# ============================================================================
# Import Models
# ============================================================================


class ImportRowErrorResponse(BaseModel):
    """A row that failed to insert."""

    row: int = Field(..., description="1-based line number in the uploaded file")
    message: str


class ImportResultResponse(BaseModel):
    """POST /v1/imports/{entity} response."""

    entity: ImportEntity
    total: int
    success: int
    failed: int
    skipped: int
    errors: list[ImportRowErrorResponse]


# ============================================================================
# Mail Models
# ============================================================================


class ClientMailRequest(BaseModel):
    """POST /v1/clients/{client_id}/mail request body."""

    template_id: UUID | None = None
    subject: str | None = Field(None, max_length=500)
    body_html: str | None = None
    sent_by: UUID | None = Field(None, description="Console user recorded in the mail log")

    @model_validator(mode="after")
    def require_content(self) -> "ClientMailRequest":
        """Without a template both subject and body must have visible text."""
        if self.template_id is None and (
            not (self.subject or "").strip() or not (self.body_html or "").strip()
        ):
            raise ValueError("subject and body_html required when not using template_id")
        return self


class MailBroadcastRequest(ClientMailRequest):
    """POST /v1/mail/broadcast request body."""

    active_only: bool = True
    device_types: list[str] = Field(default_factory=list)

    @field_validator("device_types")
    @classmethod
    def keep_device_type_slugs(cls, v: list[str]) -> list[str]:
        """Silently drop entries that are not lower-case device type slugs."""
        return [t for t in v if DEVICE_TYPE_SLUG.fullmatch(t)]


class MailBroadcastResponse(BaseModel):
    """POST /v1/mail/broadcast response."""

    success: bool = True
    sent: int
    failed: int
    errors: list[str]


class MailSentResponse(BaseModel):
    """Result of a successfully sent email."""

    success: bool = True
    message_id: str | None = None


class GeneratedInvoicesResponse(BaseModel):
    """POST /v1/invoices/generate response."""

    generated: int


# ============================================================================
# Read-only Proxy Models
# ============================================================================


class DeviceReadResponse(BaseModel):
    """Device row exposed by the read-only proxy."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str | None
    identifier: str | None
    status: str
    device_type: str
    serial_number: str | None
    created_at: datetime | None
    updated_at: datetime | None


class ClientReadResponse(BaseModel):
    """Client row exposed by the read-only proxy."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    contact_name: str | None
    phone: str | None
    address: str | None
    created_at: datetime | None
    updated_at: datetime | None


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    timestamp: str


class DueListKind(str, Enum):
    """Dashboard due-date lists."""

    RENEWALS = "renewals"
    ENDING = "ending"
    OVERDUE_SUBSCRIPTIONS = "overdue_subscriptions"
    OVERDUE_INVOICES = "overdue_invoices"
    MAINTENANCE = "maintenance"


class DueItemResponse(BaseModel):
    """One row of a dashboard due-date list."""

    id: str
    label: str
    client_name: str | None
    date: str | None
    amount: Decimal | None = None


class DueListResponse(BaseModel):
    """GET /v1/dashboard/due/{kind} response."""

    kind: DueListKind
    items: list[DueItemResponse]


# ============================================================================
# Subscription Models
# ============================================================================


class SubscriptionCreateRequest(BaseModel):
    """POST /v1/subscriptions request body; pricing is copied from the plan."""

    client_id: UUID
    plan_id: UUID
    device_id: UUID | None = None
    start_date: date | None = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    notes: str | None = None


class SubscriptionResponse(BaseModel):
    """A subscription row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    device_id: UUID | None
    plan_id: UUID | None
    plan_name: str
    billing_cycle: str
    amount: Decimal
    currency: str
    status: str
    start_date: date | None
    next_invoice_date: date | None
    notes: str | None


# ============================================================================
# Profile Models
# ============================================================================


class RoleFlagsResponse(BaseModel):
    """GET /v1/profiles/{user_id}/role response."""

    user_id: UUID
    role: str | None
    is_super_admin: bool
    is_admin: bool
    is_front_desk: bool
    is_technician: bool
    is_viewer: bool
    can_edit: bool
    allowed: bool = Field(True, description="Whether the role is one of the requested roles")
