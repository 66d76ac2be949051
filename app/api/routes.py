"""
API Routes - FastAPI endpoints for the device inventory console.

All requests/responses use Pydantic models. Aggregation happens in the
service layer; handlers only map domain objects to responses.
"""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_email_sender, require_cron_secret
from app.config import settings
from app.db.models import Profile
from app.db.session import get_read_db, get_write_db
from app.exceptions import (
    EmailDeliveryError,
    ImportFormatError,
    MissingRecipientError,
    ResourceNotFoundError,
)
from app.models.api import (
    AlertGroupResponse,
    AlertListResponse,
    ClientMailRequest,
    DashboardStatsResponse,
    DueItemResponse,
    DueListKind,
    DueListResponse,
    GeneratedInvoicesResponse,
    HealthResponse,
    ImportEntity,
    ImportResultResponse,
    ImportRowErrorResponse,
    MailBroadcastRequest,
    MailBroadcastResponse,
    MailSentResponse,
    MonthlyRevenueResponse,
    MRRBreakdownResponse,
    MRRDimension,
    RevenueBucketResponse,
    RevenueTrendResponse,
    RoleFlagsResponse,
    StatusCountResponse,
    SubscriptionCreateRequest,
    SubscriptionResponse,
    UnifiedAlertResponse,
)
from app.models.domain import DueItem, UnifiedAlert
from app.observability.logging import log_context
from app.observability.metrics import metrics
from app.services.alerts import alert_label, alert_link, group_alerts_by_type
from app.services.csv_import import get_import_template
from app.services.dashboard import DashboardService
from app.services.email_sender import EmailSender
from app.services.importer import ImportService, decode_upload
from app.services.invoices import generate_period_invoices
from app.services.mail import MailService
from app.services.roles import RoleFlags, UserRole, has_role
from app.services.subscriptions import SubscriptionService

router = APIRouter()


def _alert_response(alert: UnifiedAlert) -> UnifiedAlertResponse:
    return UnifiedAlertResponse(
        id=alert.id,
        type=alert.type,
        severity=alert.severity,
        date=alert.date,
        title=alert.title,
        subtitle=alert.subtitle,
        link=alert.link,
        entity_type=alert.entity_type,
        entity_id=alert.entity_id,
    )


def _due_item_response(item: DueItem) -> DueItemResponse:
    return DueItemResponse(
        id=item.id,
        label=item.label,
        client_name=item.client_name,
        date=item.date,
        amount=item.amount,
    )


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/v1/dashboard/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(db: AsyncSession = Depends(get_read_db)) -> DashboardStatsResponse:
    """
    Headline dashboard figures.

    MRR is the monthly-equivalent sum over active subscriptions; provider_due
    sums open provider payments.
    """
    stats = await DashboardService(db).get_stats()
    return DashboardStatsResponse(
        total_devices=stats.total_devices,
        assigned_devices=stats.assigned_devices,
        active_subscriptions=stats.active_subscriptions,
        mrr=stats.mrr,
        provider_due=stats.provider_due,
    )


@router.get("/v1/dashboard/mrr/{dimension}", response_model=MRRBreakdownResponse)
async def get_mrr_breakdown(
    dimension: MRRDimension,
    top: int | None = Query(None, ge=1, le=100, description="Keep only the N largest groups"),
    db: AsyncSession = Depends(get_read_db),
) -> MRRBreakdownResponse:
    """MRR of active subscriptions grouped by plan, client or device type."""
    breakdown = await DashboardService(db).mrr_breakdown(dimension, top_n=top)
    return MRRBreakdownResponse(
        dimension=breakdown.dimension,
        total_mrr=breakdown.total_mrr,
        buckets=[
            RevenueBucketResponse(
                key=bucket.key,
                label=breakdown.labels.get(bucket.key, bucket.key),
                monthly_total=bucket.monthly_total,
            )
            for bucket in breakdown.buckets
        ],
    )


@router.get("/v1/dashboard/revenue-trend", response_model=RevenueTrendResponse)
async def get_revenue_trend(
    months: int = Query(6, ge=1, le=24),
    db: AsyncSession = Depends(get_read_db),
) -> RevenueTrendResponse:
    """Invoiced revenue per calendar month, oldest first."""
    trend = await DashboardService(db).revenue_trend(months=months)
    return RevenueTrendResponse(
        months=[MonthlyRevenueResponse(month=month, revenue=revenue) for month, revenue in trend]
    )


@router.get("/v1/dashboard/device-status", response_model=list[StatusCountResponse])
async def get_device_status(db: AsyncSession = Depends(get_read_db)) -> list[StatusCountResponse]:
    """Device count per status, largest first."""
    counts = await DashboardService(db).device_status_breakdown()
    return [
        StatusCountResponse(status=device_status, count=count)
        for device_status, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


@router.get("/v1/dashboard/due/{kind}", response_model=DueListResponse)
async def get_due_list(
    kind: DueListKind,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_read_db),
) -> DueListResponse:
    """
    Upcoming and overdue work lists.

    Window lengths come from configuration (RENEWAL_WINDOW_DAYS,
    ENDING_SOON_DAYS, MAINTENANCE_AFTER_DAYS).
    """
    service = DashboardService(db)
    if kind == DueListKind.RENEWALS:
        items = await service.renewals_due(settings.renewal_window_days, limit=limit)
    elif kind == DueListKind.ENDING:
        items = await service.subscriptions_ending(settings.ending_soon_days, limit=limit)
    elif kind == DueListKind.OVERDUE_SUBSCRIPTIONS:
        items = await service.overdue_subscriptions(limit=limit)
    elif kind == DueListKind.OVERDUE_INVOICES:
        items = await service.overdue_invoices(limit=limit)
    else:
        items = await service.devices_in_maintenance(settings.maintenance_after_days, limit=limit)

    return DueListResponse(kind=kind, items=[_due_item_response(item) for item in items])


@router.get("/v1/alerts", response_model=AlertListResponse)
async def get_alerts(
    limit: int | None = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_read_db),
) -> AlertListResponse:
    """
    Unified alerts ranked high, medium, low severity.

    Within a severity, earlier dates come first. Groups hold the same
    alerts per type, in order of each type's highest-ranked alert.
    """
    alerts = await DashboardService(db).unified_alerts(limit or settings.unified_alerts_limit)
    metrics.alerts_served_total.inc(len(alerts))
    return AlertListResponse(
        alerts=[_alert_response(alert) for alert in alerts],
        total=len(alerts),
        groups=[
            AlertGroupResponse(
                type=alert_type,
                label=alert_label(alert_type),
                link=alert_link(alert_type),
                count=len(group),
                alerts=[_alert_response(alert) for alert in group],
            )
            for alert_type, group in group_alerts_by_type(alerts).items()
        ],
    )


# =============================================================================
# CSV Import
# =============================================================================


@router.get("/v1/imports/templates/{entity}", response_class=PlainTextResponse)
async def get_template(entity: ImportEntity) -> PlainTextResponse:
    """Download the header-only CSV template for an entity."""
    return PlainTextResponse(
        get_import_template(entity),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{entity.value}_template.csv"'},
    )


@router.post("/v1/imports/{entity}", response_model=ImportResultResponse)
async def import_csv(
    entity: ImportEntity,
    file: UploadFile = File(..., description="CSV file with a header row"),
    created_by: UUID | None = Form(None, description="Console user recorded on the import job"),
    db: AsyncSession = Depends(get_write_db),
) -> ImportResultResponse:
    """
    Import car trackers or clients from a CSV upload.

    Rows repeating an earlier business key are skipped; rows that fail to
    insert are reported with their line number and do not stop the import.
    """
    file_name = file.filename or f"{entity.value}.csv"
    with log_context(entity=entity.value, file_name=file_name):
        try:
            content = decode_upload(await file.read())
            result = await ImportService(db).import_file(entity, file_name, content, created_by)
        except ImportFormatError as exc:
            metrics.record_error("ImportFormatError", "csv_import")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=exc.message,
            ) from exc

    metrics.record_import(entity.value, result.success, result.failed, result.skipped)
    return ImportResultResponse(
        entity=entity,
        total=result.total,
        success=result.success,
        failed=result.failed,
        skipped=result.skipped,
        errors=[ImportRowErrorResponse(row=e.row, message=e.message) for e in result.errors],
    )


# =============================================================================
# Email
# =============================================================================


@router.post("/v1/invoices/{invoice_id}/email", response_model=MailSentResponse)
async def email_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_read_db),
    sender: EmailSender = Depends(get_email_sender),
) -> MailSentResponse:
    """Email an invoice to its client's address."""
    try:
        result = await MailService(db, sender).send_invoice_email(invoice_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        ) from exc
    except MissingRecipientError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Client has no email address",
        ) from exc
    except EmailDeliveryError as exc:
        metrics.record_email("invoice", ok=False)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=exc.message,
        ) from exc

    metrics.record_email("invoice", ok=True)
    return MailSentResponse(success=True, message_id=result.message_id)


@router.post("/v1/clients/{client_id}/mail", response_model=MailSentResponse)
async def mail_client(
    client_id: UUID,
    request: ClientMailRequest,
    db: AsyncSession = Depends(get_write_db),
    sender: EmailSender = Depends(get_email_sender),
) -> MailSentResponse:
    """
    Send one email to a client from a template or a free-form body.

    {{client_name}} and {{client_email}} placeholders are substituted in both
    subject and body. With sent_by a delivered email is written to
    client_mail_log and to the sender's notifications.
    """
    try:
        with log_context(client_id=str(client_id)):
            result = await MailService(db, sender).send_client_mail(
                client_id,
                request.subject,
                request.body_html,
                template_id=request.template_id,
                sent_by=request.sent_by,
            )
    except ResourceNotFoundError as exc:
        # Client or template
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{exc.resource} not found",
        ) from exc
    except MissingRecipientError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Client has no email address",
        ) from exc
    except EmailDeliveryError as exc:
        metrics.record_email("client_mail", ok=False)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=exc.message,
        ) from exc

    metrics.record_email("client_mail", ok=True)
    return MailSentResponse(success=True, message_id=result.message_id)


@router.post("/v1/mail/broadcast", response_model=MailBroadcastResponse)
async def broadcast_mail(
    request: MailBroadcastRequest,
    db: AsyncSession = Depends(get_write_db),
    sender: EmailSender = Depends(get_email_sender),
) -> MailBroadcastResponse:
    """
    Email every client with an address, from a template or a free-form body.

    active_only limits recipients to active clients (default true);
    device_types limits them to clients currently assigned a device of
    those types. Individual send failures are reported in errors.
    """
    try:
        result = await MailService(db, sender).broadcast(
            request.subject,
            request.body_html,
            template_id=request.template_id,
            active_only=request.active_only,
            device_types=request.device_types,
            sent_by=request.sent_by,
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{exc.resource} not found",
        ) from exc

    metrics.record_email("broadcast", ok=True, count=result.sent)
    metrics.record_email("broadcast", ok=False, count=result.failed)
    return MailBroadcastResponse(
        success=True, sent=result.sent, failed=result.failed, errors=list(result.errors)
    )


# =============================================================================
# Subscriptions
# =============================================================================


@router.post(
    "/v1/subscriptions",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    request: SubscriptionCreateRequest,
    db: AsyncSession = Depends(get_write_db),
) -> SubscriptionResponse:
    """Create a subscription priced from its plan."""
    try:
        subscription = await SubscriptionService(db).create_subscription(
            request.client_id,
            request.plan_id,
            device_id=request.device_id,
            start_date=request.start_date,
            status=request.status,
            notes=request.notes,
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan not found",
        ) from exc

    return SubscriptionResponse.model_validate(subscription)


# =============================================================================
# Profiles
# =============================================================================


@router.get("/v1/profiles/{user_id}/role", response_model=RoleFlagsResponse)
async def get_role_flags(
    user_id: UUID,
    allowed: list[UserRole] = Query(default=[]),
    db: AsyncSession = Depends(get_read_db),
) -> RoleFlagsResponse:
    """
    Capability flags for a console user's role.

    A user without a profile, or with an unknown role, has no role and
    every flag false. allowed is true when the role is one of the given
    roles, or when none are given.
    """
    profile = await db.get(Profile, user_id)
    role = profile.role if profile is not None else None
    flags = RoleFlags.for_role(role)
    return RoleFlagsResponse(
        user_id=user_id,
        role=flags.role.value if flags.role is not None else None,
        is_super_admin=flags.is_super_admin,
        is_admin=flags.is_admin,
        is_front_desk=flags.is_front_desk,
        is_technician=flags.is_technician,
        is_viewer=flags.is_viewer,
        can_edit=flags.can_edit,
        allowed=has_role(role, allowed),
    )


# =============================================================================
# Scheduled Jobs
# =============================================================================


@router.post(
    "/v1/invoices/generate",
    response_model=GeneratedInvoicesResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def generate_invoices(db: AsyncSession = Depends(get_write_db)) -> GeneratedInvoicesResponse:
    """
    Generate client invoices for subscriptions whose period has started.

    Called by the scheduler with X-Cron-Secret when CRON_SECRET is set.
    """
    generated = await generate_period_invoices(db)
    metrics.invoices_generated_total.inc(generated)
    return GeneratedInvoicesResponse(generated=generated)


# =============================================================================
# Health
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_read_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))

        return HealthResponse(
            status="healthy",
            database="connected",
            timestamp=datetime.now(UTC).isoformat(),
        )

    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(exc),
                "timestamp": datetime.now(UTC).isoformat(),
            },
        ) from exc
