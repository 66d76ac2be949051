"""
Mail Service - Invoice emails, client emails and broadcasts built from hosted-database rows.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import (
    Client,
    ClientInvoice,
    ClientMailLog,
    Device,
    DeviceAssignment,
    MailTemplate,
    Notification,
    SubscriptionPlan,
)
from app.exceptions import EmailDeliveryError, MissingRecipientError, ResourceNotFoundError
from app.models.domain import BroadcastResult, EmailResult, InvoiceEmailData, MailContent
from app.services.email_sender import (
    EmailSender,
    render_invoice_email,
    substitute_placeholders,
)

logger = get_logger(__name__)


class MailService:
    """Look up recipients, render and send transactional email."""

    def __init__(self, session: AsyncSession, sender: EmailSender) -> None:
        """Initialize mail service with database session and email sender."""
        self.session = session
        self.sender = sender

    async def send_invoice_email(self, invoice_id: UUID) -> EmailResult:
        """Email one invoice to its client."""
        row = (
            await self.session.execute(
                select(
                    ClientInvoice,
                    Client.name,
                    Client.email,
                    SubscriptionPlan.name,
                    SubscriptionPlan.billing_cycle,
                    Device.name,
                    Device.identifier,
                )
                .outerjoin(Client, Client.id == ClientInvoice.client_id)
                .outerjoin(SubscriptionPlan, SubscriptionPlan.id == ClientInvoice.plan_id)
                .outerjoin(Device, Device.id == ClientInvoice.device_id)
                .where(ClientInvoice.id == invoice_id)
            )
        ).first()
        if row is None:
            raise ResourceNotFoundError("Invoice", invoice_id)

        invoice, client_name, email, plan_name, plan_cycle, device_name, device_identifier = row
        if not email or not email.strip():
            raise MissingRecipientError(invoice.client_id)

        subject, html = render_invoice_email(
            InvoiceEmailData(
                invoice_number=invoice.invoice_number or "",
                amount=invoice.amount if invoice.amount is not None else Decimal("0"),
                currency=invoice.currency or "USD",
                due_at=invoice.due_at.isoformat() if invoice.due_at else None,
                client_name=client_name,
                period_start=invoice.period_start.isoformat() if invoice.period_start else None,
                period_end=invoice.period_end.isoformat() if invoice.period_end else None,
                plan_name=plan_name,
                plan_billing_cycle=plan_cycle,
                device_label=device_name or device_identifier,
            )
        )
        result = await self.sender.send(email, subject, html)
        if not result.ok:
            raise EmailDeliveryError(result.error or "Failed to send email")
        logger.info("invoice_email_sent", invoice_id=str(invoice_id), message_id=result.message_id)
        return result

    async def _load_template(self, template_id: UUID) -> MailTemplate:
        template = await self.session.get(MailTemplate, template_id)
        if template is None:
            raise ResourceNotFoundError("Template", template_id)
        return template

    async def _resolve_content(
        self, template_id: UUID | None, subject: str | None, body_html: str | None
    ) -> MailContent:
        """A template wins over a free-form subject and body."""
        if template_id is not None:
            template = await self._load_template(template_id)
            return MailContent(subject=template.subject, body_html=template.body_html)
        return MailContent(subject=subject or "", body_html=body_html or "")

    async def send_client_mail(
        self,
        client_id: UUID,
        subject: str | None = None,
        body_html: str | None = None,
        template_id: UUID | None = None,
        sent_by: UUID | None = None,
    ) -> EmailResult:
        """
        Send one email to a client, from a template or a free-form body.

        Checks run in order: client exists, client has an email, template
        exists. When sent_by is given a delivered email is written to the
        mail log and to the sender's notification feed.
        """
        client = await self.session.get(Client, client_id)
        if client is None:
            raise ResourceNotFoundError("Client", client_id)
        if not client.email or not client.email.strip():
            raise MissingRecipientError(client_id)

        content = await self._resolve_content(template_id, subject, body_html)
        final_subject = substitute_placeholders(content.subject, client.name, client.email)
        result = await self.sender.send(
            client.email,
            final_subject,
            substitute_placeholders(content.body_html, client.name, client.email),
        )
        if not result.ok:
            raise EmailDeliveryError(result.error or "Failed to send email")

        if sent_by is not None:
            self.session.add(
                ClientMailLog(
                    sent_by=sent_by,
                    client_id=client_id,
                    template_id=template_id,
                    subject=final_subject,
                    outcome="sent",
                    recipient_email=client.email.strip(),
                )
            )
            self.session.add(
                Notification(
                    user_id=sent_by,
                    type="client_mail_sent",
                    title="Email sent",
                    body=f"{client.name} ({client.email.strip()})",
                    entity_type="client",
                    entity_id=str(client_id),
                )
            )
            await self.session.commit()
        logger.info("client_mail_sent", client_id=str(client_id), logged=sent_by is not None)
        return result

    async def _broadcast_recipients(
        self, active_only: bool, device_types: Sequence[str]
    ) -> list[Client]:
        query = select(Client).where(Client.email.is_not(None), func.trim(Client.email) != "")
        if active_only:
            query = query.where(Client.is_active.is_(True))
        if device_types:
            assigned = (
                select(DeviceAssignment.client_id)
                .join(Device, Device.id == DeviceAssignment.device_id)
                .where(
                    DeviceAssignment.unassigned_at.is_(None),
                    Device.device_type.in_(list(device_types)),
                )
            )
            query = query.where(Client.id.in_(assigned))
        return list((await self.session.execute(query.order_by(Client.name))).scalars().all())

    async def broadcast(
        self,
        subject: str | None = None,
        body_html: str | None = None,
        template_id: UUID | None = None,
        active_only: bool = True,
        device_types: Sequence[str] = (),
        sent_by: UUID | None = None,
    ) -> BroadcastResult:
        """
        Email every matching client, one send per recipient.

        Recipients are clients with an email, optionally only active ones,
        optionally only those currently assigned a device of the given
        types. A failed send is counted and reported; it never stops the
        remaining sends.
        """
        content = await self._resolve_content(template_id, subject, body_html)
        recipients = await self._broadcast_recipients(active_only, device_types)

        sent = 0
        errors: list[str] = []
        for client in recipients:
            email = (client.email or "").strip()
            result = await self.sender.send(
                email,
                substitute_placeholders(content.subject, client.name, email),
                substitute_placeholders(content.body_html, client.name, email),
            )
            if result.ok:
                sent += 1
            else:
                errors.append(f"{client.name or client.id}: {result.error or 'Unknown'}")

        outcome = BroadcastResult(sent=sent, failed=len(errors), errors=tuple(errors))
        if sent_by is not None:
            self.session.add(
                ClientMailLog(
                    sent_by=sent_by,
                    client_id=None,
                    template_id=template_id,
                    subject=content.subject,
                    outcome="sent",
                    recipient_count=outcome.recipients,
                    sent_count=outcome.sent,
                    failed_count=outcome.failed,
                    active_only=active_only,
                )
            )
            self.session.add(
                Notification(
                    user_id=sent_by,
                    type="client_mail_broadcast",
                    title="Broadcast complete",
                    body=f"{outcome.sent} sent, {outcome.failed} failed",
                    entity_type="mail_broadcast",
                    entity_id=None,
                )
            )
            await self.session.commit()

        logger.info(
            "mail_broadcast_completed",
            recipients=outcome.recipients,
            sent=outcome.sent,
            failed=outcome.failed,
            active_only=active_only,
            device_types=list(device_types),
        )
        return outcome
