"""
Transactional email sender over the Resend HTTP API.
"""

from decimal import Decimal
from html import escape

import httpx
from structlog import get_logger

from app.exceptions import EmailConfigurationError
from app.models.domain import EmailResult, InvoiceEmailData

logger = get_logger(__name__)

_ROW_STYLE = "padding:8px 0;border-bottom:1px solid #eee;"
_VALUE_STYLE = "text-align:right;" + _ROW_STYLE


class EmailSender:
    """Send single HTML emails; provider rejections come back as EmailResult(ok=False)."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        api_url: str = "https://api.resend.com/emails",
        http_client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise EmailConfigurationError("RESEND_API_KEY not configured")
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
        return self._http_client

    async def send(self, to: str, subject: str, html: str) -> EmailResult:
        """Send one email to a single recipient."""
        try:
            response = await self.http_client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_email,
                    "to": [to.strip()],
                    "subject": subject,
                    "html": html,
                },
            )
        except httpx.HTTPError as e:
            logger.error("email_send_transport_error", to=to, error=str(e))
            return EmailResult(ok=False, error=f"Email provider unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_error:
            error = data.get("message") or data.get("detail") or "Failed to send email"
            logger.warning(
                "email_send_rejected", to=to, status=response.status_code, error=error
            )
            return EmailResult(ok=False, error=str(error))

        logger.info("email_sent", to=to, message_id=data.get("id"))
        return EmailResult(ok=True, message_id=data.get("id"))

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


def substitute_placeholders(text: str, client_name: str | None, client_email: str | None) -> str:
    """Fill {{client_name}} and {{client_email}} in a mail template."""
    return text.replace("{{client_name}}", (client_name or "").strip()).replace(
        "{{client_email}}", (client_email or "").strip()
    )


def _format_amount(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def _detail_row(label: str, value: str) -> str:
    return (
        f'<tr><td style="{_ROW_STYLE}">{label}</td>'
        f'<td style="{_VALUE_STYLE}">{escape(value)}</td></tr>'
    )


def render_invoice_email(invoice: InvoiceEmailData) -> tuple[str, str]:
    """Build the subject and HTML body of an invoice email."""
    number = invoice.invoice_number
    rows = [_detail_row("Invoice number", number)]
    if invoice.plan_name:
        plan = invoice.plan_name
        if invoice.plan_billing_cycle:
            plan += f" ({invoice.plan_billing_cycle})"
        rows.append(_detail_row("Plan", plan))
    if invoice.device_label:
        rows.append(_detail_row("Device", invoice.device_label))
    if invoice.period_start and invoice.period_end:
        rows.append(_detail_row("Period", f"{invoice.period_start} to {invoice.period_end}"))
    rows.append(_detail_row("Amount", f"{invoice.currency} {_format_amount(invoice.amount)}"))
    rows.append(
        '<tr><td style="padding:8px 0;">Due date</td>'
        f'<td style="text-align:right;padding:8px 0;">{escape(invoice.due_at or "—")}</td></tr>'
    )

    html = "\n".join(
        [
            "<!DOCTYPE html>",
            "<html>",
            f'<head><meta charset="utf-8"><title>Invoice {escape(number)}</title></head>',
            '<body style="font-family:sans-serif;max-width:600px;margin:0 auto;padding:24px;">',
            f'  <h2 style="color:#111;">Invoice {escape(number)}</h2>',
            f"  <p>Hi {escape(invoice.client_name or 'there')},</p>",
            "  <p>Please find your invoice details below:</p>",
            '  <table style="width:100%;border-collapse:collapse;margin:16px 0;">',
            *(f"    {row}" for row in rows),
            "  </table>",
            '  <p style="color:#666;font-size:14px;">Thank you for your business.</p>',
            "</body>",
            "</html>",
        ]
    )
    subject = f"Invoice {number} from Ezyy Inventory"
    return subject, html
