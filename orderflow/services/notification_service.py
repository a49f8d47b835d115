"""
Notification Service - transactional email via the Resend API.

Used for invoice delivery after payment confirmation. Delivery is
best-effort: failures are logged and reported as ``False``, never raised.
"""
from decimal import Decimal
from typing import Optional

import httpx

from orderflow.core.config import settings
from orderflow.core.logging import get_logger
from orderflow.models.accounting import Invoice
from orderflow.models.order import Order

logger = get_logger(__name__)


class NotificationService:
    """Sends transactional emails through Resend."""

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.resend_api_key = api_key if api_key is not None else settings.resend_api_key
        self._transport = transport

    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send email via Resend API.

        Args:
            to: Recipient email address
            subject: Email subject
            html_content: HTML email body
            text_content: Plain text fallback

        Returns:
            True if sent successfully
        """
        if not self.resend_api_key:
            logger.warning("Resend API key not configured, skipping email")
            return False

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.resend_api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": settings.email_from,
                        "to": [to],
                        "subject": subject,
                        "html": html_content,
                        "text": text_content or subject,
                    },
                    timeout=10.0,
                )

                if response.is_success:
                    logger.info("Email sent", to=to, subject=subject)
                    return True
                else:
                    logger.error(
                        "Email send failed",
                        status=response.status_code,
                        response=response.text,
                    )
                    return False

        except httpx.HTTPError as e:
            logger.error("Email send error", error=str(e))
            return False

    def format_invoice_email(self, invoice: Invoice, order: Order) -> tuple[str, str]:
        """
        Format an invoice as email content.

        Returns:
            Tuple of (html_content, text_content)
        """
        rows = "".join(
            f"<tr><td>{item.description or item.product_id}</td>"
            f"<td>{item.quantity}</td>"
            f"<td>£{Decimal(item.total_price):.2f}</td></tr>"
            for item in order.items
        )

        html = f"""
<!DOCTYPE html>
<html>
<body style="font-family: system-ui, sans-serif; color: #1f2937;">
    <h1>Invoice {invoice.invoice_number}</h1>
    <p>Thank you for your order #{order.reference}.</p>
    <table cellpadding="6">
        <tr><th align="left">Item</th><th>Qty</th><th>Total</th></tr>
        {rows}
    </table>
    <p>Subtotal (ex VAT): £{invoice.subtotal:.2f}<br>
       VAT ({invoice.vat_rate:.0f}%): £{invoice.vat_amount:.2f}<br>
       <strong>Total: £{invoice.total:.2f}</strong></p>
    <p>Issued {invoice.issue_date.isoformat()}, due {invoice.due_date.isoformat()}.</p>
</body>
</html>
"""

        text = f"""
Invoice {invoice.invoice_number}

Order #{order.reference}

Subtotal (ex VAT): £{invoice.subtotal:.2f}
VAT ({invoice.vat_rate:.0f}%): £{invoice.vat_amount:.2f}
Total: £{invoice.total:.2f}

Issued {invoice.issue_date.isoformat()}, due {invoice.due_date.isoformat()}.
"""

        return html, text

    async def send_invoice(self, invoice: Invoice, order: Order) -> bool:
        html, text = self.format_invoice_email(invoice, order)
        return await self.send_email(
            to=invoice.customer_email,
            subject=f"Your invoice {invoice.invoice_number}",
            html_content=html,
            text_content=text,
        )


# Singleton instance
notification_service = NotificationService()
