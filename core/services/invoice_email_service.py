"""
Invoice email sending.

Renders an invoice as HTML and sends it to the owner through the email
gateway. A DRAFT invoice becomes SENT once the gateway accepts the email;
any other status is left as it is, so resending is always allowed.
"""

import html
import logging
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.row_store import RowStore
from core.config import ClinicSettings
from core.exceptions import EmailError, InvalidInputError
from core.models import Clinic, InvoiceDetails, InvoiceStatus
from core.money import format_currency
from core.services.invoice_service import InvoiceService
from utils.clinic_context import ClinicContext

logger = logging.getLogger(__name__)


class SentInvoiceEmail(BaseModel):
    """Result of a successful send."""

    message_id: str | None
    recipient: str
    status: InvoiceStatus


class InvoiceEmailService:
    """Service for emailing invoices to owners."""

    def __init__(
        self,
        store: RowStore,
        invoices: InvoiceService,
        email_client: EmailGatewayClient,
        settings: ClinicSettings | None = None
    ):
        self.store = store
        self.invoices = invoices
        self.email_client = email_client
        self.settings = settings or ClinicSettings()

    def _clinic(self, ctx: ClinicContext) -> Clinic | None:
        row = self.store.first("clinics", {"id": ctx.clinic_id})
        if row is None:
            return None
        return Clinic.model_validate(row)

    def _money(self, amount: Decimal) -> str:
        return format_currency(amount, self.settings.currency, self.settings.locale)

    def send_invoice_email(self, ctx: ClinicContext, invoice_id: UUID) -> SentInvoiceEmail:
        """
        Email an invoice to its owner.

        Args:
            ctx: Acting user and clinic
            invoice_id: Invoice to send

        Returns:
            Gateway message id, recipient and the invoice's resulting status

        Raises:
            NotFoundError: If invoice not found
            InvalidInputError: If the owner has no email address
            EmailError: If the gateway rejects or cannot be reached
                (status unchanged)
        """
        details = self.invoices.get_with_items(ctx, invoice_id)
        owner = details.owner
        if owner is None or not owner.email:
            raise InvalidInputError("email", "Owner has no email address on file")

        clinic = self._clinic(ctx)
        clinic_name = (clinic.name if clinic else None) or self.settings.fallback_clinic_name

        reference = details.invoice.reference_number(
            self.settings.invoice_prefix, self.settings.reference_fallback_length
        )
        subject = f"Invoice {reference} — {self._money(details.display_total)}"

        try:
            message_id = self.email_client.send_email(
                to=owner.email,
                subject=subject,
                html=self.render_html(details, clinic, clinic_name, reference),
                from_name=clinic_name,
                reply_to=clinic.email if clinic else None,
            )
        except EmailGatewayError as e:
            raise EmailError(f"Failed to send invoice {reference}: {e}") from e

        status = details.invoice.status
        if status == InvoiceStatus.DRAFT and self.invoices.mark_sent_if_draft(ctx, invoice_id):
            status = InvoiceStatus.SENT

        return SentInvoiceEmail(message_id=message_id, recipient=owner.email, status=status)

    def render_html(
        self,
        details: InvoiceDetails,
        clinic: Clinic | None,
        clinic_name: str,
        reference: str
    ) -> str:
        """Invoice email body. All interpolated text is HTML-escaped."""
        invoice = details.invoice
        esc = html.escape

        if details.items:
            rows = "".join(
                "<tr>"
                f"<td>{esc(item.description)}</td>"
                f'<td style="text-align: center;">{item.quantity}</td>'
                f'<td style="text-align: right;">{self._money(item.unit_price)}</td>'
                f'<td style="text-align: right; font-weight: 600;">{self._money(item.line_total)}</td>'
                "</tr>"
                for item in details.items
            )
        else:
            rows = '<tr><td colspan="4" style="text-align: center; color: #999;">No line items</td></tr>'

        meta = [("Invoice #", reference), ("Issue Date", invoice.issue_date.strftime("%B %d, %Y"))]
        if invoice.due_date is not None:
            meta.append(("Due Date", invoice.due_date.strftime("%B %d, %Y")))
        meta.append(("Status", invoice.status.value.capitalize()))
        meta_rows = "".join(
            f'<tr><td style="color: #999;">{label}</td>'
            f'<td style="text-align: right;">{esc(value)}</td></tr>'
            for label, value in meta
        )

        notes = ""
        if invoice.notes:
            notes = f'<p style="color: #666;">{esc(invoice.notes)}</p>'

        contact = " | ".join(
            esc(value) for value in (clinic.phone if clinic else None,
                                     clinic.email if clinic else None) if value
        )

        return (
            '<div style="max-width: 600px; margin: 0 auto; font-family: sans-serif;">'
            f'<h1 style="color: #059669;">{esc(clinic_name)}</h1>'
            f"<p>Invoice {esc(reference)}</p>"
            f"<p>Hi {esc(details.owner.full_name)},</p>"
            "<p>Please find your invoice details below. "
            "If you have any questions, don't hesitate to reach out.</p>"
            f'<table style="width: 100%;">{meta_rows}</table>'
            '<table style="width: 100%; border-collapse: collapse;">'
            "<thead><tr><th>Description</th><th>Qty</th><th>Unit Price</th><th>Amount</th></tr></thead>"
            f"<tbody>{rows}</tbody>"
            "</table>"
            f'<p style="text-align: right; font-size: 18px; font-weight: 700;">'
            f"Total: {self._money(details.display_total)}</p>"
            f"{notes}"
            f'<p style="color: #999; font-size: 12px;">Thank you for choosing {esc(clinic_name)}</p>'
            f'<p style="color: #999; font-size: 12px;">{contact}</p>'
            "</div>"
        )
