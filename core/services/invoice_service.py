"""
Invoice service for billing.

An invoice's header and its line items are saved together: the stored
total is recomputed from the submitted items on every save, so it can
never drift from the lines. Header, item deletes and item upserts run in
one store transaction, header first.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from uuid import UUID, uuid4

from clients.row_store import RowStore
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import NotFoundError
from core.models import (
    Invoice,
    InvoiceDetails,
    InvoiceHeader,
    InvoiceItem,
    InvoiceItemInput,
    InvoiceStatus,
    RevenueSummary,
    OPEN_STATUSES,
    OUTSTANDING_STATUSES,
)
from core.money import ZERO, invoice_total
from utils.clinic_context import ClinicContext
from utils.timezone import month_bounds, now_utc

logger = logging.getLogger(__name__)

# Header columns written on every save
_HEADER_COLUMNS = ("owner_id", "appointment_id", "status", "issue_date", "due_date", "notes")


class InvoiceService:
    """Service for invoice operations."""

    def __init__(self, store: RowStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    def _next_invoice_number(self, store: RowStore, clinic_id: UUID) -> int:
        """Next per-clinic sequence number (1 for a clinic's first invoice)."""
        latest = store.first(
            "invoices",
            {"clinic_id": clinic_id, "invoice_number__isnull": False},
            order_by="invoice_number",
            descending=True,
        )
        if latest is None:
            return 1
        return latest["invoice_number"] + 1

    def _require_parents(self, store: RowStore, ctx: ClinicContext, header: InvoiceHeader) -> None:
        if store.first("owners", {"id": header.owner_id, "clinic_id": ctx.clinic_id}) is None:
            raise NotFoundError("owner", header.owner_id)
        if header.appointment_id is not None and store.first(
            "appointments", {"id": header.appointment_id, "clinic_id": ctx.clinic_id}
        ) is None:
            raise NotFoundError("appointment", header.appointment_id)

    def save_invoice_with_items(
        self,
        ctx: ClinicContext,
        header: InvoiceHeader,
        items: Sequence[InvoiceItemInput],
        removed_item_ids: Iterable[UUID] = (),
        invoice_id: UUID | None = None
    ) -> UUID:
        """
        Create or edit an invoice together with its line items.

        Order of writes, all in one transaction:
        1. Header, carrying the total derived from the kept items
        2. Deletes for removed_item_ids
        3. Update for each item with an id, insert for each item without

        With no items left the header's manual total is stored, or zero
        when none was given.

        Args:
            ctx: Acting user and clinic
            header: Invoice header fields
            items: Current line items as edited
            removed_item_ids: Ids of existing lines the user removed
            invoice_id: Existing invoice to edit, None to create

        Returns:
            The invoice id

        Raises:
            InvalidInputError: If a line has a bad quantity or price (nothing is written)
            NotFoundError: If the invoice, its owner or appointment, or an item being updated, is not found
            PersistenceError: If any write fails (the whole save is rolled back)
        """
        removed = set(removed_item_ids)
        kept = [item for item in items if item.id is None or item.id not in removed]

        if kept:
            total = invoice_total(kept)
        else:
            total = header.total if header.total is not None else ZERO

        values = {column: getattr(header, column) for column in _HEADER_COLUMNS}
        values["total"] = total

        with self.store.transaction() as tx:
            self._require_parents(tx, ctx, header)

            if invoice_id is None:
                invoice_id = uuid4()
                row = tx.insert("invoices", {
                    "id": invoice_id,
                    "clinic_id": ctx.clinic_id,
                    "invoice_number": self._next_invoice_number(tx, ctx.clinic_id),
                    **values,
                    "created_at": now_utc(),
                })
                action = AuditAction.CREATE
                changes = {"created": Invoice.model_validate(row).model_dump(mode="json")}
            else:
                scope = {"id": invoice_id, "clinic_id": ctx.clinic_id}
                existing = tx.first("invoices", scope)
                if existing is None:
                    raise NotFoundError("invoice", invoice_id)
                row = tx.update("invoices", scope, values)[0]
                action = AuditAction.UPDATE
                changes = compute_changes(
                    Invoice.model_validate(existing).model_dump(mode="json"),
                    Invoice.model_validate(row).model_dump(mode="json")
                )

            for item_id in removed:
                tx.delete("invoice_items", {"id": item_id, "invoice_id": invoice_id})

            for item in kept:
                fields = {
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
                if item.id is None:
                    tx.insert("invoice_items", {"id": uuid4(), "invoice_id": invoice_id, **fields})
                elif not tx.update("invoice_items", {"id": item.id, "invoice_id": invoice_id}, fields):
                    raise NotFoundError("invoice_item", item.id)

            if removed or kept:
                changes["items"] = {"saved": len(kept), "removed": len(removed)}

            self.audit.log_change(
                ctx,
                entity_type="invoice",
                entity_id=invoice_id,
                action=action,
                changes=changes,
                store=tx
            )

        return invoice_id

    def get_by_id(self, ctx: ClinicContext, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found in the caller's clinic, None otherwise.
        """
        row = self.store.first("invoices", {"id": invoice_id, "clinic_id": ctx.clinic_id})

        if row is None:
            return None

        return Invoice.model_validate(row)

    def list_items(self, ctx: ClinicContext, invoice_id: UUID) -> list[InvoiceItem]:
        """
        Line items of an invoice.

        Raises:
            NotFoundError: If invoice not found
        """
        if self.get_by_id(ctx, invoice_id) is None:
            raise NotFoundError("invoice", invoice_id)

        rows = self.store.select("invoice_items", {"invoice_id": invoice_id}, order_by="id")
        return [InvoiceItem.model_validate(row) for row in rows]

    def get_with_items(self, ctx: ClinicContext, invoice_id: UUID) -> InvoiceDetails:
        """
        Invoice with its owner and line items.

        Raises:
            NotFoundError: If invoice not found
        """
        invoice = self.get_by_id(ctx, invoice_id)
        if invoice is None:
            raise NotFoundError("invoice", invoice_id)

        owner = self.store.first("owners", {"id": invoice.owner_id, "clinic_id": ctx.clinic_id})
        items = self.store.select("invoice_items", {"invoice_id": invoice_id}, order_by="id")

        return InvoiceDetails.model_validate({
            "invoice": invoice,
            "owner": owner,
            "items": items,
        })

    def list_invoices(
        self,
        ctx: ClinicContext,
        status: InvoiceStatus | None = None,
        owner_id: UUID | None = None,
        limit: int = 50
    ) -> list[Invoice]:
        """
        List invoices, newest first.

        Args:
            ctx: Acting user and clinic
            status: Only invoices in this status
            owner_id: Only invoices for this owner
            limit: Maximum results
        """
        filters = {"clinic_id": ctx.clinic_id}
        if status is not None:
            filters["status"] = status
        if owner_id is not None:
            filters["owner_id"] = owner_id

        rows = self.store.select(
            "invoices", filters, order_by="created_at", descending=True, limit=limit
        )

        return [Invoice.model_validate(row) for row in rows]

    def set_status(self, ctx: ClinicContext, invoice_id: UUID, status: InvoiceStatus) -> Invoice:
        """
        Manually set an invoice's status. Any status may follow any other.

        Raises:
            NotFoundError: If invoice not found
        """
        current = self.get_by_id(ctx, invoice_id)
        if current is None:
            raise NotFoundError("invoice", invoice_id)

        if current.status == status:
            return current

        row = self.store.update(
            "invoices", {"id": invoice_id, "clinic_id": ctx.clinic_id}, {"status": status}
        )[0]

        updated = Invoice.model_validate(row)

        self.audit.log_change(
            ctx,
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": current.status.value, "new": updated.status.value}}
        )

        return updated

    def mark_sent_if_draft(self, ctx: ClinicContext, invoice_id: UUID) -> bool:
        """
        Move a DRAFT invoice to SENT after its email went out.

        Conditional on the stored status, so an invoice edited to another
        status in the meantime is left alone.

        Returns:
            True if the status changed
        """
        rows = self.store.update(
            "invoices",
            {"id": invoice_id, "clinic_id": ctx.clinic_id, "status": InvoiceStatus.DRAFT},
            {"status": InvoiceStatus.SENT}
        )
        if not rows:
            return False

        self.audit.log_change(
            ctx,
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": InvoiceStatus.DRAFT.value, "new": InvoiceStatus.SENT.value}}
        )

        return True

    def delete(self, ctx: ClinicContext, invoice_id: UUID) -> bool:
        """
        Permanently delete an invoice and its line items.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(ctx, invoice_id)
        if current is None:
            return False

        with self.store.transaction() as tx:
            tx.delete("invoice_items", {"invoice_id": invoice_id})
            tx.delete("invoices", {"id": invoice_id, "clinic_id": ctx.clinic_id})

            self.audit.log_change(
                ctx,
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
                store=tx
            )

        return True

    def monthly_revenue(self, ctx: ClinicContext, month: date) -> RevenueSummary:
        """
        Paid and outstanding totals for invoices issued in a calendar month.

        Outstanding covers DRAFT, SENT and OVERDUE. Cancelled invoices are
        counted in neither.

        Args:
            ctx: Acting user and clinic
            month: Any day in the month
        """
        first, last = month_bounds(month)
        in_month = {
            "clinic_id": ctx.clinic_id,
            "issue_date__gte": first,
            "issue_date__lte": last,
        }

        paid = self.store.select("invoices", {**in_month, "status": InvoiceStatus.PAID})
        outstanding = self.store.select(
            "invoices", {**in_month, "status__in": list(OUTSTANDING_STATUSES)}
        )

        return RevenueSummary(
            month_start=first,
            month_end=last,
            paid=sum((row["total"] for row in paid), ZERO),
            outstanding=sum((row["total"] for row in outstanding), ZERO),
        )

    def count_open(self, ctx: ClinicContext) -> int:
        """Number of DRAFT or SENT invoices."""
        return len(self.store.select(
            "invoices",
            {"clinic_id": ctx.clinic_id, "status__in": list(OPEN_STATUSES)}
        ))
