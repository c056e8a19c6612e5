"""Invoice domain models.

Amounts are Decimal. An invoice's stored total is derived from its line
items whenever it has any; see InvoiceService.save_invoice_with_items.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from core.money import line_total
from core.scheduling import reference_number


class InvoiceStatus(str, Enum):
    """
    Invoice lifecycle status.

    Staff set any status by hand. The only automatic transition is
    DRAFT -> SENT after the invoice email is delivered to the gateway.
    """

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


OPEN_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT)
OUTSTANDING_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


class InvoiceHeader(BaseModel):
    """Invoice fields edited alongside its items."""

    owner_id: UUID
    appointment_id: UUID | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    issue_date: date
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    # Manual total, only used when the invoice has no items
    total: Decimal | None = Field(None, ge=0)

    @model_validator(mode="after")
    def due_date_not_before_issue_date(self) -> "InvoiceHeader":
        if self.due_date is not None and self.due_date < self.issue_date:
            raise ValueError("due_date must be on or after issue_date")
        return self


class InvoiceItemInput(BaseModel):
    """A line as submitted from the invoice editor. id is set for existing lines."""

    id: UUID | None = None
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)


class InvoiceItem(BaseModel):
    """Full invoice line as stored."""

    id: UUID
    invoice_id: UUID
    description: str
    quantity: int
    unit_price: Decimal

    model_config = {"from_attributes": True}

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    clinic_id: UUID
    owner_id: UUID
    appointment_id: UUID | None
    invoice_number: int | None
    status: InvoiceStatus
    total: Decimal
    issue_date: date
    due_date: date | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_open(self) -> bool:
        """Draft or sent, i.e. still counted as an open invoice."""
        return self.status in OPEN_STATUSES

    def reference_number(self, prefix: str = "INV", fallback_length: int = 4) -> str:
        """e.g. INV-2024-012."""
        return reference_number(
            prefix, self.invoice_number, self.id, self.created_at, fallback_length
        )


class RevenueSummary(BaseModel):
    """Invoice totals issued within one calendar month."""

    month_start: date
    month_end: date
    paid: Decimal
    outstanding: Decimal

    @property
    def total(self) -> Decimal:
        return self.paid + self.outstanding
