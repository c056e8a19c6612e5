"""
Composite read models returned by detail views.

Joined data can arrive shaped either as a single row or as a one-element
list depending on how it was fetched. These models normalize at the
boundary: to-one relations become a single value or None, to-many
relations become lists, so nothing downstream has to guess.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, model_validator

from core.models.appointment import Appointment
from core.models.appointment_record import (
    AppointmentPrescription,
    AppointmentRecommendation,
    AppointmentVitals,
)
from core.models.clinic import Profile
from core.models.invoice import Invoice, InvoiceItem
from core.models.owner import Owner
from core.models.pet import Pet
from core.money import invoice_total


def one_or_none(value: Any) -> Any:
    """Collapse a to-one join: [row] -> row, [] -> None, row -> row."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def as_list(value: Any) -> list:
    """Normalize a to-many join: None -> [], row -> [row], list -> list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _normalize(data: Any, to_one: tuple[str, ...], to_many: tuple[str, ...]) -> Any:
    if not isinstance(data, dict):
        return data
    data = dict(data)
    for key in to_one:
        if key in data:
            data[key] = one_or_none(data[key])
    for key in to_many:
        if key in data:
            data[key] = as_list(data[key])
    return data


class AppointmentDetails(BaseModel):
    """An appointment with everything the visit page shows."""

    appointment: Appointment
    pet: Pet | None = None
    owner: Owner | None = None
    vet: Profile | None = None
    vitals: AppointmentVitals | None = None
    prescriptions: list[AppointmentPrescription] = []
    recommendations: list[AppointmentRecommendation] = []

    @model_validator(mode="before")
    @classmethod
    def normalize_joins(cls, data: Any) -> Any:
        return _normalize(
            data,
            to_one=("pet", "owner", "vet", "vitals"),
            to_many=("prescriptions", "recommendations"),
        )


class InvoiceDetails(BaseModel):
    """An invoice with its owner and current line items."""

    invoice: Invoice
    owner: Owner | None = None
    items: list[InvoiceItem] = []

    @model_validator(mode="before")
    @classmethod
    def normalize_joins(cls, data: Any) -> Any:
        return _normalize(data, to_one=("owner",), to_many=("items",))

    @property
    def display_total(self) -> Decimal:
        """Derived from the items when there are any, else the stored total."""
        if self.items:
            return invoice_total(self.items)
        return self.invoice.total
