"""
Records attached to a single appointment during or after the visit.

Vitals are one-per-appointment (latest write wins). Prescriptions and
recommendations are ordered collections with insert and delete only.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class VitalsInput(BaseModel):
    """Vitals captured at a visit."""

    weight_lbs: Decimal | None = Field(None, gt=0)
    temperature_f: Decimal | None = Field(None, gt=0)
    heart_rate_bpm: int | None = Field(None, gt=0)

    @model_validator(mode="after")
    def require_at_least_one_reading(self) -> "VitalsInput":
        if self.weight_lbs is None and self.temperature_f is None and self.heart_rate_bpm is None:
            raise ValueError("At least one of weight_lbs, temperature_f, or heart_rate_bpm is required")
        return self


class AppointmentVitals(BaseModel):
    """Stored vitals snapshot."""

    id: UUID
    appointment_id: UUID
    weight_lbs: Decimal | None
    temperature_f: Decimal | None
    heart_rate_bpm: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PrescriptionType(str, Enum):
    VACCINATION = "vaccination"
    PRESCRIPTION = "prescription"
    PROCEDURE = "procedure"
    OTHER = "other"


class PrescriptionStatus(str, Enum):
    ADMINISTERED = "administered"
    DISPENSED = "dispensed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class PrescriptionCreate(BaseModel):
    """Data required to add a prescription, vaccination, or procedure."""

    item_name: str = Field(..., min_length=1, max_length=255)
    type: PrescriptionType = PrescriptionType.PRESCRIPTION
    dosage_instructions: str | None = Field(None, max_length=2000)
    quantity: str | None = Field(None, max_length=100)  # free text, e.g. "30 tablets"
    status: PrescriptionStatus = PrescriptionStatus.PENDING


class AppointmentPrescription(BaseModel):
    id: UUID
    appointment_id: UUID
    item_name: str
    type: PrescriptionType
    dosage_instructions: str | None
    quantity: str | None
    status: PrescriptionStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class RecommendationPriority(str, Enum):
    ROUTINE = "routine"
    IMPORTANT = "important"
    URGENT = "urgent"


class RecommendationCreate(BaseModel):
    """Data required to add a follow-up recommendation."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    priority: RecommendationPriority = RecommendationPriority.ROUTINE


class AppointmentRecommendation(BaseModel):
    id: UUID
    appointment_id: UUID
    title: str
    description: str | None
    priority: RecommendationPriority
    created_at: datetime

    model_config = {"from_attributes": True}
