"""Appointment (clinic visit) domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field

from core.scheduling import Duration, duration, reference_number


class AppointmentStatus(str, Enum):
    """
    Appointment status.

    Staff may move an appointment between any two statuses; nothing
    changes status automatically and status never touches the time range.
    """

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class AppointmentCreate(BaseModel):
    """Data required to book an appointment. Starts in SCHEDULED status."""

    pet_id: UUID
    vet_id: UUID | None = None
    start_time: AwareDatetime
    end_time: AwareDatetime
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=10000)
    room: str | None = Field(None, max_length=50)


class AppointmentUpdate(BaseModel):
    """Data that can be updated on an appointment. All fields optional."""

    pet_id: UUID | None = None
    vet_id: UUID | None = None
    start_time: AwareDatetime | None = None
    end_time: AwareDatetime | None = None
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=10000)
    status: AppointmentStatus | None = None
    room: str | None = Field(None, max_length=50)


class Appointment(BaseModel):
    """Full appointment entity as stored."""

    id: UUID
    clinic_id: UUID
    pet_id: UUID
    vet_id: UUID | None
    start_time: datetime
    end_time: datetime
    reason: str | None
    notes: str | None
    status: AppointmentStatus
    room: str | None
    appointment_number: int | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def duration(self) -> Duration:
        return duration(self.start_time, self.end_time)

    def reference_number(self, prefix: str = "AP", fallback_length: int = 4) -> str:
        """e.g. AP-2024-007, or AP-A1B2 for rows without a sequence number."""
        return reference_number(
            prefix, self.appointment_number, self.id, self.created_at, fallback_length
        )
