"""Pet (patient) domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.scheduling import compute_age


class PetSex(str, Enum):
    """Recorded sex of the animal."""

    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class PetCreate(BaseModel):
    """Data required to create a pet."""

    owner_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    species: str = Field(..., min_length=1, max_length=100)
    breed: str | None = Field(None, max_length=100)
    date_of_birth: date | None = None
    sex: PetSex | None = None
    weight_kg: Decimal | None = Field(None, gt=0)
    notes: str | None = Field(None, max_length=10000)


class PetUpdate(BaseModel):
    """Data that can be updated on a pet. All fields optional."""

    owner_id: UUID | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    species: str | None = Field(None, min_length=1, max_length=100)
    breed: str | None = Field(None, max_length=100)
    date_of_birth: date | None = None
    sex: PetSex | None = None
    weight_kg: Decimal | None = Field(None, gt=0)
    notes: str | None = Field(None, max_length=10000)


class Pet(BaseModel):
    """Full pet entity as stored. Age is derived, never stored."""

    id: UUID
    clinic_id: UUID
    owner_id: UUID
    name: str
    species: str
    breed: str | None
    date_of_birth: date | None
    sex: PetSex | None
    weight_kg: Decimal | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    def age_label(self, as_of: date) -> str:
        """'2 years', '5 months', or '—' when date of birth is unknown."""
        return compute_age(self.date_of_birth, as_of)
