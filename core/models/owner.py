"""Owner (clinic client) domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, field_validator


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class OwnerCreate(BaseModel):
    """Data required to create an owner."""

    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def empty_string_is_none(cls, value):
        """Forms submit '' for untouched optional fields."""
        return _blank_to_none(value)


class OwnerUpdate(BaseModel):
    """Data that can be updated on an owner. All fields optional."""

    first_name: str | None = Field(None, min_length=1, max_length=255)
    last_name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def empty_string_is_none(cls, value):
        return _blank_to_none(value)


class Owner(BaseModel):
    """Full owner entity as stored."""

    id: UUID
    clinic_id: UUID
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    address: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
