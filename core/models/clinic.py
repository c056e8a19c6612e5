"""Clinic (tenant) and staff profile models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class StaffRole(str, Enum):
    """What a staff member does at the clinic."""

    ADMIN = "admin"
    VET = "vet"
    RECEPTIONIST = "receptionist"


class Clinic(BaseModel):
    """A tenant. Every other row belongs to exactly one clinic."""

    id: UUID
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class Profile(BaseModel):
    """A staff member; id is the authenticated user's id."""

    id: UUID
    clinic_id: UUID
    full_name: str
    role: StaffRole
    created_at: datetime

    model_config = {"from_attributes": True}
