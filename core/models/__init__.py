"""Core domain models."""

from core.models.clinic import Clinic, Profile, StaffRole
from core.models.owner import Owner, OwnerCreate, OwnerUpdate
from core.models.pet import Pet, PetCreate, PetUpdate, PetSex
from core.models.appointment import Appointment, AppointmentCreate, AppointmentUpdate, AppointmentStatus
from core.models.appointment_record import (
    VitalsInput, AppointmentVitals,
    PrescriptionCreate, AppointmentPrescription, PrescriptionType, PrescriptionStatus,
    RecommendationCreate, AppointmentRecommendation, RecommendationPriority,
)
from core.models.invoice import (
    Invoice, InvoiceHeader, InvoiceItem, InvoiceItemInput, InvoiceStatus, RevenueSummary,
    OPEN_STATUSES, OUTSTANDING_STATUSES,
)
from core.models.read_models import AppointmentDetails, InvoiceDetails, one_or_none, as_list

__all__ = [
    # Clinic
    "Clinic", "Profile", "StaffRole",
    # Owner
    "Owner", "OwnerCreate", "OwnerUpdate",
    # Pet
    "Pet", "PetCreate", "PetUpdate", "PetSex",
    # Appointment
    "Appointment", "AppointmentCreate", "AppointmentUpdate", "AppointmentStatus",
    # Appointment records
    "VitalsInput", "AppointmentVitals",
    "PrescriptionCreate", "AppointmentPrescription", "PrescriptionType", "PrescriptionStatus",
    "RecommendationCreate", "AppointmentRecommendation", "RecommendationPriority",
    # Invoice
    "Invoice", "InvoiceHeader", "InvoiceItem", "InvoiceItemInput", "InvoiceStatus", "RevenueSummary",
    "OPEN_STATUSES", "OUTSTANDING_STATUSES",
    # Read models
    "AppointmentDetails", "InvoiceDetails", "one_or_none", "as_list",
]
