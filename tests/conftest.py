"""Shared test fixtures for the clinic test suite."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from fakes import (
    CLINIC_B_ID,
    CLINIC_ID,
    CREATED_AT,
    InMemoryRowStore,
    TEST_USER_B_ID,
    TEST_USER_ID,
)
from core.audit import AuditLogger
from core.models import AppointmentCreate, OwnerCreate, PetCreate
from core.services.appointment_record_service import AppointmentRecordService
from core.services.appointment_service import AppointmentService
from core.services.identity_service import IdentityService
from core.services.invoice_service import InvoiceService
from core.services.owner_service import OwnerService
from core.services.pet_service import PetService
from utils.clinic_context import ClinicContext


# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def store() -> InMemoryRowStore:
    """Fresh in-memory store with two clinics, each with one vet."""
    s = InMemoryRowStore()
    s.seed("clinics", {
        "id": CLINIC_ID, "name": "Maple Street Vets",
        "address": "12 Maple St", "phone": "555-0100",
        "email": "front@maplevets.test", "created_at": CREATED_AT,
    })
    s.seed("clinics", {
        "id": CLINIC_B_ID, "name": "Harbor Animal Hospital",
        "address": None, "phone": None, "email": None, "created_at": CREATED_AT,
    })
    s.seed("profiles", {
        "id": TEST_USER_ID, "clinic_id": CLINIC_ID,
        "full_name": "Dr. Ada Park", "role": "vet", "created_at": CREATED_AT,
    })
    s.seed("profiles", {
        "id": TEST_USER_B_ID, "clinic_id": CLINIC_B_ID,
        "full_name": "Dr. Sam Reyes", "role": "vet", "created_at": CREATED_AT,
    })
    return s


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture
def ctx() -> ClinicContext:
    """Context for the primary test user in the primary clinic."""
    return ClinicContext(user_id=TEST_USER_ID, clinic_id=CLINIC_ID)


@pytest.fixture
def ctx_b() -> ClinicContext:
    """Context for the secondary clinic (for isolation tests)."""
    return ClinicContext(user_id=TEST_USER_B_ID, clinic_id=CLINIC_B_ID)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def audit(store):
    return AuditLogger(store)


@pytest.fixture
def identity_service(store):
    return IdentityService(store)


@pytest.fixture
def owner_service(store, audit):
    return OwnerService(store, audit)


@pytest.fixture
def pet_service(store, audit):
    return PetService(store, audit)


@pytest.fixture
def appointment_service(store, audit):
    return AppointmentService(store, audit)


@pytest.fixture
def appointment_record_service(store, audit):
    return AppointmentRecordService(store, audit)


@pytest.fixture
def invoice_service(store, audit):
    return InvoiceService(store, audit)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


@pytest.fixture
def sample_owner(ctx, owner_service):
    return owner_service.create(ctx, OwnerCreate(
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
        phone="555-0199",
    ))


@pytest.fixture
def sample_pet(ctx, pet_service, sample_owner):
    return pet_service.create(ctx, PetCreate(
        owner_id=sample_owner.id,
        name="Biscuit",
        species="Dog",
        breed="Beagle",
        date_of_birth=date(2021, 6, 15),
        weight_kg=Decimal("11.4"),
    ))


@pytest.fixture
def visit_start() -> datetime:
    """A fixed future start time for appointments."""
    return datetime(2030, 5, 6, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_appointment(ctx, appointment_service, sample_pet, visit_start):
    return appointment_service.create(ctx, AppointmentCreate(
        pet_id=sample_pet.id,
        vet_id=TEST_USER_ID,
        start_time=visit_start,
        end_time=visit_start + timedelta(minutes=45),
        reason="Annual checkup",
        room="2",
    ))
