"""Tests for GET /api/data and the convenience read routes."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from core.models import InvoiceHeader, InvoiceItemInput, InvoiceStatus


@pytest.fixture
def sample_invoice_id(ctx, invoice_service, sample_owner):
    return invoice_service.save_invoice_with_items(
        ctx,
        InvoiceHeader(owner_id=sample_owner.id, issue_date=date(2024, 3, 10)),
        [
            InvoiceItemInput(description="Exam", quantity=1, unit_price=Decimal("1200.00")),
            InvoiceItemInput(description="X-ray", quantity=2, unit_price=Decimal("17.25")),
        ],
    )


class TestDataValidation:

    def test_unauthenticated_returns_401(self, unauthed_client):
        assert unauthed_client.get("/api/data?type=owners").status_code == 401

    def test_missing_type_returns_400(self, client):
        response = client.get("/api/data")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_unknown_type_returns_400(self, client):
        response = client.get("/api/data?type=customers")

        assert response.status_code == 400
        assert "customers" in response.json()["error"]["message"]

    def test_limit_out_of_range_returns_422(self, client):
        assert client.get("/api/data?type=owners&limit=0").status_code == 422


class TestOwnersAndPets:

    def test_list_owners(self, client, sample_owner):
        response = client.get("/api/data?type=owners")

        assert response.status_code == 200
        assert [o["id"] for o in response.json()["data"]] == [str(sample_owner.id)]

    def test_owner_by_id_includes_pets(self, client, sample_owner, sample_pet):
        response = client.get(f"/api/data?type=owners&id={sample_owner.id}")

        data = response.json()["data"]
        assert data["last_name"] == "Doe"
        assert [p["name"] for p in data["pets"]] == ["Biscuit"]

    def test_owner_search(self, client, sample_owner):
        assert len(client.get("/api/data?type=owners&search=jane").json()["data"]) == 1
        assert client.get("/api/data?type=owners&search=zzz").json()["data"] == []

    def test_owner_of_other_clinic_is_404(self, client_b, sample_owner):
        response = client_b.get(f"/api/data?type=owners&id={sample_owner.id}")

        assert response.status_code == 404

    def test_other_clinic_lists_nothing(self, client_b, sample_owner, sample_pet):
        assert client_b.get("/api/data?type=owners").json()["data"] == []
        assert client_b.get("/api/data?type=pets").json()["data"] == []

    def test_pets_for_owner(self, client, sample_owner, sample_pet):
        response = client.get(f"/api/data?type=pets&owner_id={sample_owner.id}")

        assert [p["id"] for p in response.json()["data"]] == [str(sample_pet.id)]

    def test_unknown_pet_is_404(self, client):
        assert client.get(f"/api/data?type=pets&id={uuid4()}").status_code == 404


class TestAppointments:

    def test_upcoming_by_default(self, client, sample_appointment):
        data = client.get("/api/data?type=appointments").json()["data"]

        assert len(data) == 1
        assert data[0]["duration"] == "45 mins"
        assert data[0]["reference_number"].startswith("AP-")
        assert data[0]["reference_number"].endswith("-001")

    def test_for_pet(self, client, sample_pet, sample_appointment):
        data = client.get(f"/api/data?type=appointments&pet_id={sample_pet.id}").json()["data"]

        assert [a["id"] for a in data] == [str(sample_appointment.id)]

    def test_calendar_range(self, client, sample_appointment):
        response = client.get(
            "/api/data/calendar",
            params={"start": "2030-05-06T00:00:00Z", "end": "2030-05-07T00:00:00Z"},
        )

        assert [a["id"] for a in response.json()["data"]] == [str(sample_appointment.id)]

    def test_calendar_range_excludes_end(self, client, sample_appointment):
        response = client.get(
            "/api/data/calendar",
            params={"start": "2030-05-05T00:00:00Z", "end": "2030-05-06T14:00:00Z"},
        )

        assert response.json()["data"] == []

    def test_calendar_requires_aware_times(self, client):
        response = client.get(
            "/api/data/calendar",
            params={"start": "2030-05-05T00:00:00", "end": "2030-05-06T00:00:00"},
        )

        assert response.status_code == 400

    def test_appointment_details(self, client, sample_appointment):
        response = client.get(f"/api/data/appointments/{sample_appointment.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["appointment"]["duration"] == "45 mins"
        assert data["pet"]["name"] == "Biscuit"
        assert data["pet"]["age"].endswith("years")
        assert data["owner"]["email"] == "jane@example.com"
        assert data["vet"]["full_name"] == "Dr. Ada Park"
        assert data["vitals"] is None
        assert data["prescriptions"] == []

    def test_appointment_details_other_clinic(self, client_b, sample_appointment):
        assert client_b.get(f"/api/data/appointments/{sample_appointment.id}").status_code == 404


class TestInvoices:

    def test_invoice_details(self, client, sample_invoice_id):
        response = client.get(f"/api/data/invoices/{sample_invoice_id}")

        data = response.json()["data"]
        assert data["display_total"] == "1234.50"
        assert data["display_total_formatted"] == "$1,234.50"
        assert sorted(i["line_total"] for i in data["items"]) == ["1200.00", "34.50"]
        assert data["invoice"]["reference_number"].startswith("INV-")
        assert data["owner"]["first_name"] == "Jane"

    def test_list_by_status(self, client, ctx, invoice_service, sample_invoice_id):
        invoice_service.set_status(ctx, sample_invoice_id, InvoiceStatus.PAID)

        paid = client.get("/api/data?type=invoices&status=paid").json()["data"]
        drafts = client.get("/api/data?type=invoices&status=draft").json()["data"]

        assert [i["id"] for i in paid] == [str(sample_invoice_id)]
        assert drafts == []

    def test_unknown_status_returns_400(self, client):
        assert client.get("/api/data?type=invoices&status=void").status_code == 400


class TestDashboard:

    def test_counts_and_upcoming(self, client, sample_appointment, sample_invoice_id):
        response = client.get("/api/data/dashboard")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["counts"] == {
            "owners": 1,
            "pets": 1,
            "scheduled_appointments": 1,
            "open_invoices": 1,
        }
        assert [a["id"] for a in data["upcoming_appointments"]] == [str(sample_appointment.id)]
        assert set(data["revenue"]) == {"month_start", "month_end", "paid", "outstanding", "total"}
        assert data["revenue"]["paid"].startswith("$")

    def test_empty_clinic(self, client_b):
        data = client_b.get("/api/data/dashboard").json()["data"]

        assert data["counts"]["owners"] == 0
        assert data["upcoming_appointments"] == []
        assert data["revenue"]["total"] == "$0.00"
