"""POST /api/actions — unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from api.base import success_response
from api.middleware import get_clinic_context
from core.exceptions import NotFoundError
from core.models import (
    OwnerCreate, OwnerUpdate,
    PetCreate, PetUpdate,
    AppointmentCreate, AppointmentUpdate,
    VitalsInput, PrescriptionCreate, RecommendationCreate,
    InvoiceHeader, InvoiceItemInput, InvoiceStatus,
)
from utils.clinic_context import ClinicContext
from utils.timezone import parse_iso


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "owner": OwnerHandler(services["owner"]),
        "pet": PetHandler(services["pet"]),
        "appointment": AppointmentHandler(services["appointment"]),
        "appointment_record": AppointmentRecordHandler(services["appointment_record"]),
        "invoice": InvoiceHandler(services["invoice"], services["invoice_email"]),
    }

    @router.post("/actions")
    async def perform_action(
        request: Request,
        body: ActionRequest,
        ctx: ClinicContext = Depends(get_clinic_context),
    ):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(ctx, dict(body.data))
        return success_response(result, request).model_dump(mode="json")

    return router


def _uuid(data: dict, key: str = "id") -> UUID:
    value = data.pop(key, None)
    if value is None:
        raise ValueError(f"'{key}' is required")
    return UUID(str(value))


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class OwnerHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, ctx, data: dict):
        owner = self.service.create(ctx, OwnerCreate(**data))
        return owner.model_dump(mode="json")

    def _handle_update(self, ctx, data: dict):
        owner_id = _uuid(data)
        owner = self.service.update(ctx, owner_id, OwnerUpdate(**data))
        return owner.model_dump(mode="json")

    def _handle_delete(self, ctx, data: dict):
        owner_id = _uuid(data)
        if not self.service.delete(ctx, owner_id):
            raise NotFoundError("owner", owner_id)
        return {"deleted": True}


class PetHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, ctx, data: dict):
        pet = self.service.create(ctx, PetCreate(**data))
        return pet.model_dump(mode="json")

    def _handle_update(self, ctx, data: dict):
        pet_id = _uuid(data)
        pet = self.service.update(ctx, pet_id, PetUpdate(**data))
        return pet.model_dump(mode="json")

    def _handle_delete(self, ctx, data: dict):
        pet_id = _uuid(data)
        if not self.service.delete(ctx, pet_id):
            raise NotFoundError("pet", pet_id)
        return {"deleted": True}


class AppointmentHandler:
    ALLOWED_ACTIONS = {"create", "update", "reschedule", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, ctx, data: dict):
        appointment = self.service.create(ctx, AppointmentCreate(**data))
        return appointment.model_dump(mode="json")

    def _handle_update(self, ctx, data: dict):
        appointment_id = _uuid(data)
        appointment = self.service.update(ctx, appointment_id, AppointmentUpdate(**data))
        return appointment.model_dump(mode="json")

    def _handle_reschedule(self, ctx, data: dict):
        appointment_id = _uuid(data)
        for key in ("start_time", "end_time"):
            if not data.get(key):
                raise ValueError(f"'{key}' is required")
        appointment = self.service.reschedule(
            ctx,
            appointment_id,
            parse_iso(str(data["start_time"])),
            parse_iso(str(data["end_time"])),
        )
        return appointment.model_dump(mode="json")

    def _handle_delete(self, ctx, data: dict):
        appointment_id = _uuid(data)
        if not self.service.delete(ctx, appointment_id):
            raise NotFoundError("appointment", appointment_id)
        return {"deleted": True}


class AppointmentRecordHandler:
    ALLOWED_ACTIONS = {
        "save_vitals",
        "add_prescription", "delete_prescription",
        "add_recommendation", "delete_recommendation",
    }

    def __init__(self, service):
        self.service = service

    def _handle_save_vitals(self, ctx, data: dict):
        appointment_id = _uuid(data, "appointment_id")
        vitals = self.service.save_vitals(ctx, appointment_id, VitalsInput(**data))
        return vitals.model_dump(mode="json")

    def _handle_add_prescription(self, ctx, data: dict):
        appointment_id = _uuid(data, "appointment_id")
        prescription = self.service.add_prescription(
            ctx, appointment_id, PrescriptionCreate(**data)
        )
        return prescription.model_dump(mode="json")

    def _handle_delete_prescription(self, ctx, data: dict):
        appointment_id = _uuid(data, "appointment_id")
        prescription_id = _uuid(data)
        if not self.service.delete_prescription(ctx, appointment_id, prescription_id):
            raise NotFoundError("prescription", prescription_id)
        return {"deleted": True}

    def _handle_add_recommendation(self, ctx, data: dict):
        appointment_id = _uuid(data, "appointment_id")
        recommendation = self.service.add_recommendation(
            ctx, appointment_id, RecommendationCreate(**data)
        )
        return recommendation.model_dump(mode="json")

    def _handle_delete_recommendation(self, ctx, data: dict):
        appointment_id = _uuid(data, "appointment_id")
        recommendation_id = _uuid(data)
        if not self.service.delete_recommendation(ctx, appointment_id, recommendation_id):
            raise NotFoundError("recommendation", recommendation_id)
        return {"deleted": True}


class InvoiceHandler:
    ALLOWED_ACTIONS = {"save", "set_status", "delete", "send_email"}

    def __init__(self, service, email_service):
        self.service = service
        self.email_service = email_service

    def _handle_save(self, ctx, data: dict):
        """
        data: {"id"?, "header": {...}, "items": [...], "removed_item_ids": [...]}
        Omit id to create.
        """
        invoice_id = UUID(str(data["id"])) if data.get("id") else None
        header = InvoiceHeader(**data.get("header", {}))
        items = [InvoiceItemInput(**item) for item in data.get("items", [])]
        removed = [UUID(str(item_id)) for item_id in data.get("removed_item_ids", [])]

        saved_id = self.service.save_invoice_with_items(
            ctx, header, items, removed_item_ids=removed, invoice_id=invoice_id
        )
        details = self.service.get_with_items(ctx, saved_id)
        return {
            **details.model_dump(mode="json"),
            "display_total": str(details.display_total),
        }

    def _handle_set_status(self, ctx, data: dict):
        invoice_id = _uuid(data)
        invoice = self.service.set_status(ctx, invoice_id, InvoiceStatus(data.get("status")))
        return invoice.model_dump(mode="json")

    def _handle_delete(self, ctx, data: dict):
        invoice_id = _uuid(data)
        if not self.service.delete(ctx, invoice_id):
            raise NotFoundError("invoice", invoice_id)
        return {"deleted": True}

    def _handle_send_email(self, ctx, data: dict):
        sent = self.email_service.send_invoice_email(ctx, _uuid(data))
        return sent.model_dump(mode="json")
