"""GET /api/data — unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.base import success_response
from api.middleware import get_clinic_context
from core.config import ClinicSettings
from core.exceptions import NotFoundError
from core.models import AppointmentDetails, InvoiceDetails, InvoiceStatus
from core.money import format_currency
from utils.clinic_context import ClinicContext
from utils.timezone import parse_iso, today_local


VALID_TYPES = {"owners", "pets", "appointments", "invoices"}


def create_data_router(services: dict, settings: ClinicSettings | None = None) -> APIRouter:
    router = APIRouter()
    settings = settings or ClinicSettings()

    owner_svc = services["owner"]
    pet_svc = services["pet"]
    appointment_svc = services["appointment"]
    invoice_svc = services["invoice"]

    def money(amount) -> str:
        return format_currency(amount, settings.currency, settings.locale)

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/dashboard")
    async def dashboard(request: Request, ctx: ClinicContext = Depends(get_clinic_context)):
        revenue = invoice_svc.monthly_revenue(ctx, today_local(settings.timezone))
        upcoming = appointment_svc.list_upcoming(ctx, limit=settings.upcoming_appointments_limit)

        data = {
            "counts": {
                "owners": owner_svc.count(ctx),
                "pets": pet_svc.count(ctx),
                "scheduled_appointments": appointment_svc.count_scheduled(ctx),
                "open_invoices": invoice_svc.count_open(ctx),
            },
            "revenue": {
                "month_start": revenue.month_start.isoformat(),
                "month_end": revenue.month_end.isoformat(),
                "paid": money(revenue.paid),
                "outstanding": money(revenue.outstanding),
                "total": money(revenue.total),
            },
            "upcoming_appointments": [_appointment_json(a, settings) for a in upcoming],
        }
        return success_response(data, request).model_dump(mode="json")

    @router.get("/data/calendar")
    async def calendar(
        request: Request,
        start: str = Query(...),
        end: str = Query(...),
        ctx: ClinicContext = Depends(get_clinic_context),
    ):
        appointments = appointment_svc.list_by_date_range(ctx, parse_iso(start), parse_iso(end))
        return success_response(
            [_appointment_json(a, settings) for a in appointments], request
        ).model_dump(mode="json")

    @router.get("/data/appointments/{appointment_id}")
    async def appointment_details(
        request: Request,
        appointment_id: UUID,
        ctx: ClinicContext = Depends(get_clinic_context),
    ):
        details = appointment_svc.get_details(ctx, appointment_id)
        return success_response(
            _appointment_details_json(details, settings), request
        ).model_dump(mode="json")

    @router.get("/data/invoices/{invoice_id}")
    async def invoice_details(
        request: Request,
        invoice_id: UUID,
        ctx: ClinicContext = Depends(get_clinic_context),
    ):
        details = invoice_svc.get_with_items(ctx, invoice_id)
        return success_response(
            _invoice_details_json(details, settings, money), request
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        search: str | None = Query(None),
        owner_id: str | None = Query(None),
        pet_id: str | None = Query(None),
        status: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
        ctx: ClinicContext = Depends(get_clinic_context),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        if type == "owners":
            data = _handle_owners(ctx, owner_svc, pet_svc, id, search, limit)
        elif type == "pets":
            data = _handle_pets(ctx, pet_svc, id, owner_id, limit)
        elif type == "appointments":
            data = _handle_appointments(ctx, appointment_svc, pet_id, settings)
        else:
            data = _handle_invoices(ctx, invoice_svc, status, owner_id, limit, settings)

        return success_response(data, request).model_dump(mode="json")

    return router


def _appointment_json(appointment, settings: ClinicSettings) -> dict:
    data = appointment.model_dump(mode="json")
    data["reference_number"] = appointment.reference_number(
        settings.appointment_prefix, settings.reference_fallback_length
    )
    data["duration"] = appointment.duration.label
    return data


def _appointment_details_json(details: AppointmentDetails, settings: ClinicSettings) -> dict:
    data = details.model_dump(mode="json")
    data["appointment"] = _appointment_json(details.appointment, settings)
    if details.pet is not None:
        data["pet"]["age"] = details.pet.age_label(today_local(settings.timezone))
    return data


def _invoice_json(invoice, settings: ClinicSettings) -> dict:
    data = invoice.model_dump(mode="json")
    data["reference_number"] = invoice.reference_number(
        settings.invoice_prefix, settings.reference_fallback_length
    )
    return data


def _invoice_details_json(details: InvoiceDetails, settings: ClinicSettings, money) -> dict:
    data = details.model_dump(mode="json")
    data["invoice"] = _invoice_json(details.invoice, settings)
    data["display_total"] = str(details.display_total)
    data["display_total_formatted"] = money(details.display_total)
    for item_json, item in zip(data["items"], details.items):
        item_json["line_total"] = str(item.line_total)
    return data


def _handle_owners(ctx, owner_svc, pet_svc, id, search, limit):
    if id:
        owner = owner_svc.get_by_id(ctx, UUID(id))
        if owner is None:
            raise NotFoundError("owner", id)

        data = owner.model_dump(mode="json")
        data["pets"] = [p.model_dump(mode="json") for p in pet_svc.list_for_owner(ctx, owner.id)]
        return data

    if search:
        return [o.model_dump(mode="json") for o in owner_svc.search(ctx, search, limit)]

    return [o.model_dump(mode="json") for o in owner_svc.list_all(ctx, limit)]


def _handle_pets(ctx, pet_svc, id, owner_id, limit):
    if id:
        pet = pet_svc.get_by_id(ctx, UUID(id))
        if pet is None:
            raise NotFoundError("pet", id)
        return pet.model_dump(mode="json")

    if owner_id:
        pets = pet_svc.list_for_owner(ctx, UUID(owner_id))
    else:
        pets = pet_svc.list_all(ctx, limit)

    return [p.model_dump(mode="json") for p in pets]


def _handle_appointments(ctx, appointment_svc, pet_id, settings):
    if pet_id:
        appointments = appointment_svc.list_for_pet(ctx, UUID(pet_id))
    else:
        appointments = appointment_svc.list_upcoming(ctx, limit=settings.upcoming_appointments_limit)

    return [_appointment_json(a, settings) for a in appointments]


def _handle_invoices(ctx, invoice_svc, status, owner_id, limit, settings):
    invoices = invoice_svc.list_invoices(
        ctx,
        status=InvoiceStatus(status) if status else None,
        owner_id=UUID(owner_id) if owner_id else None,
        limit=limit,
    )
    return [_invoice_json(i, settings) for i in invoices]
