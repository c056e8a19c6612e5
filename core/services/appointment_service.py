"""
Appointment service: booking, editing, rescheduling and cancelling visits.

Every time-range change goes through validate_interval before anything is
written, whether it comes from the booking form, a manual edit, a drag on
the calendar (both ends shift) or a resize (one end shifts). Status is
edited freely and never touches the time range.
"""

import logging
from datetime import datetime
from uuid import UUID, uuid4

from clients.row_store import RowStore
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import InvalidInputError, NotFoundError
from core.models import (
    Appointment,
    AppointmentCreate,
    AppointmentDetails,
    AppointmentStatus,
    AppointmentUpdate,
)
from core.scheduling import validate_interval
from utils.clinic_context import ClinicContext
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {
    "pet_id", "vet_id", "start_time", "end_time",
    "reason", "notes", "status", "room"
}

# Columns that must always hold a value
_REQUIRED_COLUMNS = {"pet_id", "start_time", "end_time", "status"}

# Sub-record collections removed together with their appointment
_RECORD_COLLECTIONS = (
    "appointment_vitals",
    "appointment_prescriptions",
    "appointment_recommendations",
)


class AppointmentService:
    """Service for appointment operations."""

    def __init__(self, store: RowStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    def _next_appointment_number(self, store: RowStore, clinic_id: UUID) -> int:
        """Next per-clinic sequence number (1 for a clinic's first appointment)."""
        latest = store.first(
            "appointments",
            {"clinic_id": clinic_id, "appointment_number__isnull": False},
            order_by="appointment_number",
            descending=True,
        )
        if latest is None:
            return 1
        return latest["appointment_number"] + 1

    def _require_pet(self, store: RowStore, ctx: ClinicContext, pet_id: UUID) -> dict:
        pet = store.first("pets", {"id": pet_id, "clinic_id": ctx.clinic_id})
        if pet is None:
            raise NotFoundError("pet", pet_id)
        return pet

    def _require_vet(self, store: RowStore, ctx: ClinicContext, vet_id: UUID) -> dict:
        vet = store.first("profiles", {"id": vet_id, "clinic_id": ctx.clinic_id})
        if vet is None:
            raise NotFoundError("vet", vet_id)
        return vet

    def create(self, ctx: ClinicContext, data: AppointmentCreate) -> Appointment:
        """
        Book an appointment.

        Args:
            ctx: Acting user and clinic
            data: Appointment creation data. Without a vet the acting user
                is booked as the vet.

        Returns:
            Created appointment in SCHEDULED status

        Raises:
            EndNotAfterStartError: If end_time <= start_time (nothing is written)
            NotFoundError: If the pet or vet is not in the caller's clinic
        """
        validate_interval(data.start_time, data.end_time)

        with self.store.transaction() as tx:
            self._require_pet(tx, ctx, data.pet_id)
            vet_id = data.vet_id or ctx.user_id
            self._require_vet(tx, ctx, vet_id)

            row = tx.insert("appointments", {
                "id": uuid4(),
                "clinic_id": ctx.clinic_id,
                "pet_id": data.pet_id,
                "vet_id": vet_id,
                "start_time": to_utc(data.start_time),
                "end_time": to_utc(data.end_time),
                "reason": data.reason,
                "notes": data.notes,
                "status": AppointmentStatus.SCHEDULED,
                "room": data.room,
                "appointment_number": self._next_appointment_number(tx, ctx.clinic_id),
                "created_at": now_utc(),
            })

            appointment = Appointment.model_validate(row)

            self.audit.log_change(
                ctx,
                entity_type="appointment",
                entity_id=appointment.id,
                action=AuditAction.CREATE,
                changes={"created": data.model_dump(mode="json", exclude_none=True)},
                store=tx
            )

        return appointment

    def get_by_id(self, ctx: ClinicContext, appointment_id: UUID) -> Appointment | None:
        """
        Get appointment by ID.

        Returns:
            Appointment if found in the caller's clinic, None otherwise.
        """
        row = self.store.first(
            "appointments", {"id": appointment_id, "clinic_id": ctx.clinic_id}
        )

        if row is None:
            return None

        return Appointment.model_validate(row)

    def _apply_update(
        self,
        ctx: ClinicContext,
        current: Appointment,
        valid_updates: dict
    ) -> Appointment:
        row = self.store.update(
            "appointments",
            {"id": current.id, "clinic_id": ctx.clinic_id},
            valid_updates
        )[0]

        updated = Appointment.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="appointment",
                entity_id=current.id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def update(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        data: AppointmentUpdate
    ) -> Appointment:
        """
        Edit an appointment.

        When either end of the time range is supplied, the range merged with
        the stored values is validated before writing. Any status may be set.

        Args:
            ctx: Acting user and clinic
            appointment_id: Appointment UUID
            data: Fields to update. Fields left out are unchanged; optional
                fields sent as None are cleared.

        Returns:
            Updated appointment

        Raises:
            NotFoundError: If appointment (or a new pet or vet) not found
            InvalidInputError: If a required field is sent as None
            EndNotAfterStartError: If the merged range is invalid
        """
        current = self.get_by_id(ctx, appointment_id)
        if current is None:
            raise NotFoundError("appointment", appointment_id)

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            return current

        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    f"Attempted to update unknown field '{field}' on appointment {appointment_id}"
                )

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        for field in sorted(_REQUIRED_COLUMNS & valid_updates.keys()):
            if valid_updates[field] is None:
                raise InvalidInputError(field, "cannot be cleared")

        if "start_time" in valid_updates or "end_time" in valid_updates:
            start = valid_updates.get("start_time", current.start_time)
            end = valid_updates.get("end_time", current.end_time)
            validate_interval(start, end)
            for field in ("start_time", "end_time"):
                if field in valid_updates:
                    valid_updates[field] = to_utc(valid_updates[field])

        if "pet_id" in valid_updates and valid_updates["pet_id"] != current.pet_id:
            self._require_pet(self.store, ctx, valid_updates["pet_id"])

        vet_id = valid_updates.get("vet_id")
        if vet_id is not None and vet_id != current.vet_id:
            self._require_vet(self.store, ctx, vet_id)

        return self._apply_update(ctx, current, valid_updates)

    def reschedule(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        new_start: datetime,
        new_end: datetime
    ) -> Appointment:
        """
        Move or resize an appointment on the calendar.

        A drag shifts both ends by the same delta; a resize moves one end.
        Only the times are written; status is left as it is.

        Raises:
            EndNotAfterStartError: If new_end <= new_start (nothing is written)
            NotFoundError: If appointment not found
        """
        validate_interval(new_start, new_end)

        current = self.get_by_id(ctx, appointment_id)
        if current is None:
            raise NotFoundError("appointment", appointment_id)

        return self._apply_update(ctx, current, {
            "start_time": to_utc(new_start),
            "end_time": to_utc(new_end),
        })

    def delete(self, ctx: ClinicContext, appointment_id: UUID) -> bool:
        """
        Permanently delete an appointment with its vitals, prescriptions
        and recommendations.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(ctx, appointment_id)
        if current is None:
            return False

        with self.store.transaction() as tx:
            for collection in _RECORD_COLLECTIONS:
                tx.delete(collection, {"appointment_id": appointment_id})

            tx.delete("appointments", {"id": appointment_id, "clinic_id": ctx.clinic_id})

            self.audit.log_change(
                ctx,
                entity_type="appointment",
                entity_id=appointment_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
                store=tx
            )

        return True

    def get_details(self, ctx: ClinicContext, appointment_id: UUID) -> AppointmentDetails:
        """
        Appointment with pet, owner, vet and visit records.

        Raises:
            NotFoundError: If appointment not found
        """
        appointment = self.get_by_id(ctx, appointment_id)
        if appointment is None:
            raise NotFoundError("appointment", appointment_id)

        pet = self.store.first(
            "pets", {"id": appointment.pet_id, "clinic_id": ctx.clinic_id}
        )
        owner = None
        if pet is not None:
            owner = self.store.first(
                "owners", {"id": pet["owner_id"], "clinic_id": ctx.clinic_id}
            )
        vet = None
        if appointment.vet_id is not None:
            vet = self.store.first(
                "profiles", {"id": appointment.vet_id, "clinic_id": ctx.clinic_id}
            )

        record_filter = {"appointment_id": appointment_id}

        return AppointmentDetails.model_validate({
            "appointment": appointment,
            "pet": pet,
            "owner": owner,
            "vet": vet,
            "vitals": self.store.first("appointment_vitals", record_filter),
            "prescriptions": self.store.select(
                "appointment_prescriptions", record_filter, order_by="created_at"
            ),
            "recommendations": self.store.select(
                "appointment_recommendations", record_filter, order_by="created_at"
            ),
        })

    def list_by_date_range(
        self,
        ctx: ClinicContext,
        start: datetime,
        end: datetime
    ) -> list[Appointment]:
        """
        Appointments starting in [start, end), for the calendar view.

        Args:
            ctx: Acting user and clinic
            start: Range start (inclusive)
            end: Range end (exclusive)

        Returns:
            Appointments ordered by start time
        """
        rows = self.store.select(
            "appointments",
            {
                "clinic_id": ctx.clinic_id,
                "start_time__gte": to_utc(start),
                "start_time__lt": to_utc(end),
            },
            order_by="start_time"
        )

        return [Appointment.model_validate(row) for row in rows]

    def list_upcoming(
        self,
        ctx: ClinicContext,
        limit: int = 5,
        now: datetime | None = None
    ) -> list[Appointment]:
        """Scheduled appointments starting now or later, soonest first."""
        rows = self.store.select(
            "appointments",
            {
                "clinic_id": ctx.clinic_id,
                "status": AppointmentStatus.SCHEDULED,
                "start_time__gte": now or now_utc(),
            },
            order_by="start_time",
            limit=limit
        )

        return [Appointment.model_validate(row) for row in rows]

    def list_for_pet(self, ctx: ClinicContext, pet_id: UUID) -> list[Appointment]:
        """A pet's appointment history, newest first."""
        rows = self.store.select(
            "appointments",
            {"clinic_id": ctx.clinic_id, "pet_id": pet_id},
            order_by="start_time",
            descending=True
        )

        return [Appointment.model_validate(row) for row in rows]

    def count_scheduled(self, ctx: ClinicContext) -> int:
        """Number of appointments still in SCHEDULED status."""
        return len(self.store.select(
            "appointments",
            {"clinic_id": ctx.clinic_id, "status": AppointmentStatus.SCHEDULED}
        ))
