"""
Visit records attached to an appointment: vitals, prescriptions and
recommendations.

Record tables carry no clinic_id of their own; every operation first
checks that the parent appointment belongs to the caller's clinic.
"""

import logging
from uuid import UUID, uuid4

from pydantic import BaseModel

from clients.row_store import RowStore
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import NotFoundError
from core.models import (
    AppointmentPrescription,
    AppointmentRecommendation,
    AppointmentVitals,
    PrescriptionCreate,
    RecommendationCreate,
    VitalsInput,
)
from utils.clinic_context import ClinicContext
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class AppointmentRecordService:
    """Service for appointment vitals, prescriptions and recommendations."""

    def __init__(self, store: RowStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    def _require_appointment(self, ctx: ClinicContext, appointment_id: UUID) -> None:
        row = self.store.first(
            "appointments", {"id": appointment_id, "clinic_id": ctx.clinic_id}
        )
        if row is None:
            raise NotFoundError("appointment", appointment_id)

    # -- Vitals ---------------------------------------------------------------

    def save_vitals(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        data: VitalsInput
    ) -> AppointmentVitals:
        """
        Record vitals for an appointment.

        One vitals row per appointment (unique on appointment_id). Written as
        a single upsert, so concurrent saves cannot create a second row; the
        latest write wins.

        Raises:
            NotFoundError: If appointment not found
        """
        self._require_appointment(ctx, appointment_id)

        readings = data.model_dump()
        existing = self.store.first("appointment_vitals", {"appointment_id": appointment_id})

        row = self.store.upsert(
            "appointment_vitals",
            {
                "id": uuid4(),
                "appointment_id": appointment_id,
                **readings,
                "created_at": now_utc(),
            },
            conflict_column="appointment_id",
            update_columns=readings.keys(),
        )
        vitals = AppointmentVitals.model_validate(row)

        if existing is None:
            self.audit.log_change(
                ctx,
                entity_type="appointment_vitals",
                entity_id=vitals.id,
                action=AuditAction.CREATE,
                changes={"created": data.model_dump(mode="json", exclude_none=True)}
            )
            return vitals

        changes = compute_changes(
            AppointmentVitals.model_validate(existing).model_dump(mode="json"),
            vitals.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="appointment_vitals",
                entity_id=vitals.id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return vitals

    def get_vitals(self, ctx: ClinicContext, appointment_id: UUID) -> AppointmentVitals | None:
        self._require_appointment(ctx, appointment_id)

        row = self.store.first("appointment_vitals", {"appointment_id": appointment_id})
        if row is None:
            return None
        return AppointmentVitals.model_validate(row)

    # -- Prescriptions --------------------------------------------------------

    def add_prescription(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        data: PrescriptionCreate
    ) -> AppointmentPrescription:
        """
        Add a prescription, vaccination or procedure to an appointment.

        Raises:
            NotFoundError: If appointment not found
        """
        self._require_appointment(ctx, appointment_id)

        row = self.store.insert("appointment_prescriptions", {
            "id": uuid4(),
            "appointment_id": appointment_id,
            **data.model_dump(),
            "created_at": now_utc(),
        })

        prescription = AppointmentPrescription.model_validate(row)

        self.audit.log_change(
            ctx,
            entity_type="appointment_prescription",
            entity_id=prescription.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return prescription

    def delete_prescription(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        prescription_id: UUID
    ) -> bool:
        """
        Remove a prescription from an appointment.

        Returns:
            True if deleted, False if not found on this appointment
        """
        return self._delete_record(
            ctx, appointment_id, "appointment_prescriptions",
            "appointment_prescription", prescription_id, AppointmentPrescription
        )

    def list_prescriptions(
        self,
        ctx: ClinicContext,
        appointment_id: UUID
    ) -> list[AppointmentPrescription]:
        """Prescriptions in the order they were added."""
        self._require_appointment(ctx, appointment_id)

        rows = self.store.select(
            "appointment_prescriptions",
            {"appointment_id": appointment_id},
            order_by="created_at"
        )
        return [AppointmentPrescription.model_validate(row) for row in rows]

    # -- Recommendations ------------------------------------------------------

    def add_recommendation(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        data: RecommendationCreate
    ) -> AppointmentRecommendation:
        """
        Add a follow-up recommendation to an appointment.

        Raises:
            NotFoundError: If appointment not found
        """
        self._require_appointment(ctx, appointment_id)

        row = self.store.insert("appointment_recommendations", {
            "id": uuid4(),
            "appointment_id": appointment_id,
            **data.model_dump(),
            "created_at": now_utc(),
        })

        recommendation = AppointmentRecommendation.model_validate(row)

        self.audit.log_change(
            ctx,
            entity_type="appointment_recommendation",
            entity_id=recommendation.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return recommendation

    def delete_recommendation(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        recommendation_id: UUID
    ) -> bool:
        return self._delete_record(
            ctx, appointment_id, "appointment_recommendations",
            "appointment_recommendation", recommendation_id, AppointmentRecommendation
        )

    def list_recommendations(
        self,
        ctx: ClinicContext,
        appointment_id: UUID
    ) -> list[AppointmentRecommendation]:
        """Recommendations in the order they were added."""
        self._require_appointment(ctx, appointment_id)

        rows = self.store.select(
            "appointment_recommendations",
            {"appointment_id": appointment_id},
            order_by="created_at"
        )
        return [AppointmentRecommendation.model_validate(row) for row in rows]

    def _delete_record(
        self,
        ctx: ClinicContext,
        appointment_id: UUID,
        collection: str,
        entity_type: str,
        record_id: UUID,
        model: type[BaseModel]
    ) -> bool:
        self._require_appointment(ctx, appointment_id)

        scope = {"id": record_id, "appointment_id": appointment_id}
        current = self.store.first(collection, scope)
        if current is None:
            return False

        self.store.delete(collection, scope)

        self.audit.log_change(
            ctx,
            entity_type=entity_type,
            entity_id=record_id,
            action=AuditAction.DELETE,
            changes={"deleted": model.model_validate(current).model_dump(mode="json")}
        )

        return True

