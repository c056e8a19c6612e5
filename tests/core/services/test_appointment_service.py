"""Tests for AppointmentService."""

import pytest
from datetime import timedelta, timezone, datetime
from uuid import uuid4

from fakes import TEST_USER_B_ID, TEST_USER_ID
from core.exceptions import EndNotAfterStartError, InvalidInputError, NotFoundError, PersistenceError
from core.models import (
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    PrescriptionCreate,
    RecommendationCreate,
    VitalsInput,
)


def _book(service, ctx, pet_id, start, minutes=30):
    return service.create(ctx, AppointmentCreate(
        pet_id=pet_id,
        vet_id=TEST_USER_ID,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
    ))


class TestAppointmentCreate:

    def test_create_starts_scheduled(self, sample_appointment, visit_start):
        assert sample_appointment.status == AppointmentStatus.SCHEDULED
        assert sample_appointment.start_time == visit_start
        assert sample_appointment.duration.label == "45 mins"

    def test_first_appointment_gets_number_one(self, sample_appointment):
        assert sample_appointment.appointment_number == 1
        year = sample_appointment.created_at.year
        assert sample_appointment.reference_number() == f"AP-{year}-001"

    def test_numbers_increase_per_clinic(self, ctx, appointment_service, sample_pet, sample_appointment, visit_start):
        second = _book(appointment_service, ctx, sample_pet.id, visit_start + timedelta(days=1))

        assert second.appointment_number == 2

    def test_end_equal_to_start_rejected_before_write(self, ctx, appointment_service, sample_pet, visit_start, store):
        with pytest.raises(EndNotAfterStartError):
            appointment_service.create(ctx, AppointmentCreate(
                pet_id=sample_pet.id, start_time=visit_start, end_time=visit_start
            ))

        assert store.rows("appointments") == []
        assert ("insert", "appointments") not in store.calls

    def test_end_before_start_rejected(self, ctx, appointment_service, sample_pet, visit_start, store):
        with pytest.raises(EndNotAfterStartError):
            appointment_service.create(ctx, AppointmentCreate(
                pet_id=sample_pet.id,
                start_time=visit_start,
                end_time=visit_start - timedelta(minutes=15),
            ))

        assert store.rows("appointments") == []

    def test_pet_from_other_clinic_rejected(self, ctx_b, appointment_service, sample_pet, visit_start, store):
        with pytest.raises(NotFoundError):
            _book(appointment_service, ctx_b, sample_pet.id, visit_start)

        assert store.rows("appointments") == []

    def test_vet_from_other_clinic_rejected(self, ctx, appointment_service, sample_pet, visit_start, store):
        with pytest.raises(NotFoundError):
            appointment_service.create(ctx, AppointmentCreate(
                pet_id=sample_pet.id,
                vet_id=TEST_USER_B_ID,
                start_time=visit_start,
                end_time=visit_start + timedelta(minutes=30),
            ))

        assert store.rows("appointments") == []

    def test_vet_defaults_to_acting_user(self, ctx, appointment_service, sample_pet, visit_start):
        appointment = appointment_service.create(ctx, AppointmentCreate(
            pet_id=sample_pet.id,
            start_time=visit_start,
            end_time=visit_start + timedelta(minutes=30),
        ))

        assert appointment.vet_id == ctx.user_id

    def test_times_stored_in_utc(self, ctx, appointment_service, sample_pet, store):
        local = datetime(2030, 5, 6, 9, 0, tzinfo=timezone(timedelta(hours=-5)))

        appointment = _book(appointment_service, ctx, sample_pet.id, local)

        assert appointment.start_time.utcoffset() == timedelta(0)
        assert appointment.start_time == local


class TestAppointmentUpdate:

    def test_status_change_keeps_times(self, ctx, appointment_service, sample_appointment):
        updated = appointment_service.update(
            ctx, sample_appointment.id, AppointmentUpdate(status=AppointmentStatus.NO_SHOW)
        )

        assert updated.status == AppointmentStatus.NO_SHOW
        assert updated.start_time == sample_appointment.start_time
        assert updated.end_time == sample_appointment.end_time

    def test_any_status_transition_allowed(self, ctx, appointment_service, sample_appointment):
        appointment_service.update(
            ctx, sample_appointment.id, AppointmentUpdate(status=AppointmentStatus.CANCELLED)
        )
        reopened = appointment_service.update(
            ctx, sample_appointment.id, AppointmentUpdate(status=AppointmentStatus.SCHEDULED)
        )

        assert reopened.status == AppointmentStatus.SCHEDULED

    def test_end_only_edit_validated_against_stored_start(self, ctx, appointment_service, sample_appointment, store):
        with pytest.raises(EndNotAfterStartError):
            appointment_service.update(
                ctx, sample_appointment.id,
                AppointmentUpdate(end_time=sample_appointment.start_time - timedelta(minutes=1))
            )

        assert ("update", "appointments") not in store.calls
        stored = appointment_service.get_by_id(ctx, sample_appointment.id)
        assert stored.end_time == sample_appointment.end_time

    def test_valid_end_edit(self, ctx, appointment_service, sample_appointment):
        new_end = sample_appointment.start_time + timedelta(hours=1, minutes=30)

        updated = appointment_service.update(ctx, sample_appointment.id, AppointmentUpdate(end_time=new_end))

        assert updated.duration.label == "1h 30m"

    def test_update_missing_raises(self, ctx, appointment_service):
        with pytest.raises(NotFoundError):
            appointment_service.update(ctx, uuid4(), AppointmentUpdate(reason="x"))

    def test_update_other_clinic_raises(self, ctx_b, appointment_service, sample_appointment):
        with pytest.raises(NotFoundError):
            appointment_service.update(ctx_b, sample_appointment.id, AppointmentUpdate(reason="x"))

    def test_none_clears_optional_fields(self, ctx, appointment_service, sample_appointment):
        updated = appointment_service.update(
            ctx, sample_appointment.id, AppointmentUpdate(reason=None, room=None, vet_id=None)
        )

        assert updated.reason is None
        assert updated.room is None
        assert updated.vet_id is None
        assert updated.status == AppointmentStatus.SCHEDULED

    def test_omitted_fields_untouched(self, ctx, appointment_service, sample_appointment):
        updated = appointment_service.update(ctx, sample_appointment.id, AppointmentUpdate(notes="Bring records"))

        assert updated.notes == "Bring records"
        assert updated.reason == "Annual checkup"
        assert updated.room == "2"

    @pytest.mark.parametrize("field", ["status", "start_time", "pet_id"])
    def test_required_field_cannot_be_cleared(self, ctx, appointment_service, sample_appointment, store, field):
        with pytest.raises(InvalidInputError) as exc_info:
            appointment_service.update(ctx, sample_appointment.id, AppointmentUpdate(**{field: None}))

        assert exc_info.value.field == field
        assert ("update", "appointments") not in store.calls

    def test_vet_from_other_clinic_rejected(self, ctx, appointment_service, sample_appointment, store):
        with pytest.raises(NotFoundError):
            appointment_service.update(ctx, sample_appointment.id, AppointmentUpdate(vet_id=TEST_USER_B_ID))

        assert appointment_service.get_by_id(ctx, sample_appointment.id).vet_id == TEST_USER_ID


class TestReschedule:

    def test_drag_moves_both_ends_and_keeps_status(self, ctx, appointment_service, sample_appointment):
        appointment_service.update(
            ctx, sample_appointment.id, AppointmentUpdate(status=AppointmentStatus.COMPLETED)
        )
        delta = timedelta(days=1, hours=2)

        moved = appointment_service.reschedule(
            ctx, sample_appointment.id,
            sample_appointment.start_time + delta,
            sample_appointment.end_time + delta,
        )

        assert moved.start_time == sample_appointment.start_time + delta
        assert moved.duration == sample_appointment.duration
        assert moved.status == AppointmentStatus.COMPLETED

    def test_resize_to_zero_length_rejected(self, ctx, appointment_service, sample_appointment, store):
        with pytest.raises(EndNotAfterStartError):
            appointment_service.reschedule(
                ctx, sample_appointment.id,
                sample_appointment.start_time,
                sample_appointment.start_time,
            )

        assert ("update", "appointments") not in store.calls

    def test_reschedule_missing_raises(self, ctx, appointment_service, visit_start):
        with pytest.raises(NotFoundError):
            appointment_service.reschedule(ctx, uuid4(), visit_start, visit_start + timedelta(hours=1))


class TestAppointmentDelete:

    def test_delete_removes_visit_records(
        self, ctx, appointment_service, appointment_record_service, sample_appointment, store
    ):
        appointment_record_service.save_vitals(ctx, sample_appointment.id, VitalsInput(heart_rate_bpm=90))
        appointment_record_service.add_prescription(
            ctx, sample_appointment.id, PrescriptionCreate(item_name="Rabies vaccine")
        )
        appointment_record_service.add_recommendation(
            ctx, sample_appointment.id, RecommendationCreate(title="Dental cleaning")
        )

        assert appointment_service.delete(ctx, sample_appointment.id) is True

        assert store.rows("appointments") == []
        assert store.rows("appointment_vitals") == []
        assert store.rows("appointment_prescriptions") == []
        assert store.rows("appointment_recommendations") == []

    def test_delete_failure_rolls_back(self, ctx, appointment_service, sample_appointment, store):
        store.fail_on("delete", "appointments")

        with pytest.raises(PersistenceError):
            appointment_service.delete(ctx, sample_appointment.id)

        assert len(store.rows("appointments")) == 1

    def test_delete_other_clinic_returns_false(self, ctx_b, appointment_service, sample_appointment, store):
        assert appointment_service.delete(ctx_b, sample_appointment.id) is False
        assert len(store.rows("appointments")) == 1


class TestAppointmentQueries:

    def test_get_details(self, ctx, appointment_service, appointment_record_service, sample_appointment):
        appointment_record_service.add_prescription(
            ctx, sample_appointment.id, PrescriptionCreate(item_name="Carprofen")
        )

        details = appointment_service.get_details(ctx, sample_appointment.id)

        assert details.pet.name == "Biscuit"
        assert details.owner.full_name == "Jane Doe"
        assert details.vet.full_name == "Dr. Ada Park"
        assert details.vitals is None
        assert [p.item_name for p in details.prescriptions] == ["Carprofen"]
        assert details.recommendations == []

    def test_get_details_missing(self, ctx, appointment_service):
        with pytest.raises(NotFoundError):
            appointment_service.get_details(ctx, uuid4())

    def test_list_by_date_range_is_half_open(self, ctx, appointment_service, sample_pet, visit_start):
        inside = _book(appointment_service, ctx, sample_pet.id, visit_start)
        _book(appointment_service, ctx, sample_pet.id, visit_start + timedelta(days=1))

        found = appointment_service.list_by_date_range(ctx, visit_start, visit_start + timedelta(days=1))

        assert [a.id for a in found] == [inside.id]

    def test_list_upcoming_only_scheduled(self, ctx, appointment_service, sample_pet, visit_start):
        first = _book(appointment_service, ctx, sample_pet.id, visit_start)
        cancelled = _book(appointment_service, ctx, sample_pet.id, visit_start + timedelta(hours=2))
        appointment_service.update(ctx, cancelled.id, AppointmentUpdate(status=AppointmentStatus.CANCELLED))
        _book(appointment_service, ctx, sample_pet.id, visit_start - timedelta(days=30))

        upcoming = appointment_service.list_upcoming(ctx, now=visit_start - timedelta(days=1))

        assert [a.id for a in upcoming] == [first.id]

    def test_list_for_pet_newest_first(self, ctx, appointment_service, sample_pet, visit_start):
        older = _book(appointment_service, ctx, sample_pet.id, visit_start)
        newer = _book(appointment_service, ctx, sample_pet.id, visit_start + timedelta(days=7))

        history = appointment_service.list_for_pet(ctx, sample_pet.id)

        assert [a.id for a in history] == [newer.id, older.id]

    def test_count_scheduled(self, ctx, ctx_b, appointment_service, sample_appointment):
        assert appointment_service.count_scheduled(ctx) == 1
        assert appointment_service.count_scheduled(ctx_b) == 0
