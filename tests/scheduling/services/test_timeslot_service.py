from datetime import date, datetime, time, timedelta

import pytest

from scheduling.core.errors import (
    DepartmentNotFoundError,
    InvalidDurationError,
    InvalidRangeError,
    NoSlotsGeneratedError,
    SlotHasHistoryError,
    SlotNotFoundError,
    StateConflictError,
)
from scheduling.models.appointment import Appointment, AppointmentStatus
from scheduling.models.timeslot import TimeSlot
from scheduling.services import appointments, timeslots

NOW = datetime(2026, 3, 2, 12, 0)


def test_iterate_slot_windows_drops_short_tail() -> None:
    windows = timeslots.iterate_slot_windows(datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 50), 15)

    assert windows == [
        (datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 15)),
        (datetime(2026, 1, 5, 9, 15), datetime(2026, 1, 5, 9, 30)),
        (datetime(2026, 1, 5, 9, 30), datetime(2026, 1, 5, 9, 45)),
    ]


def test_generate_slots_partitions_range_and_discards_remainder(db, department) -> None:
    slots = timeslots.generate_slots(db, department.id, date(2024, 1, 1), time(8, 0), time(9, 5), 30)

    assert [(slot.start_time, slot.end_time) for slot in slots] == [
        (datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 1, 8, 30)),
        (datetime(2024, 1, 1, 8, 30), datetime(2024, 1, 1, 9, 0)),
    ]
    assert all(slot.is_available for slot in slots)
    assert db.query(TimeSlot).count() == 2


def test_generate_slots_converts_local_time_to_utc(db, department, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('scheduling.core.config.SCHEDULING_TIMEZONE', 'America/Sao_Paulo')

    slots = timeslots.generate_slots(db, department.id, date(2026, 3, 2), time(8, 0), time(9, 0), 60)

    assert [(slot.start_time, slot.end_time) for slot in slots] == [
        (datetime(2026, 3, 2, 11, 0), datetime(2026, 3, 2, 12, 0)),
    ]


@pytest.mark.parametrize(
    ('start_time', 'end_time', 'duration', 'error'),
    [
        (time(9, 0), time(9, 0), 30, InvalidRangeError),
        (time(10, 0), time(9, 0), 30, InvalidRangeError),
        (time(9, 0), time(10, 0), 0, InvalidDurationError),
        (time(9, 0), time(9, 20), 30, NoSlotsGeneratedError),
    ],
)
def test_generate_slots_rejects_bad_input(db, department, start_time, end_time, duration, error) -> None:
    with pytest.raises(error):
        timeslots.generate_slots(db, department.id, date(2026, 3, 3), start_time, end_time, duration)

    assert db.query(TimeSlot).count() == 0


def test_generate_slots_requires_existing_department(db) -> None:
    with pytest.raises(DepartmentNotFoundError):
        timeslots.generate_slots(db, 404, date(2026, 3, 3), time(9, 0), time(10, 0), 30)


def test_list_available_filters_and_orders_by_start(db, department, make_slot) -> None:
    later = make_slot(NOW + timedelta(hours=3))
    sooner = make_slot(NOW + timedelta(hours=1))
    make_slot(NOW - timedelta(hours=1))
    make_slot(NOW + timedelta(hours=2), is_available=False)

    first_pass = [slot.id for slot in timeslots.list_available(db, department.id, not_before=NOW)]
    second_pass = [slot.id for slot in timeslots.list_available(db, department.id, not_before=NOW)]

    assert first_pass == [sooner.id, later.id]
    assert second_pass == first_pass


def test_delete_slot_without_history_succeeds_and_is_idempotent(db, make_slot) -> None:
    slot = make_slot(NOW + timedelta(days=1))

    timeslots.delete_slot(db, slot.id)
    timeslots.delete_slot(db, slot.id)

    assert db.get(TimeSlot, slot.id) is None


def test_delete_slot_with_cancelled_appointment_is_rejected(db, make_appointment) -> None:
    appointment = make_appointment(
        NOW + timedelta(days=1),
        status=AppointmentStatus.CANCELLED,
        cancel_reason='Room unavailable',
    )

    with pytest.raises(SlotHasHistoryError):
        timeslots.delete_slot(db, appointment.timeslot_id)

    assert db.get(TimeSlot, appointment.timeslot_id) is not None


def test_delete_slot_rejects_booking_that_lands_after_history_check(
    db,
    session_factory,
    school,
    make_slot,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    slot = make_slot(NOW + timedelta(days=1))
    booking_session = session_factory()

    def history_check_then_concurrent_booking(check_db, slot_id: int) -> bool:
        appointments.book(booking_session, slot_id, school.id, 'Budget review', now=NOW)
        return False

    monkeypatch.setattr('scheduling.services.timeslots.slot_has_history', history_check_then_concurrent_booking)
    try:
        with pytest.raises(SlotHasHistoryError):
            timeslots.delete_slot(db, slot.id)

        db.expire_all()
        assert db.get(TimeSlot, slot.id) is not None
        assert db.query(Appointment).filter(Appointment.timeslot_id == slot.id).count() == 1
    finally:
        booking_session.close()


def test_mark_unavailable_only_succeeds_once(db, make_slot) -> None:
    slot = make_slot(NOW + timedelta(days=1))

    assert timeslots.mark_unavailable(db, slot.id) is True
    assert timeslots.mark_unavailable(db, slot.id) is False
    assert timeslots.mark_available(db, slot.id) is True
    assert timeslots.mark_available(db, slot.id) is False


def test_reopen_slot_after_cancellation(db, make_appointment) -> None:
    appointment = make_appointment(
        NOW + timedelta(days=1),
        status=AppointmentStatus.CANCELLED,
        cancel_reason='Cancelled by requester',
    )

    slot = timeslots.reopen_slot(db, appointment.timeslot_id, now=NOW)

    assert slot.is_available is True


def test_reopen_slot_rejects_active_appointment(db, make_appointment) -> None:
    appointment = make_appointment(NOW + timedelta(days=1))

    with pytest.raises(StateConflictError) as exception_info:
        timeslots.reopen_slot(db, appointment.timeslot_id, now=NOW)

    assert exception_info.value.detail == 'This time slot still has an active appointment.'


def test_reopen_slot_rejects_past_or_missing_slot(db, make_slot) -> None:
    past = make_slot(NOW - timedelta(hours=1), is_available=False)

    with pytest.raises(StateConflictError):
        timeslots.reopen_slot(db, past.id, now=NOW)
    with pytest.raises(SlotNotFoundError):
        timeslots.reopen_slot(db, 999, now=NOW)
