import logging
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scheduling.core.errors import (
    DepartmentNotFoundError,
    InvalidDurationError,
    InvalidRangeError,
    NoSlotsGeneratedError,
    SlotHasHistoryError,
    SlotNotFoundError,
    StateConflictError,
)
from scheduling.core.timeutils import local_to_utc
from scheduling.models.appointment import Appointment, AppointmentStatus
from scheduling.models.department import Department
from scheduling.models.timeslot import TimeSlot

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 1


def iterate_slot_windows(start_time: datetime, end_time: datetime, duration_minutes: int) -> list[tuple[datetime, datetime]]:
    """Split [start_time, end_time) into back-to-back windows, dropping a short tail."""
    windows: list[tuple[datetime, datetime]] = []
    step = timedelta(minutes=duration_minutes)
    current = start_time

    while current + step <= end_time:
        windows.append((current, current + step))
        current += step

    return windows


def generate_slots(
    db: Session,
    department_id: int,
    slot_date: date,
    start_time: time,
    end_time: time,
    duration_minutes: int,
) -> list[TimeSlot]:
    if end_time <= start_time:
        raise InvalidRangeError()
    if duration_minutes < MIN_DURATION_MINUTES:
        raise InvalidDurationError()

    if db.get(Department, department_id) is None:
        raise DepartmentNotFoundError()

    windows = iterate_slot_windows(
        local_to_utc(slot_date, start_time),
        local_to_utc(slot_date, end_time),
        duration_minutes,
    )
    if not windows:
        raise NoSlotsGeneratedError()

    slots = [
        TimeSlot(department_id=department_id, start_time=window_start, end_time=window_end, is_available=True)
        for window_start, window_end in windows
    ]
    db.add_all(slots)
    db.commit()
    for slot in slots:
        db.refresh(slot)

    logger.info('Generated %d slots for department %s on %s', len(slots), department_id, slot_date.isoformat())
    return slots


def list_available(db: Session, department_id: int, not_before: datetime) -> Iterator[TimeSlot]:
    query = db.query(TimeSlot).filter(
        TimeSlot.department_id == department_id,
        TimeSlot.is_available.is_(True),
        TimeSlot.start_time >= not_before,
    ).order_by(TimeSlot.start_time.asc(), TimeSlot.id.asc())
    return iter(query.yield_per(100))


def list_department_slots(db: Session, department_id: int) -> list[TimeSlot]:
    return db.query(TimeSlot).filter(
        TimeSlot.department_id == department_id,
    ).order_by(TimeSlot.start_time.asc(), TimeSlot.id.asc()).all()


def slot_has_history(db: Session, slot_id: int) -> bool:
    return db.query(Appointment.id).filter(Appointment.timeslot_id == slot_id).first() is not None


def delete_slot(db: Session, slot_id: int) -> None:
    slot = db.get(TimeSlot, slot_id)
    if slot is None:
        return

    if slot_has_history(db, slot_id):
        raise SlotHasHistoryError()

    # A booking may land after the check above, so the delete itself re-checks.
    try:
        deleted = db.query(TimeSlot).filter(
            TimeSlot.id == slot_id,
            ~TimeSlot.appointments.any(),
        ).delete(synchronize_session='fetch')
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlotHasHistoryError() from exc

    if deleted != 1:
        if db.get(TimeSlot, slot_id) is not None:
            raise SlotHasHistoryError()
        return

    logger.info('Deleted time slot %s', slot_id)


def mark_unavailable(db: Session, slot_id: int, starts_after: datetime | None = None) -> bool:
    """Conditionally flip a slot to unavailable. Returns False when another writer won."""
    query = db.query(TimeSlot).filter(TimeSlot.id == slot_id, TimeSlot.is_available.is_(True))
    if starts_after is not None:
        query = query.filter(TimeSlot.start_time > starts_after)
    return query.update({TimeSlot.is_available: False}, synchronize_session=False) == 1


def mark_available(db: Session, slot_id: int) -> bool:
    updated = db.query(TimeSlot).filter(
        TimeSlot.id == slot_id,
        TimeSlot.is_available.is_(False),
    ).update({TimeSlot.is_available: True}, synchronize_session=False)
    return updated == 1


def reopen_slot(db: Session, slot_id: int, now: datetime) -> TimeSlot:
    """Return a slot to the bookable pool after its appointment was cancelled."""
    slot = db.get(TimeSlot, slot_id)
    if slot is None:
        raise SlotNotFoundError()

    if slot.start_time <= now:
        raise StateConflictError('Only future time slots can be reopened.')

    has_active_appointment = db.query(Appointment.id).filter(
        Appointment.timeslot_id == slot_id,
        Appointment.status == AppointmentStatus.ACTIVE,
    ).first() is not None
    if has_active_appointment:
        raise StateConflictError('This time slot still has an active appointment.')

    if mark_available(db, slot_id):
        db.commit()
        logger.info('Reopened time slot %s', slot_id)
    db.refresh(slot)
    return slot
