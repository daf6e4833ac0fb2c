"""Appointment lifecycle.

An appointment starts ``active`` and moves exactly once to ``cancelled``,
``completed`` or ``no-show``. Every transition is written as a conditional
update on the expected current status, so a concurrent writer that got there
first makes the late caller fail with ``InvalidTransitionError`` instead of
silently overwriting a terminal state.

Notifications are queued after the transition commits. A failure there is
logged and rolled back on its own; it never undoes the transition.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from scheduling.core import config
from scheduling.core.errors import (
    AppointmentAlreadyStartedError,
    AppointmentNotFoundError,
    AppointmentNotStartedError,
    CancellationWindowClosedError,
    DepartmentNotFoundError,
    InvalidTransitionError,
    SlotInPastError,
    SlotNoLongerAvailableError,
    SlotNotFoundError,
    ValidationError,
)
from scheduling.core.timeutils import format_local_time, utcnow
from scheduling.models.appointment import ACTIVE_TIMESLOT_INDEX, Appointment, AppointmentStatus
from scheduling.models.department import Department
from scheduling.models.timeslot import TimeSlot
from scheduling.services.notifications import notify_department, notify_user
from scheduling.services.timeslots import mark_unavailable

logger = logging.getLogger(__name__)

REQUESTER_CANCEL_REASON = 'Cancelled by requester'
MIN_RATING = 1
MAX_RATING = 5

_TAG_PATTERN = re.compile(r'<[^>]*>')


def sanitize_text(value: str | None, max_length: int) -> str:
    if value is None:
        return ''
    return _TAG_PATTERN.sub('', value).strip()[:max_length]


def _department_label(appointment: Appointment) -> str:
    department = appointment.timeslot.department if appointment.timeslot else None
    return department.name if department and department.name else 'the department'


def _slot_label(appointment: Appointment) -> str:
    return format_local_time(appointment.timeslot.start_time, '%d/%m/%Y %H:%M')


def _violates_active_timeslot_index(exc: IntegrityError) -> bool:
    # psycopg2 names the constraint; SQLite only names the indexed column.
    constraint = getattr(getattr(exc.orig, 'diag', None), 'constraint_name', None)
    if constraint:
        return constraint == ACTIVE_TIMESLOT_INDEX
    message = str(exc.orig)
    return ACTIVE_TIMESLOT_INDEX in message or 'UNIQUE constraint failed: appointments.timeslot_id' in message


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).options(
        joinedload(Appointment.timeslot).joinedload(TimeSlot.department),
    ).filter(Appointment.id == appointment_id).first()

    if appointment is None:
        raise AppointmentNotFoundError()
    return appointment


def _require_status(appointment: Appointment, expected: AppointmentStatus, action: str) -> None:
    if appointment.status != expected:
        raise InvalidTransitionError(AppointmentStatus(appointment.status).value, action)


def _apply_transition(
    db: Session,
    appointment: Appointment,
    expected: AppointmentStatus,
    values: dict,
    action: str,
) -> None:
    updated = db.query(Appointment).filter(
        Appointment.id == appointment.id,
        Appointment.status == expected,
    ).update(values, synchronize_session=False)

    if updated != 1:
        db.rollback()
        current = db.query(Appointment.status).filter(Appointment.id == appointment.id).scalar()
        if current is None:
            raise AppointmentNotFoundError()
        raise InvalidTransitionError(AppointmentStatus(current).value, action)

    db.commit()
    db.refresh(appointment)
    logger.info('Appointment %s: %s (now %s)', appointment.id, action, appointment.status.value)


def _emit_notifications(db: Session, appointment: Appointment, action: str, emit: Callable[[], object]) -> None:
    try:
        emit()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception('Could not queue %s notifications for appointment %s', action, appointment.id)


def book(
    db: Session,
    timeslot_id: int,
    requester_id: int,
    description: str,
    now: datetime | None = None,
) -> Appointment:
    now = now or utcnow()
    cleaned_description = sanitize_text(description, config.MAX_DESCRIPTION_LENGTH)
    if not cleaned_description:
        raise ValidationError('A description is required to book an appointment.')

    try:
        if not mark_unavailable(db, timeslot_id, starts_after=now):
            db.rollback()
            slot = db.get(TimeSlot, timeslot_id)
            if slot is None:
                raise SlotNotFoundError()
            if slot.start_time <= now:
                raise SlotInPastError()
            raise SlotNoLongerAvailableError()

        appointment = Appointment(
            timeslot_id=timeslot_id,
            requester_id=requester_id,
            description=cleaned_description,
            status=AppointmentStatus.ACTIVE,
            notified_30min=False,
            notified_10min=False,
        )
        db.add(appointment)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _violates_active_timeslot_index(exc):
            raise
        raise SlotNoLongerAvailableError() from exc

    logger.info('Appointment %s booked on slot %s by profile %s', appointment.id, timeslot_id, requester_id)
    return get_appointment(db, appointment.id)


def cancel_by_staff(db: Session, appointment_id: int, reason: str) -> Appointment:
    cleaned_reason = sanitize_text(reason, config.MAX_NOTES_LENGTH)
    if not cleaned_reason:
        raise ValidationError('A cancellation reason is required.')

    appointment = get_appointment(db, appointment_id)
    _require_status(appointment, AppointmentStatus.ACTIVE, 'cancel')
    _apply_transition(
        db,
        appointment,
        AppointmentStatus.ACTIVE,
        {Appointment.status: AppointmentStatus.CANCELLED, Appointment.cancel_reason: cleaned_reason},
        'cancel',
    )

    _emit_notifications(
        db,
        appointment,
        'staff cancellation',
        lambda: notify_user(
            db,
            appointment.requester_id,
            'Appointment cancelled',
            f'{_department_label(appointment)} cancelled your appointment on {_slot_label(appointment)}. '
            f'Reason: {cleaned_reason}',
        ),
    )
    return appointment


def cancel_by_requester(db: Session, appointment_id: int, now: datetime | None = None) -> Appointment:
    now = now or utcnow()
    appointment = get_appointment(db, appointment_id)
    _require_status(appointment, AppointmentStatus.ACTIVE, 'cancel')

    lead_time = appointment.timeslot.start_time - now
    if lead_time <= timedelta(0):
        raise AppointmentAlreadyStartedError()
    if lead_time < timedelta(hours=config.REQUESTER_CANCEL_LEAD_HOURS):
        raise CancellationWindowClosedError(config.REQUESTER_CANCEL_LEAD_HOURS)

    _apply_transition(
        db,
        appointment,
        AppointmentStatus.ACTIVE,
        {Appointment.status: AppointmentStatus.CANCELLED, Appointment.cancel_reason: REQUESTER_CANCEL_REASON},
        'cancel',
    )

    _emit_notifications(
        db,
        appointment,
        'requester cancellation',
        lambda: notify_department(
            db,
            appointment.timeslot.department_id,
            'Appointment cancelled by school',
            f'A school cancelled its appointment on {_slot_label(appointment)}.',
        ),
    )
    return appointment


def mark_no_show(db: Session, appointment_id: int, now: datetime | None = None) -> Appointment:
    now = now or utcnow()
    appointment = get_appointment(db, appointment_id)
    _require_status(appointment, AppointmentStatus.ACTIVE, 'mark as no-show')

    if appointment.timeslot.start_time > now:
        raise AppointmentNotStartedError('A future appointment cannot be marked as a no-show.')

    _apply_transition(
        db,
        appointment,
        AppointmentStatus.ACTIVE,
        {Appointment.status: AppointmentStatus.NO_SHOW},
        'mark as no-show',
    )

    _emit_notifications(
        db,
        appointment,
        'no-show',
        lambda: notify_user(
            db,
            appointment.requester_id,
            'Missed appointment',
            f'Your appointment with {_department_label(appointment)} on {_slot_label(appointment)} '
            'was recorded as a no-show.',
        ),
    )
    return appointment


def complete(
    db: Session,
    appointment_id: int,
    department_notes: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    now = now or utcnow()
    appointment = get_appointment(db, appointment_id)
    _require_status(appointment, AppointmentStatus.ACTIVE, 'complete')

    if appointment.timeslot.start_time > now:
        raise AppointmentNotStartedError('An appointment cannot be completed before it starts.')

    cleaned_notes = sanitize_text(department_notes, config.MAX_NOTES_LENGTH) or None
    _apply_transition(
        db,
        appointment,
        AppointmentStatus.ACTIVE,
        {Appointment.status: AppointmentStatus.COMPLETED, Appointment.department_notes: cleaned_notes},
        'complete',
    )

    _emit_notifications(
        db,
        appointment,
        'completion',
        lambda: notify_user(
            db,
            appointment.requester_id,
            'Appointment completed',
            f'Your appointment with {_department_label(appointment)} was completed. '
            'Please rate the service you received.',
        ),
    )
    return appointment


def rate(db: Session, appointment_id: int, rating: int, school_notes: str | None = None) -> Appointment:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f'Rating must be a whole number between {MIN_RATING} and {MAX_RATING}.')

    appointment = get_appointment(db, appointment_id)
    _require_status(appointment, AppointmentStatus.COMPLETED, 'rate')

    # Re-rating overwrites the previous rating and notes.
    cleaned_notes = sanitize_text(school_notes, config.MAX_NOTES_LENGTH) or None
    _apply_transition(
        db,
        appointment,
        AppointmentStatus.COMPLETED,
        {Appointment.rating: rating, Appointment.school_notes: cleaned_notes},
        'rate',
    )

    _emit_notifications(
        db,
        appointment,
        'rating',
        lambda: notify_department(
            db,
            appointment.timeslot.department_id,
            'New rating received',
            f'A school rated its appointment on {_slot_label(appointment)} with {rating}/{MAX_RATING}.',
        ),
    )
    return appointment


def list_requester_appointments(db: Session, requester_id: int) -> list[Appointment]:
    return db.query(Appointment).join(Appointment.timeslot).options(
        joinedload(Appointment.timeslot).joinedload(TimeSlot.department),
    ).filter(
        Appointment.requester_id == requester_id,
    ).order_by(TimeSlot.start_time.desc(), Appointment.id.desc()).all()


def list_department_appointments(
    db: Session,
    department_id: int,
    status: AppointmentStatus | None = None,
) -> list[Appointment]:
    query = db.query(Appointment).join(Appointment.timeslot).options(
        joinedload(Appointment.timeslot).joinedload(TimeSlot.department),
    ).filter(TimeSlot.department_id == department_id)

    if status is not None:
        query = query.filter(Appointment.status == status)

    return query.order_by(TimeSlot.start_time.asc(), Appointment.id.asc()).all()


def department_summary(db: Session, department_id: int) -> dict[str, int | str]:
    department = db.get(Department, department_id)
    if department is None:
        raise DepartmentNotFoundError()

    total_slots = db.query(func.count(TimeSlot.id)).filter(TimeSlot.department_id == department_id).scalar()
    available_slots = db.query(func.count(TimeSlot.id)).filter(
        TimeSlot.department_id == department_id,
        TimeSlot.is_available.is_(True),
    ).scalar()
    active_appointments = db.query(func.count(Appointment.id)).join(Appointment.timeslot).filter(
        TimeSlot.department_id == department_id,
        Appointment.status == AppointmentStatus.ACTIVE,
    ).scalar()

    return {
        'department_id': department.id,
        'department_name': department.name,
        'total_slots': total_slots or 0,
        'available_slots': available_slots or 0,
        'active_appointments': active_appointments or 0,
    }
