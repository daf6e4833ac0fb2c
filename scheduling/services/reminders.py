"""Periodic appointment reminders.

``dispatch_reminders`` is meant to be called on a fixed cadence by an external
scheduler. Each threshold has its own per-row flag, claimed with a conditional
update before any notification is queued, so overlapping or repeated runs send
each reminder at most once. The claim and its notifications commit together.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from scheduling.core.timeutils import format_local_time, utcnow
from scheduling.models.appointment import Appointment, AppointmentStatus
from scheduling.models.timeslot import TimeSlot
from scheduling.services.notifications import notify_department, notify_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderThreshold:
    minutes: int
    flag: str
    title: str
    requester_message: str
    staff_message: str

    @property
    def flag_column(self):
        return getattr(Appointment, self.flag)


THIRTY_MINUTE_REMINDER = ReminderThreshold(
    minutes=30,
    flag='notified_30min',
    title='Appointment reminder',
    requester_message='Your appointment with {department} starts in 30 minutes ({time}).',
    staff_message='The appointment at {department} at {time} starts in 30 minutes.',
)
TEN_MINUTE_REMINDER = ReminderThreshold(
    minutes=10,
    flag='notified_10min',
    title='Appointment starting soon',
    requester_message='Your appointment with {department} starts in 10 minutes ({time})!',
    staff_message='The appointment at {department} at {time} starts in 10 minutes!',
)
REMINDER_THRESHOLDS = (THIRTY_MINUTE_REMINDER, TEN_MINUTE_REMINDER)


@dataclass
class ReminderRunResult:
    processed: int = 0
    by_threshold: dict[int, int] = field(default_factory=dict)

    def record(self, threshold: ReminderThreshold) -> None:
        self.processed += 1
        self.by_threshold[threshold.minutes] = self.by_threshold.get(threshold.minutes, 0) + 1


def find_due_appointments(db: Session, threshold: ReminderThreshold, now: datetime) -> list[Appointment]:
    """Active, unflagged appointments starting in (now, now + threshold]."""
    return db.query(Appointment).join(Appointment.timeslot).options(
        joinedload(Appointment.timeslot).joinedload(TimeSlot.department),
    ).filter(
        Appointment.status == AppointmentStatus.ACTIVE,
        threshold.flag_column.is_(False),
        TimeSlot.start_time > now,
        TimeSlot.start_time <= now + timedelta(minutes=threshold.minutes),
    ).order_by(TimeSlot.start_time.asc(), Appointment.id.asc()).all()


def claim_reminder(db: Session, appointment_id: int, threshold: ReminderThreshold) -> bool:
    updated = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.status == AppointmentStatus.ACTIVE,
        threshold.flag_column.is_(False),
    ).update({threshold.flag_column: True}, synchronize_session=False)
    return updated == 1


def send_reminder(db: Session, appointment: Appointment, threshold: ReminderThreshold) -> bool:
    appointment_id = appointment.id
    requester_id = appointment.requester_id
    slot = appointment.timeslot
    department_name = slot.department.name if slot.department else 'the department'
    placeholders = {'department': department_name, 'time': format_local_time(slot.start_time)}

    if not claim_reminder(db, appointment_id, threshold):
        db.rollback()
        logger.debug('%s-minute reminder for appointment %s already claimed', threshold.minutes, appointment_id)
        return False

    notify_user(db, requester_id, threshold.title, threshold.requester_message.format(**placeholders))
    notify_department(db, slot.department_id, threshold.title, threshold.staff_message.format(**placeholders))
    db.commit()

    logger.info('Sent %s-minute reminder for appointment %s', threshold.minutes, appointment_id)
    return True


def dispatch_reminders(db: Session, now: datetime | None = None) -> ReminderRunResult:
    now = now or utcnow()
    result = ReminderRunResult()

    try:
        for threshold in REMINDER_THRESHOLDS:
            for appointment in find_due_appointments(db, threshold, now):
                if send_reminder(db, appointment, threshold):
                    result.record(threshold)
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Reminder run failed after %d reminders', result.processed)
        raise

    logger.info('Reminder run at %s processed %d reminders', now.isoformat(timespec='minutes'), result.processed)
    return result
