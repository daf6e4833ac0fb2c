"""Notification sink: append-only messages for profiles.

Helpers here only add rows to the session. Callers decide when to commit, so a
reminder can commit its flag flip and its notifications together while a state
transition can commit its notifications separately as a best-effort step.
"""

import logging

from sqlalchemy.orm import Session

from scheduling.models.notification import NotificationRecord
from scheduling.models.profile import Profile

logger = logging.getLogger(__name__)


def list_department_staff(db: Session, department_id: int) -> list[int]:
    rows = db.query(Profile.id).filter(Profile.department_id == department_id).order_by(Profile.id.asc()).all()
    return [profile_id for (profile_id,) in rows]


def notify_user(db: Session, user_id: int, title: str, message: str) -> NotificationRecord:
    notification = NotificationRecord(user_id=user_id, title=title, message=message, is_read=False)
    db.add(notification)
    logger.debug('Queued notification for profile %s: %s', user_id, title)
    return notification


def notify_department(db: Session, department_id: int, title: str, message: str) -> list[NotificationRecord]:
    staff_ids = list_department_staff(db, department_id)
    if not staff_ids:
        logger.info('Department %s has no staff profiles; skipping "%s"', department_id, title)
        return []
    return [notify_user(db, staff_id, title, message) for staff_id in staff_ids]


def list_notifications(db: Session, user_id: int, unread_only: bool = False) -> list[NotificationRecord]:
    query = db.query(NotificationRecord).filter(NotificationRecord.user_id == user_id)
    if unread_only:
        query = query.filter(NotificationRecord.is_read.is_(False))
    return query.order_by(NotificationRecord.created_at.desc(), NotificationRecord.id.desc()).all()
