from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduling.auth.dependencies import get_current_profile
from scheduling.models.profile import Profile
from scheduling.routes.common import database_unavailable, get_db
from scheduling.services.notifications import list_notifications

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


@router.get('', response_model=list[NotificationResponse])
def list_my_notifications(
    unread_only: bool = Query(default=False),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        return list_notifications(db, profile.id, unread_only=unread_only)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
