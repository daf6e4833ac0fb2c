from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduling.auth.dependencies import require_reminder_trigger
from scheduling.routes.common import database_unavailable, ensure_database_ready, get_db
from scheduling.services.reminders import dispatch_reminders

router = APIRouter(tags=['reminders'])


class ReminderRunResponse(BaseModel):
    success: bool
    processed: int
    by_threshold: dict[int, int]


@router.post('/run', response_model=ReminderRunResponse, dependencies=[Depends(require_reminder_trigger)])
def run_reminders(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        result = dispatch_reminders(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return ReminderRunResponse(success=True, processed=result.processed, by_threshold=result.by_threshold)
