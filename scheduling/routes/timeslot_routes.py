from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduling.auth.dependencies import ensure_department_access, get_current_profile, require_roles
from scheduling.core import config
from scheduling.core.errors import SlotNotFoundError
from scheduling.core.timeutils import utcnow
from scheduling.models.profile import Profile, ProfileRole
from scheduling.models.timeslot import TimeSlot
from scheduling.routes.common import database_unavailable, ensure_database_ready, get_db
from scheduling.services import timeslots

router = APIRouter(tags=['timeslots'])

staff_only = require_roles(ProfileRole.DEPARTMENT, ProfileRole.ADMIN)


class GenerateSlotsRequest(BaseModel):
    department_id: int
    date: date
    start_time: time
    end_time: time
    duration_minutes: int

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value < config.MIN_SLOT_DURATION_MINUTES:
            raise ValueError(f'Slots must be at least {config.MIN_SLOT_DURATION_MINUTES} minutes long.')
        return value

    @model_validator(mode='after')
    def validate_range(self) -> 'GenerateSlotsRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class TimeSlotResponse(BaseModel):
    id: int
    department_id: int
    start_time: datetime
    end_time: datetime
    is_available: bool

    class Config:
        from_attributes = True


@router.post('/generate', response_model=list[TimeSlotResponse], status_code=status.HTTP_201_CREATED)
def generate_timeslots(
    data: GenerateSlotsRequest,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_department_access(profile, data.department_id)
    ensure_database_ready()

    try:
        return timeslots.generate_slots(
            db,
            department_id=data.department_id,
            slot_date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            duration_minutes=data.duration_minutes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/available', response_model=list[TimeSlotResponse])
def list_available_timeslots(
    department_id: int = Query(...),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    del profile
    ensure_database_ready()

    try:
        return list(timeslots.list_available(db, department_id, not_before=utcnow()))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/department/{department_id}', response_model=list[TimeSlotResponse])
def list_department_timeslots(
    department_id: int,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_department_access(profile, department_id)
    ensure_database_ready()

    try:
        return timeslots.list_department_slots(db, department_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.delete('/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_timeslot(
    slot_id: int,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slot = db.get(TimeSlot, slot_id)
        if slot is None:
            return
        ensure_department_access(profile, slot.department_id)
        timeslots.delete_slot(db, slot_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{slot_id}/reopen', response_model=TimeSlotResponse)
def reopen_timeslot(
    slot_id: int,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slot = db.get(TimeSlot, slot_id)
        if slot is None:
            raise SlotNotFoundError()
        ensure_department_access(profile, slot.department_id)
        return timeslots.reopen_slot(db, slot_id, now=utcnow())
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
