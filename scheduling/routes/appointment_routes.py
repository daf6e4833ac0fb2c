from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scheduling.auth.dependencies import ensure_department_access, require_roles
from scheduling.core import config
from scheduling.models.appointment import Appointment, AppointmentStatus
from scheduling.models.profile import Profile, ProfileRole
from scheduling.routes.common import database_unavailable, ensure_database_ready, get_db
from scheduling.services import appointments

router = APIRouter(tags=['appointments'])

school_only = require_roles(ProfileRole.SCHOOL)
staff_only = require_roles(ProfileRole.DEPARTMENT, ProfileRole.ADMIN)


class BookAppointmentRequest(BaseModel):
    timeslot_id: int
    description: str

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Description is required.')
        if len(normalized) > config.MAX_DESCRIPTION_LENGTH:
            raise ValueError(f'Description must be {config.MAX_DESCRIPTION_LENGTH} characters or fewer.')
        return normalized


class StaffCancelRequest(BaseModel):
    reason: str

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('A cancellation reason is required.')
        return normalized


class CompleteAppointmentRequest(BaseModel):
    department_notes: str | None = None


class RateAppointmentRequest(BaseModel):
    rating: int
    school_notes: str | None = None

    @field_validator('rating')
    @classmethod
    def validate_rating(cls, value: int) -> int:
        if not appointments.MIN_RATING <= value <= appointments.MAX_RATING:
            raise ValueError(f'Rating must be between {appointments.MIN_RATING} and {appointments.MAX_RATING}.')
        return value


class AppointmentResponse(BaseModel):
    id: int
    timeslot_id: int
    department_id: int
    department_name: str
    requester_id: int
    description: str
    status: str
    start_time: datetime
    end_time: datetime
    cancel_reason: str | None = None
    department_notes: str | None = None
    school_notes: str | None = None
    rating: int | None = None
    notified_30min: bool
    notified_10min: bool
    created_at: datetime | None = None


class DepartmentSummaryResponse(BaseModel):
    department_id: int
    department_name: str
    total_slots: int
    available_slots: int
    active_appointments: int


def to_response(appointment: Appointment) -> AppointmentResponse:
    slot = appointment.timeslot
    return AppointmentResponse(
        id=appointment.id,
        timeslot_id=appointment.timeslot_id,
        department_id=slot.department_id,
        department_name=slot.department.name if slot.department else '',
        requester_id=appointment.requester_id,
        description=appointment.description,
        status=AppointmentStatus(appointment.status).value,
        start_time=slot.start_time,
        end_time=slot.end_time,
        cancel_reason=appointment.cancel_reason,
        department_notes=appointment.department_notes,
        school_notes=appointment.school_notes,
        rating=appointment.rating,
        notified_30min=bool(appointment.notified_30min),
        notified_10min=bool(appointment.notified_10min),
        created_at=appointment.created_at,
    )


def load_for_staff(db: Session, appointment_id: int, profile: Profile) -> Appointment:
    appointment = appointments.get_appointment(db, appointment_id)
    ensure_department_access(profile, appointment.timeslot.department_id)
    return appointment


def load_for_requester(db: Session, appointment_id: int, profile: Profile) -> Appointment:
    appointment = appointments.get_appointment(db, appointment_id)
    if appointment.requester_id != profile.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the school that booked this appointment can change it.',
        )
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    profile: Profile = Depends(school_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointments.book(db, data.timeslot_id, profile.id, data.description)
        return to_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    profile: Profile = Depends(school_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return [to_response(appointment) for appointment in appointments.list_requester_appointments(db, profile.id)]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/department/{department_id}', response_model=list[AppointmentResponse])
def list_department_appointments(
    department_id: int,
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_department_access(profile, department_id)
    ensure_database_ready()

    try:
        return [
            to_response(appointment)
            for appointment in appointments.list_department_appointments(db, department_id, status_filter)
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/department/{department_id}/summary', response_model=DepartmentSummaryResponse)
def get_department_summary(
    department_id: int,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_department_access(profile, department_id)
    ensure_database_ready()

    try:
        return appointments.department_summary(db, department_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment_by_staff(
    appointment_id: int,
    data: StaffCancelRequest,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        load_for_staff(db, appointment_id, profile)
        return to_response(appointments.cancel_by_staff(db, appointment_id, data.reason))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/cancel-mine', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    profile: Profile = Depends(school_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        load_for_requester(db, appointment_id, profile)
        return to_response(appointments.cancel_by_requester(db, appointment_id))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_appointment_no_show(
    appointment_id: int,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        load_for_staff(db, appointment_id, profile)
        return to_response(appointments.mark_no_show(db, appointment_id))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest,
    profile: Profile = Depends(staff_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        load_for_staff(db, appointment_id, profile)
        return to_response(appointments.complete(db, appointment_id, data.department_notes))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/rate', response_model=AppointmentResponse)
def rate_appointment(
    appointment_id: int,
    data: RateAppointmentRequest,
    profile: Profile = Depends(school_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        load_for_requester(db, appointment_id, profile)
        return to_response(appointments.rate(db, appointment_id, data.rating, data.school_notes))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
