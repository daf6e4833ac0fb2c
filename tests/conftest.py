import os
from datetime import datetime, timedelta

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('SCHEDULING_TIMEZONE', 'UTC')
os.environ.setdefault('REMINDER_TRIGGER_SECRET', 'test-reminder-secret')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from scheduling.database import Base  # noqa: E402
from scheduling.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from scheduling.models.department import Department  # noqa: E402
from scheduling.models.notification import NotificationRecord  # noqa: E402, F401
from scheduling.models.profile import Profile, ProfileRole  # noqa: E402
from scheduling.models.timeslot import TimeSlot  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def department(db) -> Department:
    department = Department(name='Finance Department')
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


@pytest.fixture
def staff(db, department) -> list[Profile]:
    members = [
        Profile(email='head@finance.gov', name='Head', role=ProfileRole.DEPARTMENT, department_id=department.id),
        Profile(email='clerk@finance.gov', name='Clerk', role=ProfileRole.DEPARTMENT, department_id=department.id),
    ]
    db.add_all(members)
    db.commit()
    for member in members:
        db.refresh(member)
    return members


@pytest.fixture
def school(db) -> Profile:
    profile = Profile(email='director@school.edu', name='Director', role=ProfileRole.SCHOOL, school_unit_id=7)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def admin(db) -> Profile:
    profile = Profile(email='admin@city.gov', name='Admin', role=ProfileRole.ADMIN)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def make_slot(db, department):
    def factory(start_time: datetime, minutes: int = 30, is_available: bool = True) -> TimeSlot:
        slot = TimeSlot(
            department_id=department.id,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=minutes),
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return factory


@pytest.fixture
def make_appointment(db, school, make_slot):
    def factory(
        start_time: datetime,
        status: AppointmentStatus = AppointmentStatus.ACTIVE,
        **values,
    ) -> Appointment:
        slot = make_slot(start_time, is_available=False)
        appointment = Appointment(
            timeslot_id=slot.id,
            requester_id=school.id,
            description='Budget review',
            status=status,
            **values,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return factory
