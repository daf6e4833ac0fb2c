"""Appointment model definitions."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import relationship

from scheduling.database import Base


class AppointmentStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


ACTIVE_TIMESLOT_INDEX = "uq_appointments_active_timeslot"


class Appointment(Base):
    """A booking of one school profile against one time slot."""
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one live appointment per slot; cancelled rows keep their history.
        Index(
            ACTIVE_TIMESLOT_INDEX,
            "timeslot_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("idx_appointments_status_timeslot", "status", "timeslot_id"),
    )

    id = Column(Integer, primary_key=True)
    timeslot_id = Column(Integer, ForeignKey("timeslots.id"), nullable=False)
    requester_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    status = Column(
        Enum(
            AppointmentStatus,
            name="appointment_status",
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=AppointmentStatus.ACTIVE,
    )
    cancel_reason = Column(String, nullable=True)
    department_notes = Column(Text, nullable=True)
    school_notes = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)
    notified_30min = Column(Boolean, nullable=False, default=False)
    notified_10min = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    timeslot = relationship("TimeSlot", back_populates="appointments")
