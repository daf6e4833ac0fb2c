"""Time slot model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, func
from sqlalchemy.orm import relationship

from scheduling.database import Base


class TimeSlot(Base):
    """A bookable window owned by one department."""
    __tablename__ = "timeslots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_timeslots_start_before_end"),
        Index("idx_timeslots_department_available_start", "department_id", "is_available", "start_time"),
    )

    id = Column(Integer, primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    department = relationship("Department", back_populates="timeslots")
    appointments = relationship("Appointment", back_populates="timeslot")
