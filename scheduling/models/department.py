"""Department model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from scheduling.database import Base


class Department(Base):
    """An administrative department that publishes bookable time slots."""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    timeslots = relationship("TimeSlot", back_populates="department")
