"""Profile model definitions."""

import enum

from sqlalchemy import Column, Enum, ForeignKey, Integer, String

from scheduling.database import Base


class ProfileRole(str, enum.Enum):
    ADMIN = "admin"
    DEPARTMENT = "department"
    SCHOOL = "school"


class Profile(Base):
    """A user profile mirrored from the identity provider.

    The scheduling core only reads profiles: to resolve the acting user and to
    find the staff of a department.
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False, default="")
    role = Column(
        Enum(ProfileRole, name="app_role", native_enum=False, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=ProfileRole.SCHOOL,
    )
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    school_unit_id = Column(Integer, nullable=True)
