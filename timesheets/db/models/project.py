"""Project catalogue and the visibility rules that decide who may log time to a project."""

import uuid
from enum import Enum as PyEnum
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Table, Enum, Uuid
from sqlalchemy.orm import relationship

from timesheets.core.dates import now as canonical_now
from timesheets.db.base import Base


class ProjectType(str, PyEnum):
    WORK = "Work"
    PTO = "PTO"
    HOLIDAY = "Holiday"


# Leave-type projects are exempt from the weekly submission cutoff
LEAVE_PROJECT_TYPES = {ProjectType.PTO, ProjectType.HOLIDAY}


class ProjectVisibility(str, PyEnum):
    ALL_DEPARTMENTS = "AllDepartments"
    SPECIFIC_DEPARTMENTS = "SpecificDepartments"
    SPECIFIC_EMPLOYEES = "SpecificEmployees"


project_departments = Table(
    "project_departments",
    Base.metadata,
    Column("project_id", Uuid, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("department_id", Uuid, ForeignKey("departments.id", ondelete="CASCADE"), primary_key=True),
)

project_employees = Table(
    "project_employees",
    Base.metadata,
    Column("project_id", Uuid, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_number = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    project_type = Column(
        Enum(ProjectType, name="project_type", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProjectType.WORK,
    )
    visibility = Column(
        Enum(ProjectVisibility, name="project_visibility", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProjectVisibility.ALL_DEPARTMENTS,
    )
    grant_identifier = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=canonical_now)

    departments = relationship("Department", secondary=project_departments)
    employees = relationship("User", secondary=project_employees)

    def is_visible_to(self, user) -> bool:
        """Check whether a user may reference this project in a time entry."""
        if self.visibility == ProjectVisibility.ALL_DEPARTMENTS:
            return True
        if self.visibility == ProjectVisibility.SPECIFIC_DEPARTMENTS:
            return user.department_id is not None and any(
                d.id == user.department_id for d in self.departments
            )
        return any(e.id == user.id for e in self.employees)

    def __repr__(self) -> str:
        return f"<Project {self.project_number} [{self.project_type}]>"
