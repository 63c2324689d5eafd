import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Enum, Uuid
from sqlalchemy.orm import relationship

from timesheets.core.rbac import UserRole
from timesheets.core.dates import now as canonical_now
from timesheets.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    users = relationship("User", back_populates="department")


class User(Base):
    """
    Directory user, synced from the identity provider.
    
    Manager relationships form a tree: each user has at most one manager.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.EMPLOYEE,
    )
    manager_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    department_id = Column(Uuid, ForeignKey("departments.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=canonical_now)
    updated_at = Column(DateTime, default=canonical_now, onupdate=canonical_now)

    # Relationships
    department = relationship("Department", back_populates="users")
    manager = relationship("User", remote_side=[id])
    timesheets = relationship("Timesheet", back_populates="user", foreign_keys="Timesheet.user_id")

    def __repr__(self) -> str:
        return f"<User {self.email} [{self.role}]>"
