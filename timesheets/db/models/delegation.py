"""Approval delegation models.

Delegations are a flat relation keyed by delegator. A delegation is never
deleted: revocation clears `is_active` so the history stays intact.
"""

import uuid
from sqlalchemy import Column, String, DateTime, Date, Boolean, ForeignKey, Text, Table, Uuid, CheckConstraint
from sqlalchemy.orm import relationship

from timesheets.core.dates import now as canonical_now
from timesheets.db.base import Base


# Empty scope means the delegation covers all of the delegator's direct reports
delegation_employees = Table(
    "delegation_employees",
    Base.metadata,
    Column("delegation_id", Uuid, ForeignKey("delegations.id", ondelete="CASCADE"), primary_key=True),
    Column("employee_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Delegation(Base):
    """Temporary grant of approval authority from a manager to another user."""
    __tablename__ = "delegations"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_delegations_date_range"),
        CheckConstraint("delegator_id <> delegate_id", name="ck_delegations_not_self"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    delegator_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    delegate_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    
    # Inclusive calendar range
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    
    created_at = Column(DateTime, default=canonical_now)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    
    # Relationships
    delegator = relationship("User", foreign_keys=[delegator_id])
    delegate = relationship("User", foreign_keys=[delegate_id])
    scoped_employees = relationship("User", secondary=delegation_employees)
    
    @property
    def scoped_employee_ids(self) -> frozenset:
        return frozenset(e.id for e in self.scoped_employees)
    
    def __repr__(self) -> str:
        state = "active" if self.is_active else "revoked"
        return f"<Delegation {self.delegator_id} -> {self.delegate_id} {self.start_date}..{self.end_date} [{state}]>"


class DelegationAuditLog(Base):
    """Records creation and revocation of delegations."""
    __tablename__ = "delegation_audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    delegation_id = Column(Uuid, ForeignKey("delegations.id"), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # Created / Revoked
    action_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    delegator_id = Column(Uuid, nullable=False)
    delegate_id = Column(Uuid, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    action_date = Column(DateTime, default=canonical_now, index=True)
    
    def __repr__(self) -> str:
        return f"<DelegationAuditLog {self.action} {self.delegation_id}>"
