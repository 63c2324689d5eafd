"""Delegation service for creating, revoking, and listing delegations.

Validation happens at creation time so that the resolver never has to
second-guess a row: inverted date ranges and self-delegation are rejected.
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session, selectinload

from timesheets.core.dates import as_date, now as canonical_now
from timesheets.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from timesheets.core.rbac import is_admin
from timesheets.db.models import Delegation, DelegationAuditLog, User
from .resolver import DelegationCache, delegation_cache

logger = logging.getLogger(__name__)


class DelegationService:
    """
    High-level service for managing approval delegations.
    
    Handles:
    - Creating delegations (delegator only) with validation
    - Revoking delegations (delegator only; the row is kept)
    - Listing delegations given, received, and currently effective
    """
    
    def __init__(self, db: Session, cache: Optional[DelegationCache] = None):
        self.db = db
        self.cache = cache if cache is not None else delegation_cache
    
    def create_delegation(
        self,
        delegator_id: UUID,
        delegate_id: UUID,
        start_date: date,
        end_date: date,
        *,
        reason: Optional[str] = None,
        employee_ids: Optional[Iterable[UUID]] = None,
    ) -> Delegation:
        """
        Create a delegation from the acting user to a delegate.
        
        Raises:
            ValidationError: Self-delegation, inverted range, inactive users,
                or scoped employees who are not the delegator's direct reports
        """
        if delegator_id == delegate_id:
            raise ValidationError("Cannot delegate approval authority to yourself")
        
        start_date, end_date = as_date(start_date), as_date(end_date)
        if end_date < start_date:
            raise ValidationError(
                "Start date must be before or equal to end date",
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat(),
            )
        
        delegator = self.db.get(User, delegator_id)
        delegate = self.db.get(User, delegate_id)
        if delegator is None or delegate is None or not delegator.is_active or not delegate.is_active:
            raise ValidationError("Both delegator and delegate must be active users")
        
        scoped: List[User] = []
        wanted = set(employee_ids or [])
        if wanted:
            scoped = self.db.query(User).filter(
                and_(User.id.in_(wanted), User.manager_id == delegator_id)
            ).all()
            missing = wanted - {u.id for u in scoped}
            if missing:
                raise ValidationError(
                    "Scoped employees must be direct reports of the delegator",
                    employee_ids=sorted(str(m) for m in missing),
                )
        
        delegation = Delegation(
            delegator_id=delegator_id,
            delegate_id=delegate_id,
            start_date=start_date,
            end_date=end_date,
            reason=(reason or None),
            is_active=True,
            created_at=canonical_now(),
            created_by=delegator_id,
            scoped_employees=scoped,
        )
        self.db.add(delegation)
        self.db.flush()
        
        self._log(delegation, "Created", delegator_id)
        self.cache.invalidate(delegator_id)
        
        logger.info(
            "Delegation created: %s -> %s (%s to %s, %s)",
            delegator_id, delegate_id, start_date, end_date,
            f"{len(scoped)} scoped employees" if scoped else "all direct reports",
        )
        return delegation
    
    def revoke_delegation(self, delegation_id: UUID, actor_id: UUID) -> Delegation:
        """
        Revoke a delegation. Takes effect immediately.
        
        Raises:
            NotFoundError: Unknown delegation
            AuthorizationError: Actor is not the delegator
            StateConflictError: Delegation already revoked
        """
        delegation = self.db.query(Delegation).filter(
            Delegation.id == delegation_id
        ).with_for_update().first()
        
        if delegation is None:
            raise NotFoundError(f"Delegation {delegation_id} not found", delegation_id=delegation_id)
        
        if delegation.delegator_id != actor_id:
            raise AuthorizationError("Only the delegator can revoke this delegation")
        
        if not delegation.is_active:
            raise StateConflictError("Delegation is already revoked")
        
        delegation.is_active = False
        delegation.revoked_at = canonical_now()
        delegation.revoked_by = actor_id
        self.db.flush()
        
        self._log(delegation, "Revoked", actor_id)
        self.cache.invalidate(delegation.delegator_id)
        
        logger.info("Delegation %s revoked by user %s", delegation_id, actor_id)
        return delegation
    
    def get_delegation(self, delegation_id: UUID, actor_id: UUID, actor_role=None) -> Delegation:
        """Get a delegation visible to its delegator, its delegate, or an admin."""
        delegation = self._query().filter(Delegation.id == delegation_id).first()
        if delegation is None:
            raise NotFoundError(f"Delegation {delegation_id} not found", delegation_id=delegation_id)
        if actor_id not in (delegation.delegator_id, delegation.delegate_id) and not is_admin(actor_role):
            raise AuthorizationError("You do not have access to this delegation")
        return delegation
    
    def list_given(self, user_id: UUID) -> List[Delegation]:
        return self._query().filter(
            Delegation.delegator_id == user_id
        ).order_by(Delegation.created_at.desc()).all()
    
    def list_received(self, user_id: UUID) -> List[Delegation]:
        return self._query().filter(
            Delegation.delegate_id == user_id
        ).order_by(Delegation.created_at.desc()).all()
    
    def list_effective_for_delegate(self, user_id: UUID, at: Optional[datetime] = None) -> List[Delegation]:
        """Delegations currently granting authority to the user."""
        day = as_date(at or canonical_now())
        return self._query().filter(
            and_(
                Delegation.delegate_id == user_id,
                Delegation.is_active.is_(True),
                Delegation.start_date <= day,
                Delegation.end_date >= day,
            )
        ).order_by(Delegation.start_date.asc()).all()
    
    def _query(self):
        return self.db.query(Delegation).options(selectinload(Delegation.scoped_employees))
    
    def _log(self, delegation: Delegation, action: str, actor_id: UUID) -> None:
        self.db.add(DelegationAuditLog(
            delegation_id=delegation.id,
            action=action,
            action_by=actor_id,
            delegator_id=delegation.delegator_id,
            delegate_id=delegation.delegate_id,
            start_date=delegation.start_date,
            end_date=delegation.end_date,
            reason=delegation.reason,
            action_date=canonical_now(),
        ))
        self.db.flush()
