"""Delegation resolver.

Answers "who may approve this employee's timesheet at instant t". The
direct manager always may; each effective delegation from that manager adds
its delegate, unless the delegation is scoped to other employees. Delegation
is additive and never removes the manager's own authority.
"""

import threading
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from timesheets.core.config import get_settings
from timesheets.core.dates import as_date
from timesheets.core.exceptions import NotFoundError
from timesheets.db.models import ApprovalType, Delegation, User


@dataclass(frozen=True)
class DelegationGrant:
    """Immutable snapshot of a delegation row."""
    id: UUID
    delegator_id: UUID
    delegate_id: UUID
    start_date: date
    end_date: date
    is_active: bool
    scoped_employee_ids: FrozenSet[UUID] = frozenset()
    
    @classmethod
    def from_model(cls, delegation: Delegation) -> "DelegationGrant":
        return cls(
            id=delegation.id,
            delegator_id=delegation.delegator_id,
            delegate_id=delegation.delegate_id,
            start_date=delegation.start_date,
            end_date=delegation.end_date,
            is_active=bool(delegation.is_active),
            scoped_employee_ids=delegation.scoped_employee_ids,
        )
    
    def is_effective(self, at: Union[date, datetime]) -> bool:
        """Active and the inclusive date range contains `at`."""
        day = as_date(at)
        return self.is_active and self.start_date <= day <= self.end_date
    
    def covers(self, employee_id: UUID) -> bool:
        return not self.scoped_employee_ids or employee_id in self.scoped_employee_ids


@dataclass(frozen=True)
class Authority:
    """Why an actor may approve a given employee's timesheet."""
    approval_type: ApprovalType
    on_behalf_of_user_id: Optional[UUID] = None


def effective_delegates(
    grants: Iterable[DelegationGrant],
    employee_id: UUID,
    at: Union[date, datetime],
) -> FrozenSet[UUID]:
    """Delegates of every grant effective at `at` that covers the employee."""
    return frozenset(
        g.delegate_id for g in grants if g.is_effective(at) and g.covers(employee_id)
    )


def resolve_from_grants(
    manager_id: Optional[UUID],
    employee_id: UUID,
    grants: Iterable[DelegationGrant],
    at: Union[date, datetime],
) -> FrozenSet[UUID]:
    """
    Compute the approver set from data alone.
    
    Only grants whose delegator is the manager count. The employee is
    never their own approver.
    """
    if manager_id is None:
        return frozenset()
    relevant = [g for g in grants if g.delegator_id == manager_id]
    approvers = frozenset({manager_id}) | effective_delegates(relevant, employee_id, at)
    return approvers - {employee_id}


class DelegationCache:
    """
    Short-lived per-delegator cache of delegation snapshots.
    
    Only used to build approver queues. Authorization before a state
    transition always bypasses it.
    """
    
    def __init__(self, ttl_seconds: Optional[float] = None, clock=time.monotonic):
        self.ttl_seconds = (
            get_settings().delegation_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        )
        self._clock = clock
        self._entries: Dict[UUID, Tuple[float, Tuple[DelegationGrant, ...]]] = {}
        self._lock = threading.Lock()
    
    def get(self, delegator_id: UUID) -> Optional[Tuple[DelegationGrant, ...]]:
        with self._lock:
            entry = self._entries.get(delegator_id)
            if entry is None:
                return None
            expires_at, grants = entry
            if self._clock() >= expires_at:
                del self._entries[delegator_id]
                return None
            return grants
    
    def put(self, delegator_id: UUID, grants: Iterable[DelegationGrant]) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[delegator_id] = (self._clock() + self.ttl_seconds, tuple(grants))
    
    def invalidate(self, delegator_id: Optional[UUID] = None) -> None:
        with self._lock:
            if delegator_id is None:
                self._entries.clear()
            else:
                self._entries.pop(delegator_id, None)


# Process-wide cache shared by request handlers
delegation_cache = DelegationCache()


class DelegationResolver:
    """
    Resolves approvers for employees from persisted delegations.
    
    Every call reads fresh rows unless `fresh=False` is passed, in which
    case recently cached snapshots may be used.
    """
    
    def __init__(self, db: Session, cache: Optional[DelegationCache] = None):
        self.db = db
        self.cache = cache if cache is not None else delegation_cache
    
    def grants_for(self, delegator_id: UUID, *, fresh: bool = True) -> Tuple[DelegationGrant, ...]:
        """All delegations (active or not) given by a delegator."""
        if not fresh:
            cached = self.cache.get(delegator_id)
            if cached is not None:
                return cached
        
        rows = (
            self.db.query(Delegation)
            .options(selectinload(Delegation.scoped_employees))
            .filter(Delegation.delegator_id == delegator_id)
            .populate_existing()
            .all()
        )
        grants = tuple(DelegationGrant.from_model(d) for d in rows)
        self.cache.put(delegator_id, grants)
        return grants
    
    def resolve_approvers(
        self,
        employee: Union[User, UUID],
        at: Union[date, datetime],
        *,
        fresh: bool = True,
    ) -> FrozenSet[UUID]:
        """
        Return the set of users authorized to approve the employee's timesheet at `at`.
        
        The result is identical for fixed data regardless of row order.
        """
        employee = self._load_user(employee)
        if employee.manager_id is None:
            return frozenset()
        grants = self.grants_for(employee.manager_id, fresh=fresh)
        return resolve_from_grants(employee.manager_id, employee.id, grants, at)
    
    def is_authorized_approver(
        self,
        actor_id: UUID,
        employee: Union[User, UUID],
        at: Union[date, datetime],
        *,
        fresh: bool = True,
    ) -> bool:
        return actor_id in self.resolve_approvers(employee, at, fresh=fresh)
    
    def authority_for(
        self,
        actor_id: UUID,
        employee: Union[User, UUID],
        at: Union[date, datetime],
    ) -> Optional[Authority]:
        """
        Explain the actor's authority over the employee, or None if they have none.
        
        Always reads fresh rows.
        """
        employee = self._load_user(employee)
        if actor_id not in self.resolve_approvers(employee, at, fresh=True):
            return None
        if actor_id == employee.manager_id:
            return Authority(ApprovalType.PRIMARY)
        return Authority(ApprovalType.DELEGATE, on_behalf_of_user_id=employee.manager_id)
    
    def candidate_employees(self, actor_id: UUID, at: Union[date, datetime]) -> FrozenSet[UUID]:
        """
        Employees whose approver set may contain the actor at `at`.
        
        A superset filter for queue building; callers confirm each employee
        with `resolve_approvers`.
        """
        direct = {
            uid for (uid,) in self.db.query(User.id).filter(User.manager_id == actor_id).all()
        }
        day = as_date(at)
        delegators = {
            did for (did,) in self.db.query(Delegation.delegator_id).filter(
                Delegation.delegate_id == actor_id,
                Delegation.is_active.is_(True),
                Delegation.start_date <= day,
                Delegation.end_date >= day,
            ).all()
        }
        covered = set()
        if delegators:
            covered = {
                uid for (uid,) in self.db.query(User.id).filter(User.manager_id.in_(delegators)).all()
            }
        return frozenset((direct | covered) - {actor_id})
    
    def _load_user(self, user: Union[User, UUID]) -> User:
        if isinstance(user, User):
            return user
        found = self.db.get(User, user)
        if found is None:
            raise NotFoundError(f"User {user} not found", user_id=user)
        return found
