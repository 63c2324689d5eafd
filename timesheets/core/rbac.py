"""Role checks for the timesheet API.

Roles come from the identity provider principal; the engine trusts them.
"""

from enum import Enum
from functools import wraps
from typing import Callable

from timesheets.core.exceptions import AuthorizationError


class UserRole(str, Enum):
    """Application roles."""
    
    EMPLOYEE = "Employee"
    MANAGER = "Manager"
    TIMESHEET_ADMIN = "TimesheetAdmin"
    LEADERSHIP = "Leadership"


ADMIN_ROLES = {UserRole.TIMESHEET_ADMIN}


def is_admin(role) -> bool:
    """Check if a role may perform administrative actions such as Unlock."""
    try:
        return UserRole(role) in ADMIN_ROLES
    except ValueError:
        return False


def require_role(*roles: UserRole):
    """
    Decorator factory for FastAPI endpoints restricted to specific roles.
    
    Usage:
        @router.post("/{timesheet_id}/unlock")
        @require_role(UserRole.TIMESHEET_ADMIN)
        async def unlock(..., principal: Principal = Depends(get_current_principal)):
            ...
    """
    allowed = {UserRole(r) for r in roles}
    
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            principal = kwargs.get("principal")
            if principal is None:
                raise AuthorizationError("Authentication required")
            if principal.role not in allowed:
                raise AuthorizationError(
                    f"Requires one of: {', '.join(sorted(r.value for r in allowed))}",
                    role=principal.role,
                )
            return await func(*args, **kwargs)
        
        return wrapper
    return decorator
