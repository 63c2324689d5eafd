"""Principal handling.

Authentication happens at the identity provider gateway. Requests reach the
engine with a signed bearer token carrying the user id (`sub`) and the
application role; the engine only verifies the signature and trusts the claims.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from timesheets.core.config import get_settings
from timesheets.core.rbac import UserRole, is_admin


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as asserted by the identity provider."""
    user_id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return is_admin(self.role)


def create_access_token(
    user_id: UUID,
    role: UserRole,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint a principal token. Used by the gateway integration and in tests."""
    settings = get_settings()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Optional[Principal]:
    """Decode and validate a principal token. Returns None if it is invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        return None

    try:
        return Principal(user_id=UUID(user_id), role=UserRole(role))
    except ValueError:
        return None
