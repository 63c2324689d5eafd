"""Approval delegation: who may act for a manager, and when."""

from .resolver import (
    Authority,
    DelegationCache,
    DelegationGrant,
    DelegationResolver,
    delegation_cache,
    resolve_from_grants,
)
from .service import DelegationService

__all__ = [
    "Authority",
    "DelegationCache",
    "DelegationGrant",
    "DelegationResolver",
    "DelegationService",
    "delegation_cache",
    "resolve_from_grants",
]
