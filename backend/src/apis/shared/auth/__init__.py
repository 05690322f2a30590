"""Shared authentication utilities for API projects."""

from .dependencies import get_user_session, security
from .jwt_validator import EntraIDJWTValidator, get_validator
from .models import User
from .rbac import has_any_role
from .session import UserSession

__all__ = [
    "get_user_session",
    "security",
    "EntraIDJWTValidator",
    "get_validator",
    "User",
    "UserSession",
    "has_any_role",
]
