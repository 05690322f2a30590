"""Caller session: who is making the request and what they may see."""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import User
from .rbac import has_any_role

DEFAULT_SYSTEM_ADMIN_ROLES = ("Admin", "SuperAdmin")


def get_system_admin_roles() -> Tuple[str, ...]:
    """Roles granting system administration, from SYSTEM_ADMIN_ROLES."""
    configured = os.getenv("SYSTEM_ADMIN_ROLES")
    if not configured:
        return DEFAULT_SYSTEM_ADMIN_ROLES
    return tuple(role.strip() for role in configured.split(",") if role.strip())


@dataclass(frozen=True)
class UserSession:
    """
    The caller of a request.

    ``user`` is None for anonymous callers.
    """
    user: Optional[User] = None
    admin_roles: Tuple[str, ...] = DEFAULT_SYSTEM_ADMIN_ROLES

    @classmethod
    def anonymous(cls) -> "UserSession":
        return cls(user=None, admin_roles=get_system_admin_roles())

    @classmethod
    def for_user(cls, user: User) -> "UserSession":
        return cls(user=user, admin_roles=get_system_admin_roles())

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.user_id if self.user else None

    @property
    def is_system_administrator(self) -> bool:
        return self.user is not None and has_any_role(self.user, *self.admin_roles)
