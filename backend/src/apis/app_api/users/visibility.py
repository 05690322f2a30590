"""Field visibility of user records.

Which fields of a user a caller may see depends on who the caller is:

- everybody sees the login and name;
- logged-in callers also see the avatar, active/local flags, external
  provider and SCM accounts;
- system administrators, and users looking at their own record, also see the
  email, groups, external identity, token count, last connection date and
  managed flag.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, List, Optional

from apis.shared.auth.session import UserSession
from users.models import IdentityRecord

from .models import UserResponse

BASE_FIELDS = frozenset({"login", "name"})
AUTHENTICATED_FIELDS = frozenset({"avatar", "active", "local", "externalProvider", "scmAccounts"})
PRIVILEGED_FIELDS = frozenset({
    "email",
    "groups",
    "externalIdentity",
    "tokensCount",
    "lastConnectionDate",
    "managed",
})

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


@dataclass(frozen=True)
class FieldVisibility:
    """Field tiers of a user record that a caller is allowed to see."""
    authenticated: bool = False
    privileged: bool = False

    @property
    def fields(self) -> FrozenSet[str]:
        fields = BASE_FIELDS
        if self.authenticated:
            fields = fields | AUTHENTICATED_FIELDS
        if self.privileged:
            fields = fields | PRIVILEGED_FIELDS
        return fields

    def includes(self, field: str) -> bool:
        return field in self.fields


def decide_visibility(session: UserSession, target: IdentityRecord) -> FieldVisibility:
    """Decide which fields of ``target`` the caller of ``session`` may see."""
    return FieldVisibility(
        authenticated=session.is_logged_in,
        privileged=session.is_system_administrator or (
            session.user_id is not None and session.user_id == target.user_id
        ),
    )


def format_datetime(value: datetime) -> str:
    # 2023-04-01T10:00:00+0200
    return value.strftime(DATETIME_FORMAT)


def build_user_response(
    user: IdentityRecord,
    visibility: FieldVisibility,
    avatar: Optional[str] = None,
    groups: Optional[List[str]] = None,
    tokens_count: int = 0,
    managed: bool = False,
) -> UserResponse:
    """Project ``user`` and its auxiliary data onto the fields of ``visibility``."""
    last_connection = user.last_connection_date
    values = {
        "login": user.login,
        "name": user.name,
        "avatar": avatar or None,
        "active": user.active,
        "local": user.local,
        "externalProvider": user.external_identity_provider,
        "scmAccounts": list(user.scm_accounts) or None,
        "email": user.email,
        "groups": list(groups) if groups else None,
        "externalIdentity": user.external_login,
        "tokensCount": tokens_count,
        "lastConnectionDate": format_datetime(last_connection) if last_connection else None,
        "managed": bool(managed),
    }
    return UserResponse(**{
        field: value for field, value in values.items() if visibility.includes(field)
    })
