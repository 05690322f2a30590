"""FastAPI dependencies for authentication."""

import logging
import os
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .jwt_validator import get_validator
from .session import UserSession

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme with auto_error=False to allow anonymous callers
security = HTTPBearer(auto_error=False)


def authentication_enabled() -> bool:
    """Check if authentication is enabled (defaults to true for security)."""
    return os.environ.get('ENABLE_AUTHENTICATION', 'true').lower() == 'true'


async def get_user_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> UserSession:
    """
    FastAPI dependency resolving the caller of the request.

    Callers without a Bearer token get an anonymous session. A token that is
    present but invalid is rejected by the validator with 401 Unauthorized.

    When ENABLE_AUTHENTICATION=false every caller is anonymous. This should
    only be used in development/testing.

    Args:
        credentials: HTTP Bearer token credentials (None if missing)

    Returns:
        UserSession of the caller
    """
    if not authentication_enabled():
        logger.warning("Authentication is DISABLED via ENABLE_AUTHENTICATION=false - treating caller as anonymous")
        return UserSession.anonymous()

    if credentials is None:
        return UserSession.anonymous()

    user = get_validator().validate_token(credentials.credentials)
    return UserSession.for_user(user)
