"""Role-based access control utilities."""

from .models import User


def has_any_role(user: User, *roles: str) -> bool:
    """
    Helper function to check if a user has any of the specified roles.

    Useful for conditional logic within route handlers without raising exceptions.

    Usage:
        async def my_endpoint(session: UserSession = Depends(get_user_session)):
            if session.user and has_any_role(session.user, "Admin", "SuperAdmin"):
                # Show additional admin data
                pass

    Args:
        user: User object to check
        *roles: Role names to check for

    Returns:
        True if user has any of the specified roles, False otherwise
    """
    if not user.roles:
        return False
    return any(role in user.roles for role in roles)
