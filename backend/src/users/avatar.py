"""Avatar hashes for user records."""

import hashlib

from .models import IdentityRecord


class AvatarResolver:
    """Builds the Gravatar-compatible hash of a user's email."""

    def create(self, user: IdentityRecord) -> str:
        """
        Return the avatar hash of ``user``.

        Raises:
            ValueError: If the user has no email
        """
        if not user.email:
            raise ValueError(f"User {user.login} has no email, cannot build an avatar")
        return hashlib.md5(user.email.lower().encode("utf-8")).hexdigest()
