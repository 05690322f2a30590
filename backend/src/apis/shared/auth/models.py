"""Authentication models."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class User:
    """Authenticated user model."""
    user_id: str
    email: str
    name: str
    roles: List[str] = field(default_factory=list)
    picture: Optional[str] = None
