"""Domain models for the user directory."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IdentityRecord(BaseModel):
    """Authoritative user record as stored in the Users table."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(..., alias="userId")
    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    active: bool = True
    local: bool = True
    external_login: Optional[str] = Field(None, alias="externalLogin")
    external_identity_provider: Optional[str] = Field(None, alias="externalIdentityProvider")
    scm_accounts: List[str] = Field(default_factory=list, alias="scmAccounts")
    last_connection_date: Optional[datetime] = Field(None, alias="lastConnectionDate")


class UserIndexResult(BaseModel):
    """One page of logins matched by the search index."""

    logins: List[str] = Field(default_factory=list)
    total: int = 0
