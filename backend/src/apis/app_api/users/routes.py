"""Users API routes."""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from apis.shared.auth import UserSession, get_user_session
from users.avatar import AvatarResolver
from users.groups import GroupMembershipRepository
from users.index import UserIndex
from users.managed import ManagedInstanceService
from users.repository import UserRepository
from users.tokens import UserTokenRepository

from .models import SearchCriteria, SearchResponse
from .service import UserSearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


# ========== Dependencies ==========

def get_user_index() -> UserIndex:
    """Get user index instance."""
    return UserIndex()


def get_user_repository() -> UserRepository:
    """Get user repository instance."""
    return UserRepository()


def get_group_repository() -> GroupMembershipRepository:
    """Get group membership repository instance."""
    return GroupMembershipRepository()


def get_token_repository() -> UserTokenRepository:
    """Get user token repository instance."""
    return UserTokenRepository()


def get_managed_service() -> ManagedInstanceService:
    """Get managed instance service."""
    return ManagedInstanceService()


def get_user_search_service(
    user_index: UserIndex = Depends(get_user_index),
    user_repo: UserRepository = Depends(get_user_repository),
    group_repo: GroupMembershipRepository = Depends(get_group_repository),
    token_repo: UserTokenRepository = Depends(get_token_repository),
    managed_service: ManagedInstanceService = Depends(get_managed_service),
) -> UserSearchService:
    """Get user search service instance."""
    return UserSearchService(
        user_index=user_index,
        user_repository=user_repo,
        group_repository=group_repo,
        token_repository=token_repo,
        managed_service=managed_service,
        avatar_resolver=AvatarResolver(),
    )


# ========== Routes ==========

@router.get(
    "/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def search_users(
    q: Optional[str] = Query(
        None,
        description="Filter on login, name and email. Queries of up to 15 characters "
                    "match partially and ignore case; longer queries must match exactly.",
    ),
    deactivated: bool = Query(False, description="Return deactivated users instead of active users"),
    p: Optional[int] = Query(None, description="1-based page number"),
    ps: Optional[int] = Query(None, description="Page size. Must be less than or equal to 500"),
    session: UserSession = Depends(get_user_session),
    service: UserSearchService = Depends(get_user_search_service),
):
    """
    Get a list of users. By default, only active users are returned.

    The following fields are only returned to logged-in callers:
    - **avatar**, **active**, **local**, **externalProvider**, **scmAccounts**

    The following fields are only returned to system administrators, or to a
    user looking at their own record:
    - **email**, **groups**, **externalIdentity**, **tokensCount**,
      **lastConnectionDate**, **managed**

    Returns:
        SearchResponse with the page of users and paging information

    Raises:
        InvalidArgumentError: 400 if a parameter is out of range
        DependencyFailureError: 503/504 if a backing service fails
    """
    criteria = SearchCriteria.from_params(query=q, deactivated=deactivated, page=p, page_size=ps)
    logger.info(
        f"GET /api/users/search - caller: {session.user_id or 'anonymous'}, "
        f"q: {criteria.query}, deactivated: {criteria.deactivated}, "
        f"page: {criteria.page}, size: {criteria.page_size}"
    )
    return await service.search(criteria, session)
