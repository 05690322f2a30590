"""Business logic for user search."""

import asyncio
import logging
import os
from typing import Awaitable, Dict, List, Optional, TypeVar

from apis.shared.auth.session import UserSession
from apis.shared.errors import DependencyFailureError
from users.avatar import AvatarResolver
from users.concurrency import gather_or_cancel
from users.groups import GroupMembershipRepository
from users.index import UserIndex
from users.managed import ManagedInstanceService
from users.models import IdentityRecord
from users.repository import UserRepository
from users.tokens import UserTokenRepository

from .models import PagingResponse, SearchCriteria, SearchResponse, UserResponse
from .visibility import build_user_response, decide_visibility

logger = logging.getLogger(__name__)

DEFAULT_DEPENDENCY_TIMEOUT_SECONDS = 10.0

T = TypeVar("T")


def get_dependency_timeout() -> float:
    """Deadline of each backing-service call, from USER_SEARCH_DEPENDENCY_TIMEOUT_SECONDS."""
    return float(os.getenv("USER_SEARCH_DEPENDENCY_TIMEOUT_SECONDS", DEFAULT_DEPENDENCY_TIMEOUT_SECONDS))


class UserSearchService:
    """
    Searches users in the index, then completes each match from the
    authoritative stores.

    The index only provides the page of logins and the total. Records, groups,
    token counts and managed status are read from their own stores and merged
    before the caller's visibility rules are applied.
    """

    def __init__(
        self,
        user_index: UserIndex,
        user_repository: UserRepository,
        group_repository: GroupMembershipRepository,
        token_repository: UserTokenRepository,
        managed_service: ManagedInstanceService,
        avatar_resolver: AvatarResolver,
        timeout_seconds: Optional[float] = None,
    ):
        self._user_index = user_index
        self._user_repo = user_repository
        self._group_repo = group_repository
        self._token_repo = token_repository
        self._managed_service = managed_service
        self._avatar_resolver = avatar_resolver
        self._timeout = timeout_seconds if timeout_seconds is not None else get_dependency_timeout()

    @property
    def enabled(self) -> bool:
        """Check if user search is enabled (index and users table configured)."""
        return self._user_index.enabled and self._user_repo.enabled

    async def search(self, criteria: SearchCriteria, session: UserSession) -> SearchResponse:
        """
        Search one page of users as seen by the caller of ``session``.

        Raises:
            DependencyFailureError: If any backing service fails or times out
        """
        if not self.enabled:
            logger.warning("User search is disabled - no index or users table configured")
            return self._build_response([], criteria, total=0)

        result = await self._call(
            "user-index",
            self._user_index.search(
                text_query=criteria.query,
                active=not criteria.deactivated,
                offset=criteria.offset,
                limit=criteria.page_size,
            ),
        )
        logins = result.logins
        if not logins:
            return self._build_response([], criteria, total=result.total)

        users, groups_by_login = await gather_or_cancel(
            self._call("user-store", self._user_repo.get_users_by_logins(logins)),
            self._call("group-memberships", self._group_repo.get_groups_by_logins(logins)),
        )

        token_counts_by_login, managed_by_user_id = await gather_or_cancel(
            self._call("user-tokens", self._token_repo.count_tokens_by_users(users)),
            self._call(
                "managed-instance",
                self._managed_service.get_user_id_to_managed({u.user_id for u in users}),
            ),
        )

        ordered_users = self._order_by_logins(users, logins)

        responses: List[UserResponse] = []
        for user in ordered_users:
            visibility = decide_visibility(session, user)
            avatar = None
            if visibility.includes("avatar") and user.email:
                avatar = self._resolve_avatar(user)
            responses.append(build_user_response(
                user,
                visibility,
                avatar=avatar,
                groups=groups_by_login.get(user.login),
                tokens_count=token_counts_by_login.get(user.login, 0),
                managed=managed_by_user_id.get(user.user_id, False),
            ))

        return self._build_response(responses, criteria, total=result.total)

    def _resolve_avatar(self, user: IdentityRecord) -> str:
        try:
            return self._avatar_resolver.create(user)
        except Exception as e:
            logger.error(f"Failed to resolve avatar of user {user.login}: {e}", exc_info=True)
            raise DependencyFailureError("avatar-resolver", str(e)) from e

    async def _call(self, dependency: str, awaitable: Awaitable[T]) -> T:
        """Await a backing-service call under the deadline, mapping failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"{dependency} did not answer within {self._timeout}s")
            raise DependencyFailureError(
                dependency, f"no answer within {self._timeout}s", timed_out=True
            ) from e
        except Exception as e:
            logger.error(f"{dependency} failed: {e}", exc_info=True)
            raise DependencyFailureError(dependency, str(e)) from e

    @staticmethod
    def _order_by_logins(users: List[IdentityRecord], logins: List[str]) -> List[IdentityRecord]:
        """Sort records in index order; logins the store no longer has are dropped."""
        users_by_login: Dict[str, IdentityRecord] = {u.login: u for u in users}
        ordered = [users_by_login[login] for login in logins if login in users_by_login]
        if len(ordered) < len(logins):
            missing = [login for login in logins if login not in users_by_login]
            logger.debug(f"Dropping {len(missing)} indexed users missing from store: {missing}")
        return ordered

    @staticmethod
    def _build_response(
        users: List[UserResponse],
        criteria: SearchCriteria,
        total: int,
    ) -> SearchResponse:
        return SearchResponse(
            paging=PagingResponse(
                page_index=criteria.page,
                page_size=criteria.page_size,
                total=total,
            ),
            users=users,
        )
