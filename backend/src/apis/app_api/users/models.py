"""Request/response models for the users search API."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from apis.shared.errors import InvalidArgumentError

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
MAX_RETURNABLE_RESULTS = 10000
QUERY_MIN_LENGTH = 2

QUERY_PARAM = "q"
PAGE_PARAM = "p"
PAGE_SIZE_PARAM = "ps"


class SearchCriteria(BaseModel):
    """Validated parameters of a user search."""
    model_config = ConfigDict(frozen=True)

    query: Optional[str] = None
    deactivated: bool = False
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_params(
        cls,
        query: Optional[str] = None,
        deactivated: Optional[bool] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> "SearchCriteria":
        """
        Apply defaults to raw request parameters and validate them.

        Raises:
            InvalidArgumentError: If a parameter is out of its allowed range
        """
        page = DEFAULT_PAGE if page is None else page
        page_size = DEFAULT_PAGE_SIZE if page_size is None else page_size
        query = query or None

        if page_size > MAX_PAGE_SIZE:
            raise InvalidArgumentError(
                f"The '{PAGE_SIZE_PARAM}' parameter must be less than {MAX_PAGE_SIZE}",
                parameter=PAGE_SIZE_PARAM,
                limit=MAX_PAGE_SIZE,
            )
        if page_size < 1:
            raise InvalidArgumentError(
                f"Page size must be greater or equal to 1 (got {page_size})",
                parameter=PAGE_SIZE_PARAM,
                limit=1,
            )
        if page < 1:
            raise InvalidArgumentError(
                f"Page must be greater or equal to 1 (got {page})",
                parameter=PAGE_PARAM,
                limit=1,
            )
        if page * page_size > MAX_RETURNABLE_RESULTS:
            raise InvalidArgumentError(
                f"Can return only the first {MAX_RETURNABLE_RESULTS} results. "
                f"{page * page_size}th result asked.",
                parameter=PAGE_PARAM,
                limit=MAX_RETURNABLE_RESULTS,
            )
        if query is not None and len(query) < QUERY_MIN_LENGTH:
            raise InvalidArgumentError(
                f"'{QUERY_PARAM}' length ({len(query)}) is shorter than the minimum "
                f"authorized ({QUERY_MIN_LENGTH})",
                parameter=QUERY_PARAM,
                limit=QUERY_MIN_LENGTH,
            )

        return cls(
            query=query,
            deactivated=bool(deactivated),
            page=page,
            page_size=page_size,
        )


class UserResponse(BaseModel):
    """A user as seen by the caller. Withheld fields stay None and are not serialized."""
    model_config = ConfigDict(populate_by_name=True)

    login: str
    name: Optional[str] = None

    # Logged-in callers
    avatar: Optional[str] = None
    active: Optional[bool] = None
    local: Optional[bool] = None
    external_provider: Optional[str] = Field(None, alias="externalProvider")
    scm_accounts: Optional[List[str]] = Field(None, alias="scmAccounts")

    # System administrators and the user themself
    email: Optional[str] = None
    groups: Optional[List[str]] = None
    external_identity: Optional[str] = Field(None, alias="externalIdentity")
    tokens_count: Optional[int] = Field(None, alias="tokensCount")
    last_connection_date: Optional[str] = Field(None, alias="lastConnectionDate")
    managed: Optional[bool] = None


class PagingResponse(BaseModel):
    """Paging of a search response."""
    model_config = ConfigDict(populate_by_name=True)

    page_index: int = Field(..., alias="pageIndex")
    page_size: int = Field(..., alias="pageSize")
    total: int


class SearchResponse(BaseModel):
    """Paginated user search response."""

    paging: PagingResponse
    users: List[UserResponse] = Field(default_factory=list)
