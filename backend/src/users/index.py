"""OpenSearch index of users."""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from opensearchpy import OpenSearch

from .models import UserIndexResult

logger = logging.getLogger(__name__)

# Queries up to this length match partially and ignore case; longer ones must
# match a whole field exactly.
PARTIAL_MATCH_MAX_LENGTH = 15

SEARCH_FIELDS = ("login", "name.raw", "email")

USERS_INDEX_MAPPING = {
    "settings": {
        "index": {
            "number_of_shards": 1,
            "number_of_replicas": 0,
        },
        "analysis": {
            "normalizer": {
                "lowercase_sort": {"type": "custom", "filter": ["lowercase"]}
            }
        },
    },
    "mappings": {
        "properties": {
            "uuid": {"type": "keyword"},
            "login": {"type": "keyword"},
            "name": {
                "type": "text",
                "fields": {
                    "raw": {"type": "keyword"},
                    "sort": {"type": "keyword", "normalizer": "lowercase_sort"},
                },
            },
            "email": {"type": "keyword"},
            "active": {"type": "boolean"},
            "scmAccounts": {"type": "keyword"},
        }
    },
}


def _escape_wildcard(text: str) -> str:
    return text.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def build_text_query(text_query: str) -> Dict[str, Any]:
    """
    Build the query clause matching ``text_query`` on login, name or email.

    Short queries are case-insensitive "contains" matches; queries longer than
    PARTIAL_MATCH_MAX_LENGTH are case-sensitive exact matches.
    """
    if len(text_query) <= PARTIAL_MATCH_MAX_LENGTH:
        pattern = f"*{_escape_wildcard(text_query)}*"
        should = [
            {"wildcard": {field: {"value": pattern, "case_insensitive": True}}}
            for field in SEARCH_FIELDS
        ]
    else:
        should = [{"term": {field: text_query}} for field in SEARCH_FIELDS]
    return {"bool": {"should": should, "minimum_should_match": 1}}


class UserIndex:
    """Search access to the users index."""

    def __init__(
        self,
        hosts: Optional[List[str]] = None,
        index_name: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = True,
        client: Optional[OpenSearch] = None,
    ):
        """Initialize the index client.

        Args:
            hosts: OpenSearch host URLs (defaults to OPENSEARCH_HOSTS)
            index_name: Name of the users index (defaults to OPENSEARCH_USERS_INDEX)
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            client: Pre-built client, used instead of building one from hosts
        """
        if hosts is None:
            hosts = [h.strip() for h in os.getenv("OPENSEARCH_HOSTS", "").split(",") if h.strip()]
        self.index_name = index_name or os.getenv("OPENSEARCH_USERS_INDEX", "users")
        username = username or os.getenv("OPENSEARCH_USERNAME")
        password = password or os.getenv("OPENSEARCH_PASSWORD")

        if client is not None:
            self.client = client
        elif hosts:
            self.client = OpenSearch(
                hosts=hosts,
                http_auth=(username, password) if username and password else None,
                verify_certs=verify_certs,
                use_ssl=hosts[0].startswith("https"),
            )
        else:
            self.client = None

        if self.client is None:
            logger.info("UserIndex disabled - no OpenSearch hosts configured")
        else:
            logger.info(f"UserIndex initialized with index: {self.index_name}")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def initialize(self) -> None:
        """Create the users index with its mapping if it does not exist."""
        if not self.enabled:
            return

        loop = asyncio.get_event_loop()
        exists = await loop.run_in_executor(
            None, lambda: self.client.indices.exists(index=self.index_name)
        )
        if not exists:
            await loop.run_in_executor(
                None,
                lambda: self.client.indices.create(index=self.index_name, body=USERS_INDEX_MAPPING),
            )
            logger.info(f"Created users index {self.index_name}")

    async def search(
        self,
        text_query: Optional[str],
        active: bool,
        offset: int,
        limit: int,
    ) -> UserIndexResult:
        """
        Search one page of users.

        Args:
            text_query: Optional filter on login, name and email
            active: Return active users when True, deactivated users otherwise
            offset: Number of matching users to skip
            limit: Maximum number of logins to return

        Returns:
            Matched logins sorted by name then login, and the total number of
            matching users
        """
        if not self.enabled:
            return UserIndexResult()

        body = self._build_search_body(text_query, active, offset, limit)
        loop = asyncio.get_event_loop()
        response = await loop.run_in_executor(
            None, lambda: self.client.search(index=self.index_name, body=body)
        )

        hits = response.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)
        logins = [hit["_source"]["login"] for hit in hits.get("hits", [])]
        return UserIndexResult(logins=logins, total=total)

    def _build_search_body(
        self,
        text_query: Optional[str],
        active: bool,
        offset: int,
        limit: int,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"bool": {"filter": [{"term": {"active": active}}]}}
        if text_query:
            query["bool"]["must"] = [build_text_query(text_query)]

        return {
            "query": query,
            "from": offset,
            "size": limit,
            "track_total_hits": True,
            "_source": ["login"],
            "sort": [
                {"name.sort": {"order": "asc", "missing": "_last"}},
                {"login": {"order": "asc"}},
            ],
        }
