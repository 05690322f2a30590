"""DynamoDB repository for user records."""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Iterable, List
import boto3
import logging
import os

from .models import IdentityRecord

logger = logging.getLogger(__name__)

# BatchGetItem accepts at most 100 keys per request
BATCH_GET_CHUNK_SIZE = 100

# Attempts for keys DynamoDB reports back as unprocessed (throttling)
MAX_UNPROCESSED_RETRIES = 3


class UnprocessedKeysError(RuntimeError):
    """Raised when DynamoDB keeps returning unprocessed keys for a batch read."""


class UserRepository:
    """DynamoDB repository for user records.

    Table Schema:
        PK: USER#<login>
        SK: PROFILE

    Attributes:
        userId, login, name, email, active, local, externalLogin,
        externalIdentityProvider, scmAccounts, lastConnectionDate (ISO-8601)
    """

    def __init__(self, table_name: str = None, region: str = None):
        """Initialize repository with table name from env or parameter."""
        if table_name is None:
            table_name = os.getenv("DYNAMODB_USERS_TABLE_NAME", "")

        self._table_name = table_name
        self._region = region or os.getenv("AWS_REGION", "us-west-2")
        self._enabled = bool(table_name)

        if self._enabled:
            profile = os.getenv("AWS_PROFILE")
            if profile:
                session = boto3.Session(profile_name=profile)
                self.dynamodb = session.resource("dynamodb", region_name=self._region)
            else:
                self.dynamodb = boto3.resource("dynamodb", region_name=self._region)
            self.table = self.dynamodb.Table(table_name)
            logger.info(f"UserRepository initialized with table: {table_name}")
        else:
            self.dynamodb = None
            self.table = None
            logger.info("UserRepository disabled - no table configured")

    @property
    def enabled(self) -> bool:
        """Check if user repository is enabled."""
        return self._enabled

    async def get_users_by_logins(self, logins: Iterable[str]) -> List[IdentityRecord]:
        """
        Fetch user records for a set of logins.

        Logins with no stored record are absent from the result. The order of
        the returned records is not related to the order of ``logins``.

        Raises:
            ClientError: If DynamoDB rejects a request
            UnprocessedKeysError: If keys remain unprocessed after retries
        """
        if not self._enabled:
            return []

        unique_logins = list(dict.fromkeys(logins))
        if not unique_logins:
            return []

        loop = asyncio.get_event_loop()
        records: List[IdentityRecord] = []
        for start in range(0, len(unique_logins), BATCH_GET_CHUNK_SIZE):
            chunk = unique_logins[start:start + BATCH_GET_CHUNK_SIZE]
            items = await loop.run_in_executor(None, self._batch_get, chunk)
            records.extend(self._item_to_record(item) for item in items)

        logger.debug(f"Fetched {len(records)} of {len(unique_logins)} requested users")
        return records

    # ========== Helper Methods ==========

    def _batch_get(self, logins: List[str]) -> List[dict]:
        """Run BatchGetItem for one chunk, re-requesting unprocessed keys."""
        request = {
            self._table_name: {
                "Keys": [{"PK": f"USER#{login}", "SK": "PROFILE"} for login in logins]
            }
        }
        items: List[dict] = []

        for attempt in range(MAX_UNPROCESSED_RETRIES + 1):
            response = self.dynamodb.batch_get_item(RequestItems=request)
            items.extend(response.get("Responses", {}).get(self._table_name, []))

            request = response.get("UnprocessedKeys") or {}
            if not request:
                return items
            logger.debug(f"Retrying unprocessed user keys (attempt {attempt + 1})")

        raise UnprocessedKeysError(
            f"{len(request[self._table_name]['Keys'])} user keys left unprocessed "
            f"after {MAX_UNPROCESSED_RETRIES} retries"
        )

    def _item_to_record(self, item: Dict) -> IdentityRecord:
        """Convert DynamoDB item to IdentityRecord."""
        last_connection = item.get("lastConnectionDate")
        return IdentityRecord(
            user_id=item["userId"],
            login=item["login"],
            name=item.get("name"),
            email=item.get("email"),
            active=item.get("active", True),
            local=item.get("local", True),
            external_login=item.get("externalLogin"),
            external_identity_provider=item.get("externalIdentityProvider"),
            scm_accounts=list(item.get("scmAccounts") or []),
            last_connection_date=_parse_datetime(last_connection) if last_connection else None,
        )


def _parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are stored in UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
