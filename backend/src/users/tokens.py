"""DynamoDB repository for user authentication tokens."""

import logging
import os
from typing import Dict, Iterable, Optional

import boto3

from .concurrency import run_bounded
from .models import IdentityRecord

logger = logging.getLogger(__name__)


class UserTokenRepository:
    """
    Repository for user token lookups in DynamoDB.

    Only token metadata is stored here; token values are hashed at creation
    and never read back by this service.

    Table Schema:
        PK: USER#<user_id>
        SK: TOKEN#<token_name>
    """

    def __init__(
        self,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
    ):
        """
        Initialize repository.

        Args:
            table_name: DynamoDB table name (defaults to env var)
            region: AWS region (defaults to env var)
        """
        self._table_name = table_name or os.getenv("DYNAMODB_USER_TOKENS_TABLE_NAME")
        self._region = region or os.getenv("AWS_REGION", "us-west-2")
        self._enabled = bool(self._table_name)

        if not self._enabled:
            logger.info("UserTokenRepository disabled - no table configured")
            return

        profile = os.getenv("AWS_PROFILE")
        if profile:
            session = boto3.Session(profile_name=profile)
            self._dynamodb = session.resource("dynamodb", region_name=self._region)
        else:
            self._dynamodb = boto3.resource("dynamodb", region_name=self._region)

        self._table = self._dynamodb.Table(self._table_name)
        logger.info(f"Initialized user token repository: table={self._table_name}")

    @property
    def enabled(self) -> bool:
        """Check if repository is enabled."""
        return self._enabled

    async def count_tokens_by_users(self, users: Iterable[IdentityRecord]) -> Dict[str, int]:
        """
        Count the tokens owned by each user.

        Args:
            users: User records whose tokens are counted

        Returns:
            Mapping of login to token count. Users without tokens are absent.
        """
        if not self._enabled:
            return {}

        users = list(users)
        results = await run_bounded(self._count_tokens, [user.user_id for user in users])
        return {user.login: count for user, count in zip(users, results) if count}

    def _count_tokens(self, user_id: str) -> int:
        kwargs = {
            "KeyConditionExpression": "PK = :pk AND begins_with(SK, :sk_prefix)",
            "ExpressionAttributeValues": {
                ":pk": f"USER#{user_id}",
                ":sk_prefix": "TOKEN#",
            },
            "Select": "COUNT",
        }
        response = self._table.query(**kwargs)
        count = response.get("Count", 0)

        # Handle pagination
        while "LastEvaluatedKey" in response:
            response = self._table.query(**kwargs, ExclusiveStartKey=response["LastEvaluatedKey"])
            count += response.get("Count", 0)

        return count
