"""DynamoDB repository for group memberships."""

import logging
import os
from typing import Dict, Iterable, List, Optional

import boto3

from .concurrency import run_bounded

logger = logging.getLogger(__name__)


class GroupMembershipRepository:
    """
    Read access to the group memberships table.

    Table Schema:
        PK: USER#<login>
        SK: GROUP#<group_name>
        groupName: display name of the group
    """

    def __init__(
        self,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
    ):
        self._table_name = table_name or os.getenv("DYNAMODB_GROUP_MEMBERSHIPS_TABLE_NAME")
        self._region = region or os.getenv("AWS_REGION", "us-west-2")
        self._enabled = bool(self._table_name)

        if not self._enabled:
            logger.info("GroupMembershipRepository disabled - no table configured")
            return

        profile = os.getenv("AWS_PROFILE")
        if profile:
            session = boto3.Session(profile_name=profile)
            self._dynamodb = session.resource("dynamodb", region_name=self._region)
        else:
            self._dynamodb = boto3.resource("dynamodb", region_name=self._region)

        self._table = self._dynamodb.Table(self._table_name)
        logger.info(f"Initialized group membership repository: table={self._table_name}")

    @property
    def enabled(self) -> bool:
        """Check if repository is enabled."""
        return self._enabled

    async def get_groups_by_logins(self, logins: Iterable[str]) -> Dict[str, List[str]]:
        """
        Get the group names of each login.

        Args:
            logins: User logins

        Returns:
            Mapping of login to sorted group names. Logins without any
            membership are absent.
        """
        if not self._enabled:
            return {}

        unique_logins = list(dict.fromkeys(logins))
        results = await run_bounded(self._query_groups, unique_logins)
        return {
            login: sorted(groups)
            for login, groups in zip(unique_logins, results)
            if groups
        }

    def _query_groups(self, login: str) -> List[str]:
        kwargs = {
            "KeyConditionExpression": "PK = :pk AND begins_with(SK, :sk_prefix)",
            "ExpressionAttributeValues": {
                ":pk": f"USER#{login}",
                ":sk_prefix": "GROUP#",
            },
        }
        response = self._table.query(**kwargs)
        items = response.get("Items", [])

        # Handle pagination
        while "LastEvaluatedKey" in response:
            response = self._table.query(**kwargs, ExclusiveStartKey=response["LastEvaluatedKey"])
            items.extend(response.get("Items", []))

        return [item.get("groupName") or item["SK"][len("GROUP#"):] for item in items]
