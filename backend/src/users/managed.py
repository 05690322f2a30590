"""Managed-instance status of users.

A user is "managed" when an external provisioning integration (SCIM, GitHub
provisioning, ...) owns its lifecycle instead of local administrators.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

import boto3

from .repository import BATCH_GET_CHUNK_SIZE, MAX_UNPROCESSED_RETRIES, UnprocessedKeysError

logger = logging.getLogger(__name__)


class ManagedInstanceDelegate(ABC):
    """An external provisioning integration able to tell which users it manages."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name of the integration, used in logs."""

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """Whether the integration is configured for this instance."""

    @abstractmethod
    async def get_user_id_to_managed(self, user_ids: Sequence[str]) -> Dict[str, bool]:
        """Map each user id to whether this integration manages it."""


class ProvisionedUsersDelegate(ManagedInstanceDelegate):
    """
    Delegate backed by the DynamoDB table of externally provisioned users.

    Table Schema:
        PK: USER#<user_id>
        SK: PROVISIONING
        provider: name of the provisioning integration
    """

    def __init__(
        self,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
    ):
        self._table_name = table_name or os.getenv("DYNAMODB_MANAGED_USERS_TABLE_NAME")
        self._region = region or os.getenv("AWS_REGION", "us-west-2")

        if not self._table_name:
            logger.info("ProvisionedUsersDelegate inactive - no table configured")
            return

        profile = os.getenv("AWS_PROFILE")
        if profile:
            session = boto3.Session(profile_name=profile)
            self._dynamodb = session.resource("dynamodb", region_name=self._region)
        else:
            self._dynamodb = boto3.resource("dynamodb", region_name=self._region)
        logger.info(f"Initialized provisioned users delegate: table={self._table_name}")

    @property
    def name(self) -> str:
        return "provisioned-users"

    @property
    def is_active(self) -> bool:
        return bool(self._table_name)

    async def get_user_id_to_managed(self, user_ids: Sequence[str]) -> Dict[str, bool]:
        unique_ids = list(dict.fromkeys(user_ids))
        managed: Dict[str, bool] = {user_id: False for user_id in unique_ids}
        if not unique_ids:
            return managed

        loop = asyncio.get_event_loop()
        for start in range(0, len(unique_ids), BATCH_GET_CHUNK_SIZE):
            chunk = unique_ids[start:start + BATCH_GET_CHUNK_SIZE]
            found = await loop.run_in_executor(None, self._batch_get_user_ids, chunk)
            for user_id in found:
                managed[user_id] = True
        return managed

    def _batch_get_user_ids(self, user_ids: List[str]) -> List[str]:
        request = {
            self._table_name: {
                "Keys": [{"PK": f"USER#{user_id}", "SK": "PROVISIONING"} for user_id in user_ids],
                "ProjectionExpression": "PK",
            }
        }
        found: List[str] = []
        for _ in range(MAX_UNPROCESSED_RETRIES + 1):
            response = self._dynamodb.batch_get_item(RequestItems=request)
            for item in response.get("Responses", {}).get(self._table_name, []):
                found.append(item["PK"][len("USER#"):])
            request = response.get("UnprocessedKeys") or {}
            if not request:
                return found
        raise UnprocessedKeysError(
            f"{len(request[self._table_name]['Keys'])} provisioning keys left unprocessed "
            f"after {MAX_UNPROCESSED_RETRIES} retries"
        )


class ManagedInstanceService:
    """
    Resolves managed status through the first active delegate.

    When no delegate is active the instance is not managed, and every user is
    reported as not managed.
    """

    def __init__(self, delegates: Optional[List[ManagedInstanceDelegate]] = None):
        self._delegates = delegates if delegates is not None else [ProvisionedUsersDelegate()]

    def _active_delegate(self) -> Optional[ManagedInstanceDelegate]:
        for delegate in self._delegates:
            if delegate.is_active:
                return delegate
        return None

    async def get_user_id_to_managed(self, user_ids: Iterable[str]) -> Dict[str, bool]:
        """Map each user id to its managed status."""
        ids = list(user_ids)
        delegate = self._active_delegate()
        if delegate is None:
            return {user_id: False for user_id in ids}

        logger.debug(f"Resolving managed status of {len(ids)} users via {delegate.name}")
        return await delegate.get_user_id_to_managed(ids)
