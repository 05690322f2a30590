"""Unit tests for group, token, managed-status and avatar lookups."""

import hashlib
import logging
import threading
import time
from typing import Dict, Sequence
from unittest.mock import patch

import pytest

from users.avatar import AvatarResolver
from users.concurrency import MAX_CONCURRENT_QUERIES
from users.groups import GroupMembershipRepository
from users.managed import (
    ManagedInstanceDelegate,
    ManagedInstanceService,
    ProvisionedUsersDelegate,
)
from users.models import IdentityRecord
from users.repository import UnprocessedKeysError
from users.tokens import UserTokenRepository


def record(login: str, email: str = None) -> IdentityRecord:
    return IdentityRecord(user_id=f"uuid-{login}", login=login, email=email)


class OverlapTracker:
    """Table query stand-in that records how many queries run at once."""

    def __init__(self, response: dict, delay: float = 0.05):
        self._response = response
        self._delay = delay
        self._lock = threading.Lock()
        self._in_flight = 0
        self.peak = 0
        self.calls = 0

    def __call__(self, **kwargs):
        with self._lock:
            self._in_flight += 1
            self.calls += 1
            self.peak = max(self.peak, self._in_flight)
        time.sleep(self._delay)
        with self._lock:
            self._in_flight -= 1
        return dict(self._response)


# ========== Groups ==========

@pytest.fixture
def group_repository():
    with patch("users.groups.boto3"):
        repo = GroupMembershipRepository(table_name="groups")
    return repo


@pytest.mark.asyncio
async def test_groups_by_logins(group_repository):
    def query(**kwargs):
        login = kwargs["ExpressionAttributeValues"][":pk"][len("USER#"):]
        items = {
            "alice": [
                {"SK": "GROUP#users", "groupName": "users"},
                {"SK": "GROUP#admins", "groupName": "admins"},
            ],
        }.get(login, [])
        return {"Items": items}

    group_repository._table.query.side_effect = query

    groups = await group_repository.get_groups_by_logins(["alice", "bob"])

    assert groups == {"alice": ["admins", "users"]}


@pytest.mark.asyncio
async def test_groups_follow_pagination(group_repository):
    group_repository._table.query.side_effect = [
        {"Items": [{"SK": "GROUP#a"}], "LastEvaluatedKey": {"PK": "USER#alice", "SK": "GROUP#a"}},
        {"Items": [{"SK": "GROUP#b"}]},
    ]

    groups = await group_repository.get_groups_by_logins(["alice"])

    assert groups == {"alice": ["a", "b"]}
    second_call = group_repository._table.query.call_args_list[1].kwargs
    assert second_call["ExclusiveStartKey"] == {"PK": "USER#alice", "SK": "GROUP#a"}


@pytest.mark.asyncio
async def test_group_queries_run_concurrently(group_repository):
    tracker = OverlapTracker({"Items": [{"SK": "GROUP#users"}]})
    group_repository._table.query.side_effect = tracker
    logins = [f"user{i}" for i in range(40)]

    groups = await group_repository.get_groups_by_logins(logins)

    assert groups == {login: ["users"] for login in logins}
    assert tracker.calls == 40
    assert 1 < tracker.peak <= MAX_CONCURRENT_QUERIES


@pytest.mark.asyncio
async def test_groups_disabled_without_table(monkeypatch):
    monkeypatch.delenv("DYNAMODB_GROUP_MEMBERSHIPS_TABLE_NAME", raising=False)

    repo = GroupMembershipRepository()

    assert repo.enabled is False
    assert await repo.get_groups_by_logins(["alice"]) == {}


# ========== Tokens ==========

@pytest.fixture
def token_repository():
    with patch("users.tokens.boto3"):
        repo = UserTokenRepository(table_name="tokens")
    return repo


@pytest.mark.asyncio
async def test_token_counts_are_keyed_by_login(token_repository):
    counts = {"USER#uuid-alice": 2, "USER#uuid-bob": 0}
    token_repository._table.query.side_effect = lambda **kwargs: {
        "Count": counts[kwargs["ExpressionAttributeValues"][":pk"]]
    }

    result = await token_repository.count_tokens_by_users([record("alice"), record("bob")])

    assert result == {"alice": 2}
    assert token_repository._table.query.call_args.kwargs["Select"] == "COUNT"


@pytest.mark.asyncio
async def test_token_counts_sum_pages(token_repository):
    token_repository._table.query.side_effect = [
        {"Count": 100, "LastEvaluatedKey": {"PK": "USER#uuid-alice", "SK": "TOKEN#x"}},
        {"Count": 5},
    ]

    result = await token_repository.count_tokens_by_users([record("alice")])

    assert result == {"alice": 105}


@pytest.mark.asyncio
async def test_token_queries_run_concurrently(token_repository):
    tracker = OverlapTracker({"Count": 1})
    token_repository._table.query.side_effect = tracker
    users = [record(f"user{i}") for i in range(40)]

    counts = await token_repository.count_tokens_by_users(users)

    assert counts == {user.login: 1 for user in users}
    assert 1 < tracker.peak <= MAX_CONCURRENT_QUERIES


@pytest.mark.asyncio
async def test_tokens_disabled_without_table(monkeypatch, caplog):
    monkeypatch.delenv("DYNAMODB_USER_TOKENS_TABLE_NAME", raising=False)

    with caplog.at_level(logging.INFO, logger="users.tokens"):
        repo = UserTokenRepository()

    disabled = [r for r in caplog.records if "disabled" in r.getMessage()]
    assert [r.levelno for r in disabled] == [logging.INFO]

    assert repo.enabled is False
    assert await repo.count_tokens_by_users([record("alice")]) == {}


# ========== Managed status ==========

class StaticDelegate(ManagedInstanceDelegate):
    def __init__(self, active: bool, managed_ids: Sequence[str] = ()):
        self._active = active
        self._managed_ids = set(managed_ids)
        self.calls = []

    @property
    def name(self) -> str:
        return "static"

    @property
    def is_active(self) -> bool:
        return self._active

    async def get_user_id_to_managed(self, user_ids: Sequence[str]) -> Dict[str, bool]:
        self.calls.append(list(user_ids))
        return {user_id: user_id in self._managed_ids for user_id in user_ids}


@pytest.mark.asyncio
async def test_no_active_delegate_means_nobody_managed():
    service = ManagedInstanceService(delegates=[StaticDelegate(active=False, managed_ids=["u1"])])

    assert await service.get_user_id_to_managed(["u1", "u2"]) == {"u1": False, "u2": False}


@pytest.mark.asyncio
async def test_first_active_delegate_answers():
    inactive = StaticDelegate(active=False)
    active = StaticDelegate(active=True, managed_ids=["u1"])
    other = StaticDelegate(active=True)
    service = ManagedInstanceService(delegates=[inactive, active, other])

    result = await service.get_user_id_to_managed(["u1", "u2"])

    assert result == {"u1": True, "u2": False}
    assert inactive.calls == [] and other.calls == []


@pytest.fixture
def provisioned_delegate():
    with patch("users.managed.boto3"):
        delegate = ProvisionedUsersDelegate(table_name="provisioned")
    return delegate


@pytest.mark.asyncio
async def test_provisioned_users_are_managed(provisioned_delegate):
    provisioned_delegate._dynamodb.batch_get_item.return_value = {
        "Responses": {"provisioned": [{"PK": "USER#u2"}]},
    }

    result = await provisioned_delegate.get_user_id_to_managed(["u1", "u2"])

    assert result == {"u1": False, "u2": True}
    request = provisioned_delegate._dynamodb.batch_get_item.call_args.kwargs["RequestItems"]
    assert request["provisioned"]["Keys"] == [
        {"PK": "USER#u1", "SK": "PROVISIONING"},
        {"PK": "USER#u2", "SK": "PROVISIONING"},
    ]


@pytest.mark.asyncio
async def test_provisioned_lookup_gives_up_on_unprocessed_keys(provisioned_delegate):
    provisioned_delegate._dynamodb.batch_get_item.return_value = {
        "Responses": {"provisioned": []},
        "UnprocessedKeys": {"provisioned": {"Keys": [{"PK": "USER#u1", "SK": "PROVISIONING"}]}},
    }

    with pytest.raises(UnprocessedKeysError):
        await provisioned_delegate.get_user_id_to_managed(["u1"])


def test_provisioned_delegate_inactive_without_table(monkeypatch):
    monkeypatch.delenv("DYNAMODB_MANAGED_USERS_TABLE_NAME", raising=False)

    assert ProvisionedUsersDelegate().is_active is False


# ========== Avatar ==========

def test_avatar_is_md5_of_lowercased_email():
    avatar = AvatarResolver().create(record("alice", email="Alice@Example.COM"))

    assert avatar == hashlib.md5(b"alice@example.com").hexdigest()


def test_avatar_requires_email():
    with pytest.raises(ValueError):
        AvatarResolver().create(record("alice"))
