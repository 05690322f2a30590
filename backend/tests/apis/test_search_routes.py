"""HTTP tests for GET /api/users/search."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi import HTTPException, status
from fastapi.testclient import TestClient

from apis.app_api.main import app
from apis.app_api.users.models import PagingResponse, SearchResponse, UserResponse
from apis.app_api.users.routes import get_user_search_service
from apis.app_api.users.service import UserSearchService
from apis.shared.auth import get_user_session
from apis.shared.auth.models import User
from apis.shared.auth.session import UserSession
from apis.shared.errors import DependencyFailureError


@pytest.fixture
def mock_service():
    service = Mock(spec=UserSearchService)
    service.search = AsyncMock(return_value=SearchResponse(
        paging=PagingResponse(page_index=1, page_size=2, total=5),
        users=[
            UserResponse(login="alice", name="Alice", groups=["admins"], tokens_count=0, managed=False),
            UserResponse(login="bob", name="Bob", tokens_count=0, managed=False),
        ],
    ))
    return service


@pytest.fixture
def client(mock_service):
    app.dependency_overrides[get_user_search_service] = lambda: mock_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_search_returns_camel_case_without_withheld_fields(client, mock_service):
    response = client.get("/api/users/search", params={"q": "ab", "p": 1, "ps": 2})

    assert response.status_code == 200
    assert response.json() == {
        "paging": {"pageIndex": 1, "pageSize": 2, "total": 5},
        "users": [
            {"login": "alice", "name": "Alice", "groups": ["admins"], "tokensCount": 0, "managed": False},
            {"login": "bob", "name": "Bob", "tokensCount": 0, "managed": False},
        ],
    }
    criteria, session = mock_service.search.call_args.args
    assert criteria.query == "ab"
    assert criteria.page == 1 and criteria.page_size == 2
    assert criteria.deactivated is False
    assert session.is_logged_in is False


def test_defaults_are_applied(client, mock_service):
    client.get("/api/users/search", params={"deactivated": "true"})

    criteria, _ = mock_service.search.call_args.args
    assert criteria.query is None
    assert criteria.deactivated is True
    assert criteria.page == 1
    assert criteria.page_size == 50


def test_page_size_above_limit_is_bad_request(client, mock_service):
    response = client.get("/api/users/search", params={"ps": 501})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "bad_request"
    assert error["field"] == "ps"
    assert error["metadata"] == {"limit": 500}
    assert error["message"] == "The 'ps' parameter must be less than 500"
    mock_service.search.assert_not_called()


def test_short_query_is_bad_request(client, mock_service):
    response = client.get("/api/users/search", params={"q": "a"})

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "q"
    mock_service.search.assert_not_called()


def test_dependency_failure_is_service_unavailable(client, mock_service):
    mock_service.search.side_effect = DependencyFailureError("user-index", "connection refused")

    response = client.get("/api/users/search")

    assert response.status_code == 503
    body = response.json()
    assert body["error"]["code"] == "service_unavailable"
    assert body["error"]["metadata"] == {"dependency": "user-index"}
    assert "users" not in body


def test_dependency_timeout_is_gateway_timeout(client, mock_service):
    mock_service.search.side_effect = DependencyFailureError("user-store", "no answer", timed_out=True)

    response = client.get("/api/users/search")

    assert response.status_code == 504
    assert response.json()["error"]["code"] == "timeout"


def test_session_is_passed_to_service(client, mock_service):
    session = UserSession(user=User(user_id="uuid-root", email="root@example.com", name="Root", roles=["Admin"]))
    app.dependency_overrides[get_user_session] = lambda: session

    client.get("/api/users/search")

    _, passed = mock_service.search.call_args.args
    assert passed is session


def test_invalid_token_is_unauthorized(client, mock_service):
    validator = Mock()
    validator.validate_token.side_effect = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token."
    )

    with patch("apis.shared.auth.dependencies.get_validator", return_value=validator):
        response = client.get("/api/users/search", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"
    mock_service.search.assert_not_called()


def test_valid_token_gives_logged_in_session(client, mock_service):
    validator = Mock()
    validator.validate_token.return_value = User(user_id="uuid-bob", email="bob@example.com", name="Bob")

    with patch("apis.shared.auth.dependencies.get_validator", return_value=validator):
        client.get("/api/users/search", headers={"Authorization": "Bearer token"})

    _, session = mock_service.search.call_args.args
    assert session.is_logged_in
    assert session.user_id == "uuid-bob"
    assert session.is_system_administrator is False


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/ping").json() == {"status": "ok"}
