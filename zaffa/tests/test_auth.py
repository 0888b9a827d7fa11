import pytest
from fastapi.testclient import TestClient

from zaffa.main import app
from zaffa.security.jwt import create_refresh_token


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register_user(client: TestClient, email: str, password: str = "secret123", **extra) -> dict:
    payload = {"email": email, "password": password, "first_name": "Sam", "last_name": "Lee", **extra}
    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _login(client: TestClient, email: str, password: str = "secret123") -> dict:
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def _assert_error_code(response, expected_code: str):
    body = response.json()
    assert "error" in body and body["error"]["code"] == expected_code


def test_register_creates_profile_and_household(client: TestClient):
    profile = _register_user(client, "  Groom@Example.com ", role="groom")
    assert profile["email"] == "groom@example.com"
    assert profile["role"] == "groom"
    assert profile["theme"] == "groom"
    assert profile["household_id"] is not None
    assert "password_hash" not in profile


def test_register_without_household(client: TestClient):
    profile = _register_user(client, "solo@example.com", create_household=False)
    assert profile["household_id"] is None


def test_register_duplicate_email_conflicts(client: TestClient):
    _register_user(client, "dup@example.com")
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "DUP@example.com", "password": "secret123", "first_name": "A", "last_name": "B"},
    )
    assert response.status_code == 409
    _assert_error_code(response, "BUSINESS_RULE_VIOLATION")


def test_register_validates_password_and_role(client: TestClient):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "short@example.com", "password": "123", "first_name": "A", "last_name": "B"},
    )
    assert response.status_code == 422
    _assert_error_code(response, "VALIDATION_ERROR")
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "role@example.com",
            "password": "secret123",
            "first_name": "A",
            "last_name": "B",
            "role": "guest",
        },
    )
    assert response.status_code == 422


def test_login_and_me(client: TestClient):
    _register_user(client, "me@example.com")
    tokens = _login(client, "me@example.com")
    assert tokens["token_type"] == "bearer"
    response = client.get("/api/v1/me", headers=_auth_header(tokens["access_token"]))
    assert response.status_code == 200
    assert response.json()["profile"]["email"] == "me@example.com"


def test_login_wrong_password(client: TestClient):
    _register_user(client, "wrong@example.com")
    response = client.post("/api/v1/auth/login", json={"email": "wrong@example.com", "password": "nope-nope"})
    assert response.status_code == 401
    _assert_error_code(response, "UNAUTHENTICATED")


def test_me_requires_token(client: TestClient):
    response = client.get("/api/v1/me")
    assert response.status_code == 401
    _assert_error_code(response, "UNAUTHENTICATED")
    response = client.get("/api/v1/me", headers=_auth_header("not-a-jwt"))
    assert response.status_code == 401


def test_refresh_issues_new_tokens(client: TestClient):
    _register_user(client, "refresh@example.com")
    tokens = _login(client, "refresh@example.com")
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    new_access = response.json()["access_token"]
    assert client.get("/api/v1/me", headers=_auth_header(new_access)).status_code == 200


def test_refresh_rejects_access_token(client: TestClient):
    _register_user(client, "mixup@example.com")
    tokens = _login(client, "mixup@example.com")
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


def test_refresh_token_cannot_access_api(client: TestClient):
    profile = _register_user(client, "scope@example.com")
    refresh_token, _ = create_refresh_token(profile["id"])
    response = client.get("/api/v1/me", headers=_auth_header(refresh_token))
    assert response.status_code == 401
