import pytest
from fastapi.testclient import TestClient

from zaffa.main import app

PASSWORD = "secret123"


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _signup(client: TestClient, email: str, first_name: str, role: str = "groom", **extra) -> tuple[dict, dict]:
    payload = {
        "email": email,
        "password": PASSWORD,
        "first_name": first_name,
        "last_name": "Test",
        "role": role,
        **extra,
    }
    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    login = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200
    return response.json(), _auth_header(login.json()["access_token"])


def _assert_error_code(response, expected_code: str):
    body = response.json()
    assert "error" in body and body["error"]["code"] == expected_code


def _invite(client: TestClient, headers: dict, email: str):
    return client.post("/api/v1/invitations", json={"email": email}, headers=headers)


def test_single_member_household_can_invite(client: TestClient):
    _, headers = _signup(client, "groom@example.com", "Omar")
    me = client.get("/api/v1/me", headers=headers).json()
    assert me["can_invite_partner"] is True
    assert me["partner"] is None
    assert len(me["household"]["member_ids"]) == 1


def test_invitation_accept_joins_household(client: TestClient):
    groom, groom_headers = _signup(client, "groom@example.com", "Omar")
    bride, bride_headers = _signup(client, "bride@example.com", "Lina", role="bride")
    old_household = bride["household_id"]

    response = _invite(client, groom_headers, "Bride@Example.com")
    assert response.status_code == 201, response.text
    invitation = response.json()
    assert invitation["invitee_email"] == "bride@example.com"
    assert invitation["inviter_name"] == "Omar"
    assert invitation["status"] == "pending"

    pending = client.get("/api/v1/me", headers=bride_headers).json()["pending_invitations"]
    assert [entry["id"] for entry in pending] == [invitation["id"]]

    accepted = client.post(f"/api/v1/invitations/{invitation['id']}/accept", headers=bride_headers)
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    bride_me = client.get("/api/v1/me", headers=bride_headers).json()
    assert bride_me["profile"]["household_id"] == groom["household_id"]
    assert bride_me["partner"]["first_name"] == "Omar"
    assert bride_me["can_invite_partner"] is False
    assert bride_me["pending_invitations"] == []

    groom_me = client.get("/api/v1/me", headers=groom_headers).json()
    assert groom_me["partner"]["id"] == bride["id"]
    assert groom_me["partner"]["role"] == "bride"

    gone = client.get(f"/api/v1/households/{old_household}", headers=bride_headers)
    assert gone.status_code == 404


def test_accepting_deletes_previous_household_data(client: TestClient):
    _, groom_headers = _signup(client, "groom@example.com", "Omar")
    bride, bride_headers = _signup(client, "bride@example.com", "Lina", role="bride")
    old_household = bride["household_id"]
    section = client.post(
        f"/api/v1/households/{old_household}/categories",
        json={"name": "Old section"},
        headers=bride_headers,
    )
    assert section.status_code == 201
    invitation = _invite(client, groom_headers, "bride@example.com").json()
    client.post(f"/api/v1/invitations/{invitation['id']}/accept", headers=bride_headers)

    household_id = client.get("/api/v1/me", headers=bride_headers).json()["household"]["id"]
    categories = client.get(f"/api/v1/households/{household_id}/categories", headers=bride_headers).json()
    assert categories == []


def test_invite_rules(client: TestClient):
    _, groom_headers = _signup(client, "groom@example.com", "Omar")
    _signup(client, "bride@example.com", "Lina", role="bride")

    response = _invite(client, groom_headers, "groom@example.com")
    assert response.status_code == 400

    response = _invite(client, groom_headers, "nobody@example.com")
    assert response.status_code == 404
    _assert_error_code(response, "NOT_FOUND")

    assert _invite(client, groom_headers, "bride@example.com").status_code == 201
    response = _invite(client, groom_headers, "bride@example.com")
    assert response.status_code == 409
    _assert_error_code(response, "BUSINESS_RULE_VIOLATION")


def test_full_household_cannot_invite(client: TestClient):
    _, groom_headers = _signup(client, "groom@example.com", "Omar")
    _, bride_headers = _signup(client, "bride@example.com", "Lina", role="bride")
    _, third_headers = _signup(client, "third@example.com", "Sami")
    invitation = _invite(client, groom_headers, "bride@example.com").json()
    client.post(f"/api/v1/invitations/{invitation['id']}/accept", headers=bride_headers)

    assert _invite(client, groom_headers, "third@example.com").status_code == 409
    # Invitee already sharing a household.
    assert _invite(client, third_headers, "bride@example.com").status_code == 409


def test_accept_by_other_user_is_forbidden(client: TestClient):
    _, groom_headers = _signup(client, "groom@example.com", "Omar")
    _signup(client, "bride@example.com", "Lina", role="bride")
    _, other_headers = _signup(client, "other@example.com", "Sami")
    invitation = _invite(client, groom_headers, "bride@example.com").json()
    response = client.post(f"/api/v1/invitations/{invitation['id']}/accept", headers=other_headers)
    assert response.status_code == 403
    _assert_error_code(response, "PERMISSION_DENIED")


def test_decline_invitation(client: TestClient):
    groom, groom_headers = _signup(client, "groom@example.com", "Omar")
    bride, bride_headers = _signup(client, "bride@example.com", "Lina", role="bride")
    invitation = _invite(client, groom_headers, "bride@example.com").json()
    response = client.post(f"/api/v1/invitations/{invitation['id']}/decline", headers=bride_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "declined"
    assert client.get("/api/v1/me", headers=bride_headers).json()["profile"]["household_id"] == bride["household_id"]
    again = client.post(f"/api/v1/invitations/{invitation['id']}/accept", headers=bride_headers)
    assert again.status_code == 409
    sent = client.get("/api/v1/invitations", headers=groom_headers).json()["sent"]
    assert sent[0]["status"] == "declined"


def test_setup_household_after_signup_without_one(client: TestClient):
    _, headers = _signup(client, "later@example.com", "Noor", create_household=False)
    me = client.get("/api/v1/me", headers=headers).json()
    assert me["household"] is None
    assert me["can_invite_partner"] is False

    response = client.post("/api/v1/households/setup", headers=headers)
    assert response.status_code == 201
    household = response.json()
    assert len(household["members"]) == 1

    again = client.post("/api/v1/households/setup", headers=headers)
    assert again.status_code == 409


def test_household_access_is_scoped(client: TestClient):
    owner, _ = _signup(client, "owner@example.com", "Omar")
    _, outsider_headers = _signup(client, "outsider@example.com", "Sami")
    response = client.get(f"/api/v1/households/{owner['household_id']}", headers=outsider_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Household not found or access denied"


def test_theme_follows_role_until_overridden(client: TestClient):
    _, headers = _signup(client, "bride@example.com", "Lina", role="bride")
    assert client.get("/api/v1/me/theme", headers=headers).json() == {
        "theme": "bride",
        "theme_override": False,
        "role": "bride",
    }
    updated = client.put("/api/v1/me/theme", json={"theme": "groom"}, headers=headers).json()
    assert updated["theme"] == "groom"
    assert updated["theme_override"] is True
    assert client.get("/api/v1/me", headers=headers).json()["profile"]["theme"] == "groom"

    cleared = client.put("/api/v1/me/theme", json={"theme": None}, headers=headers).json()
    assert cleared["theme"] == "bride"
    assert cleared["theme_override"] is False

    assert client.put("/api/v1/me/theme", json={"theme": "purple"}, headers=headers).status_code == 422


def test_hero_settings(client: TestClient):
    profile, headers = _signup(client, "hero@example.com", "Omar")
    url = f"/api/v1/households/{profile['household_id']}/hero"
    assert client.get(url, headers=headers).json()["hero_title"] is None

    response = client.put(url, json={"hero_title": " Our home ", "hero_subtitle": "2026"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["hero_title"] == "Our home"

    too_long = client.put(url, json={"hero_title": "x" * 51}, headers=headers)
    assert too_long.status_code == 422
