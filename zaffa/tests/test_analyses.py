import pytest
from fastapi.testclient import TestClient

from zaffa.main import app

PASSWORD = "secret123"


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def household(client: TestClient) -> tuple[str, dict]:
    payload = {"email": "stats@example.com", "password": PASSWORD, "first_name": "Lina", "last_name": "H"}
    profile = client.post("/api/v1/auth/register", json=payload).json()
    login = client.post("/api/v1/auth/login", json={"email": "stats@example.com", "password": PASSWORD})
    return f"/api/v1/households/{profile['household_id']}", {
        "Authorization": f"Bearer {login.json()['access_token']}"
    }


@pytest.fixture
def checklist(client: TestClient, household) -> dict:
    base, headers = household

    def category(name, parent_id=None):
        return client.post(
            f"{base}/categories", json={"name": name, "parent_id": parent_id}, headers=headers
        ).json()["id"]

    def item(category_id, name, min_price, max_price):
        return client.post(
            f"{base}/items",
            json={"name": name, "category_id": category_id, "min_price": min_price, "max_price": max_price},
            headers=headers,
        ).json()["id"]

    kitchen = category("Kitchen")
    appliances = category("Appliances", kitchen)
    bedroom = category("Bedroom")
    fridge = item(appliances, "Fridge", 900, 1100)
    item(kitchen, "Table", 100, 300)
    item(bedroom, "Bed", 400, 600)
    client.post(f"{base}/items/{fridge}/purchase", json={"final_price": 1000}, headers=headers)
    return {"kitchen": kitchen, "appliances": appliances, "bedroom": bedroom}


def test_analysis_on_section_includes_descendants(client, household, checklist):
    base, headers = household
    response = client.post(
        f"{base}/analyses",
        json={"title": "Kitchen budget", "category_ids": [checklist["kitchen"]]},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    analysis = response.json()
    assert analysis["is_featured"] is False

    stats = client.get(f"{base}/analyses/{analysis['id']}/stats", headers=headers).json()
    assert stats["stats"] == {
        "total_expected": 1200,
        "total_paid": 1000,
        "total_items": 2,
        "purchased_items": 1,
        "progress": 50,
    }
    assert [group["section"]["name"] for group in stats["sections"]] == ["Kitchen"]
    assert {item["name"] for item in stats["sections"][0]["items"]} == {"Fridge", "Table"}


def test_adhoc_stats_for_selection(client, household, checklist):
    base, headers = household
    body = client.post(
        f"{base}/stats",
        json={"category_ids": [checklist["appliances"], checklist["bedroom"]]},
        headers=headers,
    ).json()
    assert body["stats"]["total_items"] == 2
    assert [group["section"]["name"] for group in body["sections"]] == ["Bedroom", "Kitchen"]


def test_featured_analyses(client, household, checklist):
    base, headers = household
    client.post(
        f"{base}/analyses",
        json={"title": "Bedroom", "category_ids": [checklist["bedroom"]], "is_featured": True},
        headers=headers,
    )
    other = client.post(
        f"{base}/analyses",
        json={"title": "Kitchen", "category_ids": [checklist["kitchen"]]},
        headers=headers,
    ).json()

    featured = client.get(f"{base}/analyses/featured", headers=headers).json()
    assert [(entry["analysis"]["title"], entry["total_count"]) for entry in featured] == [("Bedroom", 1)]

    client.patch(f"{base}/analyses/{other['id']}", json={"is_featured": True}, headers=headers)
    featured = client.get(f"{base}/analyses/featured", headers=headers).json()
    kitchen = [entry for entry in featured if entry["analysis"]["title"] == "Kitchen"][0]
    assert (kitchen["total_count"], kitchen["purchased_count"]) == (2, 1)


def test_analysis_crud_and_validation(client, household, checklist):
    base, headers = household
    response = client.post(
        f"{base}/analyses",
        json={"title": "Bad", "category_ids": ["00000000-0000-0000-0000-000000000003"]},
        headers=headers,
    )
    assert response.status_code == 422
    assert client.post(f"{base}/analyses", json={"title": "Empty", "category_ids": []}, headers=headers).status_code == 422

    created = client.post(
        f"{base}/analyses",
        json={"title": "All", "category_ids": [checklist["kitchen"], checklist["bedroom"]]},
        headers=headers,
    ).json()
    assert len(client.get(f"{base}/analyses", headers=headers).json()) == 1
    renamed = client.patch(f"{base}/analyses/{created['id']}", json={"title": "Everything"}, headers=headers).json()
    assert renamed["title"] == "Everything"
    assert client.get(f"{base}/analyses/{created['id']}", headers=headers).json()["title"] == "Everything"
    assert client.delete(f"{base}/analyses/{created['id']}", headers=headers).status_code == 204
    assert client.get(f"{base}/analyses/{created['id']}", headers=headers).status_code == 404


def test_stats_with_no_items_report_zero_progress(client, household):
    base, headers = household
    section = client.post(f"{base}/categories", json={"name": "Garage"}, headers=headers).json()
    body = client.post(f"{base}/stats", json={"category_ids": [section["id"]]}, headers=headers).json()
    assert body["stats"]["progress"] == 0
    assert body["sections"] == []


def test_blank_analysis_title_is_rejected(client, household, checklist):
    base, headers = household
    response = client.post(
        f"{base}/analyses",
        json={"title": "   ", "category_ids": [checklist["kitchen"]]},
        headers=headers,
    )
    assert response.status_code == 422

    created = client.post(
        f"{base}/analyses",
        json={"title": " Kitchen budget ", "category_ids": [checklist["kitchen"]]},
        headers=headers,
    ).json()
    assert created["title"] == "Kitchen budget"
    response = client.patch(f"{base}/analyses/{created['id']}", json={"title": ""}, headers=headers)
    assert response.status_code == 422
