"""
Tests for the notification HTTP endpoints.
"""

import pytest

from tests.fixtures import PatientFactory, auth_headers

BASE = "/api/v1/notifications"


@pytest.fixture
def doctor(seed, container):
    return seed(PatientFactory.clinician, container.database, "doc-1")


def create(client, headers, **overrides):
    body = {"title": "Résultat disponible", "message": "Bilan reçu", "type": "info", "category": "lab_results"}
    body.update(overrides)
    return client.post(BASE, json=body, headers=headers)


def test_requires_session(client):
    response = client.get(BASE)

    assert response.status_code == 401
    body = response.json()
    assert body["status"] == "error"
    assert body["status_code"] == 401
    assert body["error_type"] == "Unauthorized"
    assert "correlation_id" in body


def test_rejects_invalid_token(client):
    response = client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_create_and_list(client, doctor):
    headers = auth_headers(doctor)

    created = create(client, headers, priority="high", actionRequired=True)
    assert created.status_code == 201
    assert created.json()["actionRequired"] is True

    create(client, headers, title="Rappel", category="appointments", priority="low")

    response = client.get(BASE, params={"priority": "high,urgent"}, headers=headers)
    assert response.status_code == 200
    page = response.json()
    assert [n["title"] for n in page["data"]] == ["Résultat disponible"]
    assert page["pagination"] == {"page": 1, "limit": 20, "totalItems": 1, "totalPages": 1}


def test_create_validation_error_is_400_with_details(client, doctor):
    response = create(client, auth_headers(doctor), title="  ")

    assert response.status_code == 400
    body = response.json()
    assert body["error_type"] == "ValidationError"
    assert body["details"][0]["field"] == "title"


def test_list_limit_above_maximum_is_400(client, doctor):
    response = client.get(BASE, params={"limit": 500}, headers=auth_headers(doctor))

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "limit"


def test_skipped_notification_returns_200(client, doctor):
    headers = auth_headers(doctor)
    client.put(f"{BASE}/preferences", json={"category": "lab_results", "enabled": False}, headers=headers)

    response = create(client, headers)

    assert response.status_code == 200
    assert response.json()["skipped"] is True
    assert set(response.json()) == {"skipped", "reason"}


def test_created_record_matches_later_reads(client, doctor):
    headers = auth_headers(doctor)

    created = create(client, headers, metadata={"dfg": 85}).json()
    fetched = client.get(f"{BASE}/{created['id']}", headers=headers).json()
    listed = client.get(BASE, headers=headers).json()["data"][0]

    assert fetched == created
    assert listed == created
    assert created["metadata"] == {"dfg": 85}
    assert created["createdAt"].endswith("Z")


def test_mark_read_flow(client, doctor, seed, container):
    headers = auth_headers(doctor)
    notification_id = create(client, headers).json()["id"]

    assert client.get(f"{BASE}/unread-count", headers=headers).json() == {"count": 1}

    first = client.post(f"{BASE}/{notification_id}/read", headers=headers)
    second = client.post(f"{BASE}/{notification_id}/read", headers=headers)
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert first.json()["read"] is True

    assert client.get(f"{BASE}/unread-count", headers=headers).json() == {"count": 0}


def test_mark_read_of_foreign_notification_is_404(client, doctor, seed, container):
    seed(PatientFactory.clinician, container.database, "doc-2")
    notification_id = create(client, auth_headers(doctor)).json()["id"]

    response = client.post(f"{BASE}/{notification_id}/read", headers=auth_headers("doc-2"))

    assert response.status_code == 404


def test_read_all_and_stats(client, doctor):
    headers = auth_headers(doctor)
    create(client, headers)
    create(client, headers, priority="urgent")

    assert client.post(f"{BASE}/read-all", headers=headers).json() == {"success": True, "updated": 2}

    stats = client.get(f"{BASE}/stats", headers=headers).json()
    assert stats["total"] == 2
    assert stats["unread"] == 0
    assert stats["byPriority"] == {"normal": 1, "urgent": 1}


def test_update_status(client, doctor):
    headers = auth_headers(doctor)
    notification_id = create(client, headers).json()["id"]

    response = client.patch(f"{BASE}/{notification_id}/status", json={"status": "dismissed"}, headers=headers)
    assert response.json()["status"] == "dismissed"

    invalid = client.patch(f"{BASE}/{notification_id}/status", json={"status": "archived"}, headers=headers)
    assert invalid.status_code == 400


def test_preferences_round_trip(client, doctor):
    headers = auth_headers(doctor)

    saved = client.put(
        f"{BASE}/preferences", json={"category": "patient_status", "minPriority": "high"}, headers=headers
    )
    assert saved.status_code == 200
    assert saved.json()["minPriority"] == "high"

    listed = client.get(f"{BASE}/preferences", headers=headers).json()
    assert [p["category"] for p in listed] == ["patient_status"]
