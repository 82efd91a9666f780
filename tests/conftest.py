"""
Shared fixtures: every test gets a fresh in-memory store and app
"""
import pytest
from fastapi.testclient import TestClient

from server import create_app
from storage import InMemoryKeyValueStore
from auth import StaticCredentialVerifier

ADMIN_EMAIL = "admin@loadup.de"
ADMIN_PASSWORD = "LoadUp2026!"


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def client(store):
    app = create_app(store=store, verifier=StaticCredentialVerifier(ADMIN_EMAIL, ADMIN_PASSWORD))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    """Log in and return bearer headers"""
    response = client.post("/api/admin/login", json={
        "email": ADMIN_EMAIL,
        "password": ADMIN_PASSWORD
    })
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _fill_umzug(client, session_id, email="max@example.de"):
    """Drive an Umzug session up to the contact step and fill the contact form"""
    base = f"/api/questionnaire/sessions/{session_id}"
    client.post(f"{base}/service", json={"serviceType": "umzug"})
    client.post(f"{base}/subcategory", json={"value": "privat"})
    client.patch(f"{base}/form", json={"pickupAddress": "Musterstraße 12", "pickupZip": "10115"})
    client.post(f"{base}/next")
    client.patch(f"{base}/form", json={"destinationAddress": "Hauptstraße 5", "destinationZip": "10245"})
    client.post(f"{base}/next")
    client.patch(f"{base}/form", json={"livingSpace": "50-80 m²", "rooms": "2"})
    client.post(f"{base}/next")
    client.patch(f"{base}/form", json={"needsPacking": True})
    client.post(f"{base}/next")
    client.patch(f"{base}/form", json={"dateType": "flexible"})
    client.post(f"{base}/next")
    client.post(f"{base}/images", files=[("files", ("wohnzimmer.jpg", b"\xff\xd8jpeg", "image/jpeg"))])
    client.post(f"{base}/next")
    return client.patch(f"{base}/form", json={
        "firstName": "Max",
        "lastName": "Mustermann",
        "email": email,
        "phone": "030 1234567"
    })


@pytest.fixture
def fill_umzug():
    return _fill_umzug
