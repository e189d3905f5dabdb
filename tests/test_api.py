"""Tests for the Tally status-check endpoint."""

import pytest
from fastapi.testclient import TestClient

from parcel_tracker import api
from parcel_tracker.api import app
from parcel_tracker.errors import ConfigurationError
from parcel_tracker.schemas import ParcelCreate


@pytest.fixture
def client(store, monkeypatch):
    store.add_parcel(
        ParcelCreate(lr_number="LR77", party_name="Gupta", transport="VRL", state="DELHI", weight=12, rate=10),
        "u1",
    )
    monkeypatch.setattr(api, "get_store", lambda: store)
    return TestClient(app)


def test_missing_lr_is_rejected(client):
    response = client.get("/api/tally/check-lr")
    assert response.status_code == 400
    assert response.json() == {"error": "LR Number is required"}

    assert client.get("/api/tally/check-lr", params={"lr": "  "}).status_code == 400


def test_found_as_json(client):
    response = client.get("/api/tally/check-lr", params={"lr": " LR77 "})
    assert response.status_code == 200
    body = response.json()
    assert body["found"] is True
    assert body["message"] == "Received"
    assert body["details"]["totalAmount"] == 120.0
    assert body["details"]["transport"] == "VRL"


def test_found_as_text(client):
    response = client.get("/api/tally/check-lr", params={"lr": "LR77", "format": "text"})
    assert response.status_code == 200
    assert response.text == "RECEIVED|VRL|12kg|120"
    assert response.headers["content-type"].startswith("text/plain")


def test_not_found(client):
    assert client.get("/api/tally/check-lr", params={"lr": "NOPE"}).json() == {
        "found": False,
        "status": "not_received",
        "message": "Not Received",
    }
    assert client.get("/api/tally/check-lr", params={"lr": "NOPE", "format": "text"}).text == "NOT_RECEIVED|||"


def test_backend_failure_is_500(client, store, monkeypatch):
    def broken(lr_number):
        raise RuntimeError("firestore exploded")

    monkeypatch.setattr(store, "find_parcel_by_lr", broken)
    response = client.get("/api/tally/check-lr", params={"lr": "LR77"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


def test_cors_is_open(client):
    response = client.get(
        "/api/tally/check-lr", params={"lr": "LR77"}, headers={"Origin": "http://tally.local"}
    )
    assert response.headers["access-control-allow-origin"] in ("*", "http://tally.local")


def test_firestore_setup_failure_is_json_500(monkeypatch):
    def no_credentials(config=None):
        raise ConfigurationError("Could not load Firebase credentials")

    api.get_store.cache_clear()
    monkeypatch.setattr(api, "get_firestore_client", no_credentials)
    response = TestClient(app).get("/api/tally/check-lr", params={"lr": "LR1"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}
    api.get_store.cache_clear()
