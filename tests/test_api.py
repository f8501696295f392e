from __future__ import annotations

from collections.abc import Iterator
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from airportledger.api import app, get_runtime
from airportledger.clock import ManualClock
from airportledger.runtime import LedgerRuntime
from factories import NOW, make_flight, make_runtime

PASSENGER_HEADERS = {"X-Actor": "pat", "X-Role": "passenger"}
MANAGER_HEADERS = {"X-Actor": "fred", "X-Role": "flight_manager"}
VIEWER_HEADERS = {"X-Actor": "vic", "X-Role": "viewer"}

PASSENGER_BODY = {
    "first_name": "Pat",
    "last_name": "Traveller",
    "email": "pat@example.com",
    "phone": "+1-555-0100",
    "date_of_birth": "1990-01-01",
}


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(NOW)


@pytest.fixture
def runtime(clock: ManualClock) -> LedgerRuntime:
    return make_runtime(
        make_flight("AL100", departs_in=timedelta(minutes=29)),
        make_flight("AL200", capacity={"economy": 1}, fares={"economy": "150.00"}),
        clock=clock,
    )


@pytest.fixture
def client(runtime: LedgerRuntime) -> Iterator[TestClient]:
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield TestClient(app)
    app.dependency_overrides.clear()


def _book(client: TestClient, flight_number: str = "AL200", seat_class: str = "economy"):
    return client.post(
        "/api/bookings",
        json={"flight_number": flight_number, "seat_class": seat_class, "passenger": PASSENGER_BODY},
        headers=PASSENGER_HEADERS,
    )


def test_root_and_health(client: TestClient) -> None:
    assert client.get("/").json() == {"service": "airportledger-api", "status": "ok"}
    assert client.get("/health").json() == {"status": "ok"}


def test_flight_listing_and_quote(client: TestClient) -> None:
    flights = client.get("/api/flights", params={"origin": "LAX"}).json()
    assert [flight["flight_number"] for flight in flights] == ["AL100", "AL200"]

    quote = client.get("/api/flights/AL200/fares/economy").json()
    assert quote == {"flight_number": "AL200", "seat_class": "economy", "price": "150.00", "currency": "USD"}

    assert client.get("/api/flights/AL999").status_code == 404
    assert client.get("/api/flights/AL200/fares/first").status_code == 422


def test_booking_lifecycle_over_http(client: TestClient) -> None:
    created = _book(client)
    assert created.status_code == 201
    ticket = created.json()["ticket_number"]
    assert created.json()["price_paid"] == "150.00"

    sold_out = _book(client)
    assert sold_out.status_code == 409

    assert client.get(f"/api/bookings/{ticket}").json()["status"] == "confirmed"
    assert client.post(f"/api/bookings/{ticket}/advance", headers=PASSENGER_HEADERS).json()["status"] == "checked_in"
    assert client.post(f"/api/bookings/{ticket}/cancel", headers=PASSENGER_HEADERS).json()["status"] == "cancelled"
    assert client.post(f"/api/bookings/{ticket}/cancel", headers=PASSENGER_HEADERS).status_code == 410
    assert client.get("/api/bookings/RIA000000").status_code == 404
    assert len(client.get("/api/bookings", params={"email": "pat@example.com"}).json()) == 1


def test_roles_are_checked(client: TestClient) -> None:
    assert _book(client).status_code == 201
    delayed = client.post("/api/admin/flights/AL200/delay", json={"minutes": 30}, headers=PASSENGER_HEADERS)
    assert delayed.status_code == 403
    assert client.get("/api/metrics", headers=PASSENGER_HEADERS).status_code == 403
    assert client.get("/api/metrics", headers={"X-Role": "pilot"}).status_code == 422
    booking = client.post(
        "/api/bookings",
        json={"flight_number": "AL100", "seat_class": "economy", "passenger": PASSENGER_BODY},
        headers=VIEWER_HEADERS,
    )
    assert booking.status_code == 403


def test_admin_flight_operations(client: TestClient) -> None:
    delayed = client.post("/api/admin/flights/AL200/delay", json={"minutes": 30}, headers=MANAGER_HEADERS)
    assert delayed.status_code == 200
    assert delayed.json()["status"] == "delayed"
    assert client.post("/api/admin/flights/AL200/delay", json={"minutes": -5}, headers=MANAGER_HEADERS).status_code == 422

    gate = client.post("/api/admin/flights/AL200/gate", json={"gate": "c5"}, headers=MANAGER_HEADERS)
    assert gate.json()["gate"] == "C5"

    cancelled = client.post("/api/admin/flights/AL200/cancel", json={"reason": "crew"}, headers=MANAGER_HEADERS)
    assert cancelled.json()["status"] == "cancelled"
    assert client.post("/api/admin/flights/AL200/cancel", json={}, headers=MANAGER_HEADERS).status_code == 409
    assert client.delete("/api/admin/flights/AL200", headers=MANAGER_HEADERS).json() == {"status": "ok"}
    assert client.get("/api/flights/AL200").status_code == 404


def test_add_flight_over_http(client: TestClient) -> None:
    departure = NOW + timedelta(days=2)
    response = client.post(
        "/api/admin/flights",
        json={
            "flight_number": "AL900",
            "origin": "jfk",
            "destination": "lhr",
            "scheduled_departure": departure.isoformat(),
            "scheduled_arrival": (departure + timedelta(hours=7)).isoformat(),
            "seat_capacity": {"economy": 100, "business": 20},
            "base_fares": {"economy": "450.00", "business": "1500.00"},
        },
        headers=MANAGER_HEADERS,
    )

    assert response.status_code == 201
    assert response.json()["route_multiplier"] == "1"
    assert response.json()["origin"] == "JFK"
    assert response.json()["seats_remaining"] == {"economy": 100, "business": 20}


def test_pricing_endpoints(client: TestClient) -> None:
    finance = {"X-Actor": "fiona", "X-Role": "finance_manager"}
    multiplier = client.post("/api/admin/flights/AL200/pricing", json={"multiplier": "1.2"}, headers=finance)
    assert multiplier.status_code == 200
    assert client.get("/api/flights/AL200/fares/economy").json()["price"] == "180.00"

    rule = client.post(
        "/api/admin/pricing-rules",
        json={"name": "coast", "route_pattern": "LAX-*", "multiplier": "1.5"},
        headers=finance,
    )
    assert rule.status_code == 201
    rule_id = rule.json()["rule_id"]
    assert client.get("/api/flights/AL200/fares/economy").json()["price"] == "270.00"

    toggled = client.post(f"/api/admin/pricing-rules/{rule_id}/active", json={"active": False}, headers=finance)
    assert toggled.json()["active"] is False
    assert len(client.get("/api/admin/pricing-rules").json()) == 1


def test_aircraft_endpoints(client: TestClient) -> None:
    aircraft_manager = {"X-Actor": "arnold", "X-Role": "aircraft_manager"}

    assigned = client.put("/api/admin/flights/AL200/aircraft", json={"registration": "N456RIA"}, headers=aircraft_manager)
    assert assigned.json()["aircraft_id"] == "N456RIA"
    assert client.delete("/api/admin/flights/AL200/aircraft", headers=aircraft_manager).json()["aircraft_id"] is None
    assert client.get("/api/admin/aircraft").json()["N456RIA"] == "active"


def test_sweep_audit_and_metrics(client: TestClient) -> None:
    assert client.post("/api/lifecycle/sweep", headers=PASSENGER_HEADERS).status_code == 403

    report = client.post("/api/lifecycle/sweep", headers=MANAGER_HEADERS).json()
    assert report["transitions"] == [{"flight_number": "AL100", "from": "scheduled", "to": "boarding"}]
    assert report["failed"] == []

    audit = client.get("/api/audit", params={"target": "AL100"}, headers=VIEWER_HEADERS).json()
    assert [entry["action"] for entry in audit] == ["flight_status_changed"]
    assert audit[0]["actor"] == "system"

    metrics = client.get("/api/metrics", headers=VIEWER_HEADERS).json()
    assert metrics["flights_by_status"]["boarding"] == 1
    assert client.get("/api/lifecycle/status").json()["running"] is False


def test_save_without_store_is_unprocessable(client: TestClient) -> None:
    assert client.post("/api/admin/save", headers=MANAGER_HEADERS).status_code == 422
