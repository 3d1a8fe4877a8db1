from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import ACCOUNT, FakeDirections
from haulplan.api import deps
from haulplan.main import create_app
from haulplan.models.domain import Location
from haulplan.persistence.filesystem import FileStorage
from haulplan.services.geo import Forecast

CLIENT_LOCATION = {"address": "Rua das Flores, 100", "lat": -23.56, "lng": -46.65}


def _rental_payload(**overrides):
    order = {
        "kind": "rental",
        "client_id": "client-1",
        "value": 450.0,
        "truck_id": "truck-1",
        "base_id": "base-1",
        "assigned_to": "driver-1",
        "delivery_location": CLIENT_LOCATION,
        "rental_date": "2024-08-15T09:00:00-03:00",
        "return_date": "2024-08-18T09:00:00-03:00",
        "dumpster_ids": ["dump-1"],
    }
    order.update(overrides)
    return {"order": order, "created_by": "user-1"}


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, notification):
        self.sent.append(notification)


class QuietCalendar:
    def sync_order(self, account_id, order):
        return None


class StaticGeocoder:
    def geocode(self, address):
        if address == "Base Centro":
            return Location(address=address, latitude=-23.5505, longitude=-46.6333)
        return None


class StaticWeather:
    def forecast_at(self, location, when):
        return Forecast(condition="Ensolarado", temperature_c=26, condition_type="CLEAR")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def api_client(seeded_store, notifier, tmp_path: Path) -> TestClient:
    app = create_app()
    directions = FakeDirections()
    app.dependency_overrides[deps.get_store] = lambda: seeded_store
    app.dependency_overrides[deps.get_directions] = lambda: directions
    app.dependency_overrides[deps.get_optional_directions] = lambda: directions
    app.dependency_overrides[deps.get_notifier] = lambda: notifier
    app.dependency_overrides[deps.get_calendar] = lambda: QuietCalendar()
    app.dependency_overrides[deps.get_geocoder] = lambda: StaticGeocoder()
    app.dependency_overrides[deps.get_weather] = lambda: StaticWeather()
    app.dependency_overrides[deps.get_file_storage] = lambda: FileStorage(root=tmp_path)
    return TestClient(app)


def test_health_endpoints(api_client: TestClient):
    assert api_client.get("/api/health").json() == {"status": "ok"}
    database = api_client.get("/api/health/database").json()
    assert database["backend"] == "memory"
    assert api_client.get("/").json()["status"] == "running"


def test_create_and_read_rental(api_client: TestClient, notifier: RecordingNotifier):
    response = api_client.post(f"/api/orders/{ACCOUNT}", json=_rental_payload())

    assert response.status_code == 201
    body = response.json()
    order = body["order"]
    assert order["kind"] == "rental"
    assert order["sequential_id"] == 1
    assert order["status"] == "Pendente"
    assert order["travel_cost"] > 0
    assert body["side_effect_errors"] == []
    assert [n.title for n in notifier.sent] == ["Nova OS #1 Designada"]

    fetched = api_client.get(f"/api/orders/{ACCOUNT}/rental/{order['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["document"]["createdBy"] == "user-1"


def test_order_errors_map_to_status_codes(api_client: TestClient):
    missing_client = api_client.post(f"/api/orders/{ACCOUNT}", json=_rental_payload(client_id="ghost"))
    backwards = api_client.post(f"/api/orders/{ACCOUNT}", json=_rental_payload(return_date="2024-08-01T09:00:00-03:00"))
    negative = api_client.post(f"/api/orders/{ACCOUNT}", json=_rental_payload(value=-5))
    unknown = api_client.get(f"/api/orders/{ACCOUNT}/operation/nope")

    assert missing_client.status_code == 404
    assert backwards.status_code == 400
    assert negative.status_code == 422
    assert unknown.status_code == 404


def test_travel_cost_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/orders/travel-cost",
        json={"account_id": ACCOUNT, "destination": CLIENT_LOCATION, "truck_id": "truck-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["cost_per_km"] == 5.0
    assert body["travel_cost"] > 0


def test_travel_cost_needs_configured_directions(api_client: TestClient):
    del api_client.app.dependency_overrides[deps.get_directions]
    api_client.app.dependency_overrides[deps.get_optional_directions] = lambda: None

    response = api_client.post(
        "/api/orders/travel-cost",
        json={"account_id": ACCOUNT, "destination": CLIENT_LOCATION, "base_id": "base-1"},
    )

    assert response.status_code == 503


def test_recurrence_lifecycle(api_client: TestClient):
    payload = _rental_payload()
    payload["recurrence"] = {"frequency": "weekly", "days_of_week": [5], "time": "09:00"}
    created = api_client.post(f"/api/orders/{ACCOUNT}", json=payload).json()
    profile_id = created["recurrence_profile_id"]
    assert profile_id

    tick = api_client.post(f"/api/recurrence/{ACCOUNT}/tick", json={"now": "2099-01-01T00:00:00Z"})
    assert tick.status_code == 200
    assert len(tick.json()["generated_order_ids"]) == 1
    assert tick.json()["failed"] == {}

    profiles = api_client.get(f"/api/recurrence/{ACCOUNT}").json()
    assert [profile["id"] for profile in profiles] == [profile_id]
    assert profiles[0]["status"] == "active"

    for _ in range(2):
        cancelled = api_client.post(f"/api/recurrence/{ACCOUNT}/{profile_id}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

    assert api_client.get(f"/api/recurrence/{ACCOUNT}", params={"status": "active"}).json() == []
    assert api_client.post(f"/api/recurrence/{ACCOUNT}/missing/cancel").status_code == 404


def test_optimize_and_confirm_plan(api_client: TestClient, tmp_path: Path):
    api_client.post(f"/api/orders/{ACCOUNT}", json=_rental_payload())
    response = api_client.post(
        "/api/routes/optimize",
        json={
            "account_id": ACCOUNT,
            "day": "2024-08-15",
            "truck_id": "truck-1",
            "stops": [
                {"order_ref": "far", "destination": {"address": "far", "lat": -23.61, "lng": -46.63}, "value": 200},
                {"order_ref": "near", "destination": {"address": "near", "lat": -23.56, "lng": -46.64}, "value": 100},
            ],
        },
    )

    assert response.status_code == 200
    route = response.json()
    assert [stop["stop_ref"] for stop in route["stops"]] == ["near", "far"]
    assert route["cost_per_km"] == 5.0
    assert route["total_revenue"] == 300.0
    assert route["unavailable_legs"] == 0

    from_orders = api_client.post(
        "/api/routes/optimize", json={"account_id": ACCOUNT, "day": "2024-08-15", "truck_id": "truck-1"}
    ).json()
    assert [stop["movement"] for stop in from_orders["stops"]] == ["delivery"]

    confirmed = api_client.post("/api/routes/plans", json={"account_id": ACCOUNT, "plan": route, "confirmed_by": "disp"})
    assert confirmed.status_code == 201
    plan_path = confirmed.json()["path"]
    assert plan_path.startswith("route_plans/")
    assert (tmp_path / plan_path).exists()


def test_optimize_without_start_is_bad_request(api_client: TestClient):
    response = api_client.post("/api/routes/optimize", json={"account_id": ACCOUNT, "day": "2024-08-15", "stops": []})

    assert response.status_code == 400


def test_advisory_and_weather(api_client: TestClient):
    advisory = api_client.post(
        "/api/routes/advisory",
        json={"addresses": ["Base Centro"], "departure": "2024-08-17T10:00:00-03:00", "total_duration_min": 90},
    ).json()["advisory"]
    assert advisory.startswith("Verdict: Smooth")
    assert "1h 30min" in advisory

    unavailable = api_client.post(
        "/api/routes/advisory",
        json={"addresses": ["Lugar nenhum"], "departure": "2024-08-17T10:00:00-03:00"},
    ).json()["advisory"]
    assert unavailable == "Traffic advisory unavailable."

    weather = api_client.post(
        "/api/routes/weather",
        json={"location": {"address": "Base Centro"}, "when": "2024-08-17T10:00:00-03:00"},
    ).json()
    assert weather == {"available": True, "condition": "Ensolarado", "temperature_c": 26}

    missing = api_client.post(
        "/api/routes/weather",
        json={"location": {"address": "Lugar nenhum"}, "when": "2024-08-17T10:00:00-03:00"},
    ).json()
    assert missing["available"] is False


def test_naive_order_dates_are_business_wall_clock(api_client: TestClient):
    payload = _rental_payload(rental_date="2024-08-15T09:00:00", return_date="2024-08-18T09:00:00")

    response = api_client.post(f"/api/orders/{ACCOUNT}", json=payload)

    assert response.status_code == 201
    order_id = response.json()["order"]["id"]
    document = api_client.get(f"/api/orders/{ACCOUNT}/rental/{order_id}").json()["document"]
    assert document["rentalDate"] == "2024-08-15T09:00:00-03:00"
    assert document["returnDate"] == "2024-08-18T09:00:00-03:00"


def test_naive_recurrence_end_date_with_aware_order_dates(api_client: TestClient):
    payload = _rental_payload()
    payload["recurrence"] = {
        "frequency": "weekly",
        "days_of_week": [5],
        "time": "09:00",
        "end_date": "2024-12-31T00:00:00",
    }

    response = api_client.post(f"/api/orders/{ACCOUNT}", json=payload)

    assert response.status_code == 201
    assert response.json()["recurrence_profile_id"]


def test_tick_accepts_naive_now(api_client: TestClient):
    payload = _rental_payload()
    payload["recurrence"] = {"frequency": "weekly", "days_of_week": [5], "time": "09:00"}
    assert api_client.post(f"/api/orders/{ACCOUNT}", json=payload).status_code == 201

    tick = api_client.post(f"/api/recurrence/{ACCOUNT}/tick", json={"now": "2099-01-01T00:00:00"})

    assert tick.status_code == 200
    assert len(tick.json()["generated_order_ids"]) == 1
    assert tick.json()["failed"] == {}


def test_optimize_with_naive_windows_serves_earliest_window_first(api_client: TestClient):
    response = api_client.post(
        "/api/routes/optimize",
        json={
            "account_id": ACCOUNT,
            "day": "2024-08-15",
            "departure_time": "07:30",
            "truck_id": "truck-1",
            "base_id": "base-1",
            "stops": [
                {
                    "order_ref": "delivery",
                    "movement": "delivery",
                    "destination": {"address": "far", "lat": -23.61, "lng": -46.63},
                    "window_start": "2024-08-15T08:00:00",
                },
                {
                    "order_ref": "pickup",
                    "movement": "pickup",
                    "destination": {"address": "near", "lat": -23.56, "lng": -46.64},
                    "window_start": "2024-08-15T17:00:00",
                },
            ],
        },
    )

    assert response.status_code == 200
    stops = response.json()["stops"]
    assert [stop["stop_ref"] for stop in stops] == ["delivery", "pickup"]
    assert [stop["late"] for stop in stops] == [False, False]
    assert stops[0]["service_start"] == "2024-08-15T08:00:00-03:00"

    advisory = api_client.post(
        "/api/routes/advisory",
        json={"addresses": ["Base Centro"], "departure": "2024-08-17T10:00:00", "total_duration_min": 90},
    )
    assert advisory.status_code == 200
