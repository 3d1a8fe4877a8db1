from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from conftest import ACCOUNT, BASE_LOCATION, SP, make_operation, make_rental
from haulplan.data.orders_repository import create_order
from haulplan.errors import ValidationError
from haulplan.models.domain import Location, Movement, RentalStatus
from haulplan.persistence.filesystem import FileStorage
from haulplan.services.routing import service as routing_service
from haulplan.services.routing.models import Stop

DAY = date(2024, 8, 15)


def _seed_orders(store):
    rental = create_order(store, make_rental())
    operation = create_order(store, make_operation())
    create_order(store, make_rental(status=RentalStatus.FINISHED))
    create_order(store, make_rental(assigned_to="driver-2"))
    return rental, operation


def test_stops_for_day_builds_deliveries_pickups_and_services(seeded_store):
    rental, operation = _seed_orders(seeded_store)

    stops = routing_service.stops_for_day(seeded_store, ACCOUNT, DAY, assigned_to="driver-1")

    assert [stop.order_ref for stop in stops] == [f"rental:{rental.id}:delivery", f"operation:{operation.id}"]
    delivery, service = stops
    assert delivery.movement is Movement.DELIVERY
    assert delivery.value == 450.0
    assert delivery.client_name == "Construtora Alfa"
    assert delivery.window_start == datetime(2024, 8, 15, 8, 0, tzinfo=SP)
    assert service.movement is Movement.SERVICE
    assert service.window_end == operation.end_date

    pickups = routing_service.stops_for_day(seeded_store, ACCOUNT, DAY + timedelta(days=3), assigned_to="driver-1")
    assert [stop.order_ref for stop in pickups] == [f"rental:{rental.id}:pickup"]
    assert pickups[0].value == 0.0


def test_plan_route_starts_at_truck_base_and_prices_by_truck(seeded_store, directions):
    _seed_orders(seeded_store)
    request = routing_service.RoutePlanRequest(
        account_id=ACCOUNT, day=DAY, truck_id="truck-1", assigned_to="driver-1", departure_time="07:30"
    )

    route = routing_service.plan_route(seeded_store, request, directions)

    assert route.base_departure_time == datetime(2024, 8, 15, 7, 30, tzinfo=SP)
    assert route.cost_per_km == 5.0
    assert len(route.stops) == 2
    assert directions.calls[0][0] == BASE_LOCATION.address
    assert route.total_revenue == 450.0 + 800.0


def test_plan_route_with_explicit_stops_and_start(seeded_store, directions):
    start = Location(address="Pátio", latitude=-23.54, longitude=-46.62)
    stop = Stop(order_ref="manual-1", destination=BASE_LOCATION, value=120.0)
    request = routing_service.RoutePlanRequest(account_id=ACCOUNT, day=DAY, start=start, stops=[stop])

    route = routing_service.plan_route(seeded_store, request, directions)

    assert [item.stop_ref for item in route.stops] == ["manual-1"]
    assert route.base_departure_time == datetime(2024, 8, 15, 8, 0, tzinfo=SP)
    # No truck: nothing to price the kilometers with.
    assert route.cost_per_km == 0.0


def test_plan_route_without_start_or_base_is_rejected(seeded_store, directions):
    request = routing_service.RoutePlanRequest(account_id=ACCOUNT, day=DAY, stops=[])

    with pytest.raises(ValidationError):
        routing_service.plan_route(seeded_store, request, directions)


def test_confirm_plan_persists_document(tmp_path: Path):
    storage = FileStorage(root=tmp_path)

    plan_id, path = routing_service.confirm_plan(storage, ACCOUNT, {"stops": []}, confirmed_by="dispatcher-1")

    assert path.exists()
    stored = storage.load_route_plan(ACCOUNT, plan_id)
    assert stored["planId"] == plan_id
    assert stored["confirmedBy"] == "dispatcher-1"
    assert stored["plan"] == {"stops": []}
