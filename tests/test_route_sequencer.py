from concurrent.futures import Future
from datetime import datetime, timedelta

import pytest

from conftest import SP, FakeDirections
from haulplan.config import settings
from haulplan.errors import ValidationError
from haulplan.models.domain import Location, Movement
from haulplan.services.geospatial import haversine_km
from haulplan.services.routing.models import Stop
from haulplan.services.routing.sequencer import BASE_REF, optimize

START = Location(address="base", latitude=-23.55, longitude=-46.63)
NEAR = Location(address="near", latitude=-23.56, longitude=-46.63)
MID = Location(address="mid", latitude=-23.58, longitude=-46.63)
FAR = Location(address="far", latitude=-23.61, longitude=-46.63)
DEPARTURE = datetime(2024, 8, 16, 8, 0, tzinfo=SP)


def _stop(ref, location, value=100.0, **extra):
    return Stop(order_ref=ref, destination=location, client_name=f"Cliente {ref}", value=value, **extra)


def _km(a, b):
    return haversine_km(*a.as_tuple(), *b.as_tuple())


def test_visits_nearest_stop_first():
    stops = [_stop("far", FAR), _stop("near", NEAR), _stop("mid", MID)]

    route = optimize(START, DEPARTURE, stops, 2.0, FakeDirections())

    assert [item.stop_ref for item in route.stops] == ["near", "mid", "far"]
    assert [item.order_in_route for item in route.stops] == [1, 2, 3]
    assert route.legs[0].from_ref == BASE_REF
    assert [leg.to_ref for leg in route.legs] == ["near", "mid", "far"]


def test_aggregates_are_consistent():
    stops = [_stop("far", FAR, 300.0), _stop("near", NEAR, 150.0), _stop("mid", MID, 50.0)]

    route = optimize(START, DEPARTURE, stops, 2.5, FakeDirections())

    expected_km = _km(START, NEAR) + _km(NEAR, MID) + _km(MID, FAR)
    assert route.total_distance_km == pytest.approx(expected_km)
    assert route.total_duration_min == pytest.approx(sum(leg.duration_min for leg in route.legs))
    assert route.total_cost == round(route.total_distance_km * settings.round_trip_factor * 2.5, 2)
    assert route.total_revenue == 500.0
    assert route.profit == route.total_revenue - route.total_cost
    assert route.unavailable_legs == 0
    assert route.base_departure_time == DEPARTURE


def test_clock_propagates_through_service_and_buffer():
    stops = [_stop("near", NEAR, service_minutes=20), _stop("mid", MID)]

    route = optimize(START, DEPARTURE, stops, 1.0, FakeDirections())

    first, second = route.stops
    first_travel = first.leg.duration_min
    second_travel = second.leg.duration_min
    assert first_travel == pytest.approx(_km(START, NEAR) / 30.0 * 60.0)
    assert first.predicted_arrival_time == DEPARTURE + timedelta(minutes=first_travel)
    assert first.service_end == first.service_start + timedelta(minutes=20)
    assert second.predicted_arrival_time == (
        first.service_end
        + timedelta(minutes=settings.turnaround_buffer_minutes)
        + timedelta(minutes=second_travel)
    )
    assert second.service_end == second.service_start + timedelta(minutes=settings.default_service_minutes)
    assert second.travel_minutes_so_far == pytest.approx(first_travel + second_travel)
    assert second.must_depart_previous_stop_by == second.predicted_arrival_time - timedelta(minutes=second_travel)


def test_waits_for_window_start_and_departs_with_margin():
    opens = DEPARTURE + timedelta(hours=2)
    route = optimize(START, DEPARTURE, [_stop("near", NEAR, window_start=opens)], 1.0, FakeDirections())

    item = route.stops[0]
    travel = timedelta(minutes=item.leg.duration_min)
    assert item.predicted_arrival_time < opens
    assert item.service_start == opens
    assert item.must_depart_previous_stop_by == opens - timedelta(minutes=settings.departure_safety_margin_minutes) - travel


def test_closed_window_is_served_after_reachable_stops():
    closed = _stop("near", NEAR, window_end=DEPARTURE - timedelta(minutes=1))
    open_far = _stop("far", FAR, window_end=DEPARTURE + timedelta(hours=1))

    route = optimize(START, DEPARTURE, [closed, open_far], 1.0, FakeDirections())

    assert [item.stop_ref for item in route.stops] == ["far", "near"]


def test_ties_keep_input_order():
    twin = Location(address="twin", latitude=NEAR.latitude, longitude=NEAR.longitude)
    stops = [_stop("b", twin), _stop("a", NEAR)]

    route = optimize(START, DEPARTURE, stops, 1.0, FakeDirections())

    assert [item.stop_ref for item in route.stops] == ["b", "a"]


def test_failed_hop_is_estimated_not_fatal():
    stops = [_stop("near", NEAR), _stop("mid", MID), _stop("far", FAR)]

    route = optimize(START, DEPARTURE, stops, 2.0, FakeDirections(fail_to={"mid"}))

    assert [item.stop_ref for item in route.stops] == ["near", "mid", "far"]
    missing = route.stops[1].leg
    assert missing.available is False
    assert missing.distance_km is None and missing.duration_min is None
    assert route.unavailable_legs == 1
    assert [item.estimated for item in route.stops] == [False, True, True]

    estimated_minutes = _km(NEAR, MID) / settings.fallback_speed_kmh * 60.0
    near, mid, _ = route.stops
    assert mid.predicted_arrival_time == (
        near.service_end
        + timedelta(minutes=settings.turnaround_buffer_minutes)
        + timedelta(minutes=estimated_minutes)
    )

    available_km = _km(START, NEAR) + _km(MID, FAR)
    assert route.total_distance_km == pytest.approx(available_km)
    assert route.total_duration_min == pytest.approx(
        sum(leg.duration_min for leg in route.legs if leg.available)
    )
    assert route.profit == route.total_revenue - route.total_cost


def test_stops_without_coordinates_are_skipped():
    unlocated = _stop("lost", Location(address="Rua sem número"))

    route = optimize(START, DEPARTURE, [unlocated, _stop("near", NEAR)], 1.0, FakeDirections())

    assert route.skipped == ["lost"]
    assert [item.stop_ref for item in route.stops] == ["near"]
    assert route.total_revenue == 100.0


def test_return_leg_replaces_round_trip_factor():
    directions = FakeDirections()

    route = optimize(START, DEPARTURE, [_stop("near", NEAR)], 3.0, directions, return_to_base=True)

    assert route.legs[-1].from_ref == "near"
    assert route.legs[-1].to_ref == BASE_REF
    assert route.total_distance_km == pytest.approx(2 * _km(START, NEAR))
    assert route.total_cost == round(route.total_distance_km * 3.0, 2)


def test_cost_may_arrive_as_future():
    future = Future()
    future.set_result(4.0)

    route = optimize(START, DEPARTURE, [_stop("near", NEAR, movement=Movement.DELIVERY)], future, FakeDirections())

    assert route.cost_per_km == 4.0
    assert route.stops[0].stop.is_entry_or_exit


def test_empty_route_and_unlocated_start():
    route = optimize(START, DEPARTURE, [], 1.0, FakeDirections())

    assert route.stops == [] and route.legs == []
    assert route.total_cost == 0 and route.profit == 0

    with pytest.raises(ValidationError):
        optimize(Location(address="?"), DEPARTURE, [_stop("near", NEAR)], 1.0, FakeDirections())


def test_early_window_beats_nearer_later_window():
    departure = datetime(2024, 8, 16, 7, 30, tzinfo=SP)
    delivery = _stop("delivery", FAR, movement=Movement.DELIVERY, window_start=datetime(2024, 8, 16, 8, 0, tzinfo=SP))
    pickup = _stop("pickup", NEAR, movement=Movement.PICKUP, window_start=datetime(2024, 8, 16, 17, 0, tzinfo=SP))

    route = optimize(START, departure, [delivery, pickup], 1.0, FakeDirections())

    assert [item.stop_ref for item in route.stops] == ["delivery", "pickup"]
    assert [item.late for item in route.stops] == [False, False]
    first, second = route.stops
    assert first.service_start == datetime(2024, 8, 16, 8, 0, tzinfo=SP)
    assert first.must_depart_previous_stop_by >= departure
    previous_departure = first.service_end + timedelta(minutes=settings.turnaround_buffer_minutes)
    assert second.must_depart_previous_stop_by >= previous_departure


def test_unreachable_window_start_is_flagged_late():
    opens = DEPARTURE + timedelta(minutes=1)

    route = optimize(START, DEPARTURE, [_stop("far", FAR, window_start=opens)], 1.0, FakeDirections())

    item = route.stops[0]
    assert item.late is True
    assert item.predicted_arrival_time > opens
    assert item.service_start == item.predicted_arrival_time
    assert item.must_depart_previous_stop_by == DEPARTURE
