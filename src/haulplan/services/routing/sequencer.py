"""Greedy stop sequencing with time windows, cost and profit.

The sequencer is a heuristic: from the current position it drives to the
stop whose service can begin soonest while its window is still open, serves
it, and repeats. Distances and durations come from a directions provider; a
hop the provider cannot answer is estimated from straight-line distance so
the rest of the plan is still timed.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol, Sequence, Union

from ...config import settings
from ...errors import ValidationError
from ...models.domain import Location
from ..geospatial import haversine_km
from .directions_client import Directions
from .models import OptimizedRoute, OptimizedStop, RouteLeg, Stop

logger = logging.getLogger(__name__)

BASE_REF = "base"


class DirectionsProvider(Protocol):
    def compute_route(self, origin: Location, destination: Location) -> Directions: ...


@dataclass(slots=True)
class _Hop:
    index: int
    stop: Stop
    leg: RouteLeg
    minutes: float

    @property
    def estimated(self) -> bool:
        return not self.leg.available

    def service_start(self, clock: datetime) -> datetime:
        arrival = clock + timedelta(minutes=self.minutes)
        if self.stop.window_start is None:
            return arrival
        return max(arrival, self.stop.window_start)


def _straight_line_minutes(origin: Location, destination: Location) -> float:
    distance = haversine_km(*origin.as_tuple(), *destination.as_tuple())
    return distance / settings.fallback_speed_kmh * 60.0


def measure_leg(
    directions: DirectionsProvider,
    origin: Location,
    destination: Location,
    from_ref: str,
    to_ref: str,
) -> tuple[RouteLeg, float]:
    """Ask the provider for one hop.

    Returns the leg and the minutes to use for timing, which fall back to a
    straight-line estimate when the leg is unavailable.
    """
    try:
        result = directions.compute_route(origin, destination)
    except Exception as exc:
        logger.warning(f"Leg {from_ref} -> {to_ref} unavailable, using straight-line estimate: {exc}")
        leg = RouteLeg(from_ref=from_ref, to_ref=to_ref, distance_km=None, duration_min=None, available=False)
        return leg, _straight_line_minutes(origin, destination)
    leg = RouteLeg(
        from_ref=from_ref,
        to_ref=to_ref,
        distance_km=result.distance_km,
        duration_min=result.duration_minutes,
    )
    return leg, result.duration_minutes


def _candidates(
    executor: ThreadPoolExecutor,
    directions: DirectionsProvider,
    origin: Location,
    origin_ref: str,
    remaining: Sequence[tuple[int, Stop]],
) -> list[_Hop]:
    futures = {
        executor.submit(measure_leg, directions, origin, stop.destination, origin_ref, stop.order_ref): (index, stop)
        for index, stop in remaining
    }
    hops: list[_Hop] = []
    for future in as_completed(futures):
        index, stop = futures[future]
        leg, minutes = future.result()
        hops.append(_Hop(index=index, stop=stop, leg=leg, minutes=minutes))
    return hops


def _choose(hops: Sequence[_Hop], clock: datetime) -> _Hop:
    """Feasible hop whose service can begin soonest.

    Ties on service start go to the shorter drive, then to the earlier stop
    in the input.
    """
    feasible = [
        hop
        for hop in hops
        if hop.stop.window_end is None or clock + timedelta(minutes=hop.minutes) <= hop.stop.window_end
    ]
    pool = feasible or list(hops)
    if not feasible:
        logger.info(f"No stop reachable inside its window at {clock.isoformat()}; taking the nearest")
    return min(pool, key=lambda hop: (hop.service_start(clock), hop.minutes, hop.index))


def optimize(
    start: Location,
    departure: datetime,
    stops: Sequence[Stop],
    cost_per_km: Union[float, Future[float]],
    directions: DirectionsProvider,
    *,
    return_to_base: bool = False,
    round_trip_factor: Optional[float] = None,
    max_workers: int = 8,
) -> OptimizedRoute:
    """Order ``stops`` for one truck leaving ``start`` at ``departure``.

    ``cost_per_km`` may be a future so the cost model can load while the
    first directions calls are in flight.
    """
    if not start.has_coordinates:
        raise ValidationError("Route start location has no coordinates")

    routable: list[tuple[int, Stop]] = []
    skipped: list[str] = []
    for stop in stops:
        if stop.destination.has_coordinates:
            routable.append((len(routable), stop))
        else:
            skipped.append(stop.order_ref)
    if skipped:
        logger.info(f"Skipping {len(skipped)} stops without coordinates: {skipped}")

    buffer = timedelta(minutes=settings.turnaround_buffer_minutes)
    margin = timedelta(minutes=settings.departure_safety_margin_minutes)
    clock = departure
    position, position_ref = start, BASE_REF
    travel_minutes = 0.0
    ordered: list[OptimizedStop] = []
    legs: list[RouteLeg] = []
    remaining = list(routable)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(routable)))) as executor:
        while remaining:
            hop = _choose(_candidates(executor, directions, position, position_ref, remaining), clock)
            remaining = [item for item in remaining if item[0] != hop.index]

            travel = timedelta(minutes=hop.minutes)
            arrival = clock + travel
            stop = hop.stop
            service_start = hop.service_start(clock)
            service_minutes = (
                stop.service_minutes if stop.service_minutes is not None else settings.default_service_minutes
            )
            service_end = service_start + timedelta(minutes=service_minutes)
            target = stop.window_start - margin if stop.window_start is not None else arrival
            travel_minutes += hop.minutes

            legs.append(hop.leg)
            ordered.append(
                OptimizedStop(
                    stop=stop,
                    order_in_route=len(ordered) + 1,
                    predicted_arrival_time=arrival,
                    must_depart_previous_stop_by=max(target - travel, clock),
                    travel_minutes_so_far=travel_minutes,
                    leg=hop.leg,
                    service_start=service_start,
                    service_end=service_end,
                    estimated=hop.estimated or (bool(ordered) and ordered[-1].estimated),
                    late=stop.window_start is not None and arrival > stop.window_start,
                )
            )
            clock = service_end + buffer
            position, position_ref = stop.destination, stop.order_ref

    if return_to_base and ordered:
        leg, _ = measure_leg(directions, position, start, position_ref, BASE_REF)
        legs.append(leg)

    if isinstance(cost_per_km, Future):
        cost_per_km = cost_per_km.result()
    factor = 1.0 if return_to_base else (
        settings.round_trip_factor if round_trip_factor is None else round_trip_factor
    )
    available = [leg for leg in legs if leg.available]
    total_distance = sum(leg.distance_km for leg in available)
    total_duration = sum(leg.duration_min for leg in available)
    total_cost = round(total_distance * factor * cost_per_km, 2)
    total_revenue = sum(item.stop.value for item in ordered)

    route = OptimizedRoute(
        base_departure_time=departure,
        stops=ordered,
        legs=legs,
        total_distance_km=total_distance,
        total_duration_min=total_duration,
        total_cost=total_cost,
        total_revenue=total_revenue,
        profit=total_revenue - total_cost,
        cost_per_km=cost_per_km,
        unavailable_legs=len(legs) - len(available),
        skipped=skipped,
    )
    logger.info(
        f"Sequenced {len(ordered)} stops: {total_distance:.1f} km, {total_duration:.0f} min, "
        f"cost {total_cost:.2f}, profit {route.profit:.2f} ({route.unavailable_legs} legs estimated)"
    )
    return route
