"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...models.domain import Location, Movement


@dataclass(slots=True)
class Stop:
    order_ref: str
    destination: Location
    client_name: str = ""
    movement: Movement = Movement.SERVICE
    value: float = 0.0
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    service_minutes: Optional[float] = None

    @property
    def is_entry_or_exit(self) -> bool:
        return self.movement is not Movement.SERVICE


@dataclass(slots=True)
class RouteLeg:
    from_ref: str
    to_ref: str
    distance_km: Optional[float]
    duration_min: Optional[float]
    available: bool = True


@dataclass(slots=True)
class OptimizedStop:
    stop: Stop
    order_in_route: int
    predicted_arrival_time: datetime
    must_depart_previous_stop_by: datetime
    travel_minutes_so_far: float
    leg: RouteLeg
    service_start: datetime
    service_end: datetime
    estimated: bool = False
    late: bool = False

    @property
    def stop_ref(self) -> str:
        return self.stop.order_ref


@dataclass(slots=True)
class OptimizedRoute:
    base_departure_time: datetime
    stops: List[OptimizedStop]
    legs: List[RouteLeg]
    total_distance_km: float
    total_duration_min: float
    total_cost: float
    total_revenue: float
    profit: float
    cost_per_km: float
    unavailable_legs: int = 0
    skipped: List[str] = field(default_factory=list)
