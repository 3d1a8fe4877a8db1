"""Routing request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import Movement
from ..services.routing.models import OptimizedRoute, OptimizedStop, RouteLeg, Stop
from ..services.timezones import localize
from .orders import LocationModel


class StopModel(BaseModel):
    order_ref: str
    destination: LocationModel
    client_name: str = ""
    movement: Movement = Movement.SERVICE
    value: float = Field(default=0.0, ge=0)
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    service_minutes: Optional[float] = Field(default=None, ge=0)

    @field_validator("window_start", "window_end")
    @classmethod
    def _localize_window(cls, value: Optional[datetime]) -> Optional[datetime]:
        return localize(value)

    def to_domain(self) -> Stop:
        return Stop(
            order_ref=self.order_ref,
            destination=self.destination.to_domain(),
            client_name=self.client_name,
            movement=self.movement,
            value=self.value,
            window_start=self.window_start,
            window_end=self.window_end,
            service_minutes=self.service_minutes,
        )


class RouteOptimizeRequest(BaseModel):
    account_id: str
    day: date
    departure_time: Optional[str] = Field(default=None, description="HH:MM; defaults to the configured departure time.")
    base_id: Optional[str] = None
    truck_id: Optional[str] = None
    assigned_to: Optional[str] = None
    start: Optional[LocationModel] = Field(default=None, description="Overrides the base as the starting point.")
    stops: Optional[List[StopModel]] = Field(
        default=None,
        description="Explicit stops. When omitted, stops are built from the account's orders for the day.",
    )
    return_to_base: bool = False


class RouteLegModel(BaseModel):
    from_ref: str
    to_ref: str
    distance_km: Optional[float]
    duration_min: Optional[float]
    available: bool

    @classmethod
    def from_domain(cls, leg: RouteLeg) -> "RouteLegModel":
        return cls(
            from_ref=leg.from_ref,
            to_ref=leg.to_ref,
            distance_km=leg.distance_km,
            duration_min=leg.duration_min,
            available=leg.available,
        )


class OptimizedStopModel(BaseModel):
    stop_ref: str
    order_in_route: int
    client_name: str
    address: str
    movement: Movement
    value: float
    predicted_arrival_time: datetime
    must_depart_previous_stop_by: datetime
    travel_minutes_so_far: float
    service_start: datetime
    service_end: datetime
    estimated: bool
    late: bool
    leg: RouteLegModel

    @classmethod
    def from_domain(cls, item: OptimizedStop) -> "OptimizedStopModel":
        return cls(
            stop_ref=item.stop_ref,
            order_in_route=item.order_in_route,
            client_name=item.stop.client_name,
            address=item.stop.destination.address,
            movement=item.stop.movement,
            value=item.stop.value,
            predicted_arrival_time=item.predicted_arrival_time,
            must_depart_previous_stop_by=item.must_depart_previous_stop_by,
            travel_minutes_so_far=round(item.travel_minutes_so_far, 1),
            service_start=item.service_start,
            service_end=item.service_end,
            estimated=item.estimated,
            late=item.late,
            leg=RouteLegModel.from_domain(item.leg),
        )


class OptimizedRouteModel(BaseModel):
    base_departure_time: datetime
    stops: List[OptimizedStopModel]
    legs: List[RouteLegModel]
    total_distance_km: float
    total_duration_min: float
    total_cost: float
    total_revenue: float
    profit: float
    cost_per_km: float
    unavailable_legs: int
    skipped: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, route: OptimizedRoute) -> "OptimizedRouteModel":
        return cls(
            base_departure_time=route.base_departure_time,
            stops=[OptimizedStopModel.from_domain(item) for item in route.stops],
            legs=[RouteLegModel.from_domain(leg) for leg in route.legs],
            total_distance_km=route.total_distance_km,
            total_duration_min=route.total_duration_min,
            total_cost=route.total_cost,
            total_revenue=route.total_revenue,
            profit=route.profit,
            cost_per_km=route.cost_per_km,
            unavailable_legs=route.unavailable_legs,
            skipped=list(route.skipped),
        )


class ConfirmPlanRequest(BaseModel):
    account_id: str
    plan: OptimizedRouteModel
    confirmed_by: Optional[str] = None


class ConfirmPlanResponse(BaseModel):
    plan_id: str
    path: str


class AdvisoryRequest(BaseModel):
    addresses: List[str] = Field(..., min_length=1)
    departure: datetime
    total_duration_min: float = Field(default=0.0, ge=0)

    @field_validator("departure")
    @classmethod
    def _localize_departure(cls, value: datetime) -> datetime:
        return localize(value)


class AdvisoryResponse(BaseModel):
    advisory: str


class WeatherRequest(BaseModel):
    location: LocationModel
    when: datetime

    @field_validator("when")
    @classmethod
    def _localize_when(cls, value: datetime) -> datetime:
        return localize(value)


class WeatherResponse(BaseModel):
    available: bool
    condition: Optional[str] = None
    temperature_c: Optional[int] = None
