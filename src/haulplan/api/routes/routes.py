"""Routing endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from ...persistence.documents import DocumentStore
from ...persistence.filesystem import FileStorage
from ...schemas.routing import (
    AdvisoryRequest,
    AdvisoryResponse,
    ConfirmPlanRequest,
    ConfirmPlanResponse,
    OptimizedRouteModel,
    RouteOptimizeRequest,
    WeatherRequest,
    WeatherResponse,
)
from ...services.annotator import RouteAnnotator
from ...services.geo import GeocodingClient, WeatherClient
from ...services.routing.directions_client import DirectionsClient
from ...services.routing.service import RoutePlanRequest, confirm_plan, plan_route
from ..deps import (
    get_directions,
    get_file_storage,
    get_geocoder,
    get_optional_directions,
    get_store,
    get_weather,
    http_error,
)

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/optimize", response_model=OptimizedRouteModel, status_code=status.HTTP_200_OK)
def optimize(
    payload: RouteOptimizeRequest,
    store: DocumentStore = Depends(get_store),
    directions: DirectionsClient = Depends(get_directions),
) -> OptimizedRouteModel:
    request = RoutePlanRequest(
        account_id=payload.account_id,
        day=payload.day,
        departure_time=payload.departure_time,
        base_id=payload.base_id,
        truck_id=payload.truck_id,
        assigned_to=payload.assigned_to,
        start=payload.start.to_domain() if payload.start else None,
        stops=[stop.to_domain() for stop in payload.stops] if payload.stops is not None else None,
        return_to_base=payload.return_to_base,
    )
    try:
        route = plan_route(store, request, directions)
    except Exception as exc:
        raise http_error(exc, "optimize route") from exc
    return OptimizedRouteModel.from_domain(route)


@router.post("/plans", response_model=ConfirmPlanResponse, status_code=status.HTTP_201_CREATED)
def confirm(payload: ConfirmPlanRequest, storage: FileStorage = Depends(get_file_storage)) -> ConfirmPlanResponse:
    """Persist a plan a dispatcher accepted."""
    try:
        plan_id, path = confirm_plan(
            storage,
            payload.account_id,
            payload.plan.model_dump(mode="json"),
            payload.confirmed_by,
        )
    except ValueError as exc:
        raise http_error(exc, "store route plan") from exc
    return ConfirmPlanResponse(plan_id=plan_id, path=str(path.relative_to(storage.root)))


@router.post("/advisory", response_model=AdvisoryResponse)
def advisory(
    payload: AdvisoryRequest,
    geocoder: GeocodingClient = Depends(get_geocoder),
    weather: WeatherClient = Depends(get_weather),
    directions: Optional[DirectionsClient] = Depends(get_optional_directions),
) -> AdvisoryResponse:
    annotator = RouteAnnotator(geocoder, weather, directions)
    return AdvisoryResponse(
        advisory=annotator.annotate_route(payload.addresses, payload.departure, payload.total_duration_min)
    )


@router.post("/weather", response_model=WeatherResponse)
def weather_forecast(
    payload: WeatherRequest,
    geocoder: GeocodingClient = Depends(get_geocoder),
    weather: WeatherClient = Depends(get_weather),
) -> WeatherResponse:
    forecast = RouteAnnotator(geocoder, weather).forecast(payload.location.to_domain(), payload.when)
    if forecast is None:
        return WeatherResponse(available=False)
    return WeatherResponse(available=True, condition=forecast.condition, temperature_c=forecast.temperature_c)
