"""Order endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from ...data.orders_repository import get_order
from ...models.domain import OrderKind
from ...persistence.documents import DocumentStore
from ...schemas.orders import (
    OrderCreateRequest,
    OrderCreateResponse,
    OrderModel,
    TravelCostRequest,
    TravelCostResponse,
)
from ...services.notifications import CalendarSync, NotificationSender
from ...services.orders import create_order, estimate_order_travel_cost
from ...services.routing.directions_client import DirectionsClient
from ..deps import (
    get_calendar,
    get_directions,
    get_notifier,
    get_optional_directions,
    get_store,
    http_error,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/travel-cost", response_model=TravelCostResponse, status_code=status.HTTP_200_OK)
def travel_cost(
    payload: TravelCostRequest,
    store: DocumentStore = Depends(get_store),
    directions: DirectionsClient = Depends(get_directions),
) -> TravelCostResponse:
    """Round-trip travel cost from the base to a destination."""
    try:
        estimate = estimate_order_travel_cost(
            store,
            payload.account_id,
            payload.base_id,
            payload.truck_id,
            payload.destination.to_domain(),
            directions,
        )
    except Exception as exc:
        raise http_error(exc, "estimate travel cost") from exc
    return TravelCostResponse(
        distance_km=round(estimate.distance_km, 2),
        cost_per_km=estimate.cost_per_km,
        travel_cost=estimate.travel_cost,
    )


@router.post("/{account_id}", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
def create(
    account_id: str,
    payload: OrderCreateRequest,
    store: DocumentStore = Depends(get_store),
    directions: Optional[DirectionsClient] = Depends(get_optional_directions),
    notifier: NotificationSender = Depends(get_notifier),
    calendar: CalendarSync = Depends(get_calendar),
) -> OrderCreateResponse:
    try:
        result = create_order(
            store,
            payload.order.to_domain(account_id, payload.created_by),
            payload.recurrence.to_domain() if payload.recurrence else None,
            directions=directions,
            notifier=notifier,
            calendar=calendar,
        )
    except Exception as exc:
        raise http_error(exc, "create order") from exc
    return OrderCreateResponse(
        order=OrderModel.from_domain(result.order),
        recurrence_profile_id=result.recurrence_profile_id,
        side_effect_errors=result.side_effect_errors,
    )


@router.get("/{account_id}/{kind}/{order_id}", response_model=OrderModel)
def read(account_id: str, kind: OrderKind, order_id: str, store: DocumentStore = Depends(get_store)) -> OrderModel:
    try:
        return OrderModel.from_domain(get_order(store, account_id, kind, order_id))
    except Exception as exc:
        raise http_error(exc, "load order") from exc
