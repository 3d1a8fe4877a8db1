"""Routing orchestration service: stops from stored orders, cost prefetch, plan storage."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from ...config import settings
from ...data.fleet_repository import get_truck, load_fleet_catalog
from ...data.orders_repository import account_path, list_orders
from ...errors import ValidationError
from ...models.domain import (
    Location,
    Movement,
    Operation,
    OperationStatus,
    OrderKind,
    Rental,
    RentalStatus,
)
from ...persistence.documents import DocumentStore
from ...persistence.filesystem import FileStorage
from ..costs import resolve_truck_cost_per_km
from ..recurrence.cadence import parse_time_of_day
from ..timezones import business_zone
from .models import OptimizedRoute, Stop
from .sequencer import DirectionsProvider, optimize

logger = logging.getLogger(__name__)

_CLOSED_STATUSES = {RentalStatus.FINISHED, OperationStatus.COMPLETED}


@dataclass(slots=True)
class RoutePlanRequest:
    account_id: str
    day: date
    departure_time: Optional[str] = None
    base_id: Optional[str] = None
    truck_id: Optional[str] = None
    assigned_to: Optional[str] = None
    start: Optional[Location] = None
    stops: Optional[list[Stop]] = None
    return_to_base: bool = False


def _local_date(moment: datetime) -> date:
    return moment.astimezone(business_zone()).date()


def _at_hour(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(hour=hour), tzinfo=business_zone())


def departure_instant(day: date, departure_time: Optional[str]) -> datetime:
    clock = parse_time_of_day(departure_time or settings.default_departure_time)
    return datetime.combine(day, clock, tzinfo=business_zone())


def _client_names(store: DocumentStore, account_id: str, client_ids: Iterable[str]) -> dict[str, str]:
    names = {}
    for client_id in set(client_ids):
        data = store.get(f"{account_path(account_id)}/clients/{client_id}") or {}
        names[client_id] = str(data.get("name") or "")
    return names


def stops_for_day(
    store: DocumentStore,
    account_id: str,
    day: date,
    assigned_to: Optional[str] = None,
    truck_id: Optional[str] = None,
) -> list[Stop]:
    """Stops a truck has on ``day``: rental deliveries and pickups plus operations.

    A rental's value is counted on its delivery only.
    """
    orders = [
        *list_orders(store, account_id, OrderKind.RENTAL),
        *list_orders(store, account_id, OrderKind.OPERATION),
    ]
    orders = [
        order
        for order in orders
        if order.status not in _CLOSED_STATUSES
        and (assigned_to is None or order.assigned_to == assigned_to)
        and (truck_id is None or order.truck_id == truck_id)
    ]
    orders.sort(key=lambda order: (order.starts_at, order.sequential_id or 0))
    names = _client_names(store, account_id, (order.client_id for order in orders))

    stops: list[Stop] = []
    for order in orders:
        client_name = names.get(order.client_id, "")
        if isinstance(order, Rental):
            if _local_date(order.rental_date) == day:
                stops.append(
                    Stop(
                        order_ref=f"rental:{order.id}:delivery",
                        destination=order.delivery_location,
                        client_name=client_name,
                        movement=Movement.DELIVERY,
                        value=order.value,
                        window_start=_at_hour(day, settings.delivery_hour),
                    )
                )
            if _local_date(order.return_date) == day:
                stops.append(
                    Stop(
                        order_ref=f"rental:{order.id}:pickup",
                        destination=order.delivery_location,
                        client_name=client_name,
                        movement=Movement.PICKUP,
                        window_start=_at_hour(day, settings.pickup_hour),
                    )
                )
        elif isinstance(order, Operation) and _local_date(order.start_date) == day:
            stops.append(
                Stop(
                    order_ref=f"operation:{order.id}",
                    destination=order.destination_location,
                    client_name=client_name,
                    movement=Movement.SERVICE,
                    value=order.value,
                    window_start=order.start_date,
                    window_end=order.end_date,
                )
            )
    return stops


def resolve_route_cost_per_km(
    store: DocumentStore,
    account_id: str,
    truck_id: Optional[str],
    base_id: Optional[str],
) -> float:
    catalog = load_fleet_catalog(store, account_id)
    truck = get_truck(store, account_id, truck_id) if truck_id else None
    return resolve_truck_cost_per_km(catalog.cost_configs, catalog.truck_types, truck, base_id)


def _start_location(store: DocumentStore, request: RoutePlanRequest) -> tuple[Location, Optional[str]]:
    if request.start is not None:
        return request.start, request.base_id
    base_id = request.base_id
    if base_id is None and request.truck_id:
        base_id = get_truck(store, request.account_id, request.truck_id).base_id
    base = load_fleet_catalog(store, request.account_id).base(base_id)
    if base is None:
        raise ValidationError("A start location or a known base is required to plan a route")
    return base.location, base.id


def plan_route(store: DocumentStore, request: RoutePlanRequest, directions: DirectionsProvider) -> OptimizedRoute:
    """Sequence the stops of ``request``; nothing is persisted."""
    start, base_id = _start_location(store, request)
    stops = request.stops
    if stops is None:
        stops = stops_for_day(store, request.account_id, request.day, request.assigned_to, request.truck_id)
    departure = departure_instant(request.day, request.departure_time)
    logger.info(
        f"Planning route for account {request.account_id} on {request.day.isoformat()}: "
        f"{len(stops)} stops from {start.address!r} at {departure.isoformat()}"
    )

    with ThreadPoolExecutor(max_workers=1) as prefetch:
        cost_future = prefetch.submit(
            resolve_route_cost_per_km, store, request.account_id, request.truck_id, base_id
        )
        return optimize(
            start,
            departure,
            stops,
            cost_future,
            directions,
            return_to_base=request.return_to_base,
        )


def confirm_plan(
    storage: FileStorage,
    account_id: str,
    plan: dict[str, Any],
    confirmed_by: Optional[str] = None,
) -> tuple[str, Path]:
    """Store a plan a person accepted. Returns the plan id and where it was written."""
    plan_id = uuid.uuid4().hex
    document = {
        "planId": plan_id,
        "accountId": account_id,
        "confirmedBy": confirmed_by,
        "confirmedAt": datetime.now(timezone.utc).isoformat(),
        "plan": plan,
    }
    path = storage.save_route_plan(account_id, plan_id, document)
    logger.info(f"Stored confirmed route plan {plan_id} for account {account_id} at {path}")
    return plan_id, path
