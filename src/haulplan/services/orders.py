"""Order creation with optional recurrence, travel cost and post-create side effects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..data import orders_repository
from ..data.fleet_repository import get_truck, load_fleet_catalog
from ..errors import TransientUpstreamError, ValidationError
from ..models.domain import Location, Order
from ..persistence.documents import DocumentStore
from .costs import estimate_travel_cost, resolve_truck_cost_per_km
from .notifications import CalendarSync, NotificationSender, assignment_notification
from .recurrence import Cadence, create_profile
from .routing.sequencer import DirectionsProvider
from .timezones import localize

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TravelCostEstimate:
    distance_km: float
    cost_per_km: float
    travel_cost: float


@dataclass(slots=True)
class OrderCreation:
    order: Order
    recurrence_profile_id: Optional[str] = None
    side_effect_errors: list[str] = field(default_factory=list)


def estimate_order_travel_cost(
    store: DocumentStore,
    account_id: str,
    base_id: Optional[str],
    truck_id: Optional[str],
    destination: Location,
    directions: DirectionsProvider,
) -> TravelCostEstimate:
    """Cost of driving from the base to ``destination`` and back.

    Raises TransientUpstreamError when no distance can be obtained.
    """
    catalog = load_fleet_catalog(store, account_id)
    truck = get_truck(store, account_id, truck_id) if truck_id else None
    base = catalog.base(base_id or (truck.base_id if truck else None))
    if base is None:
        raise ValidationError("A base is required to estimate the travel cost")
    if not destination.has_coordinates:
        raise ValidationError("Destination has no coordinates")

    cost_per_km = resolve_truck_cost_per_km(catalog.cost_configs, catalog.truck_types, truck, base.id)
    distance_km = directions.compute_route(base.location, destination).distance_km
    return TravelCostEstimate(
        distance_km=distance_km,
        cost_per_km=cost_per_km,
        travel_cost=round(estimate_travel_cost(distance_km, cost_per_km), 2),
    )


def run_side_effects(
    account_id: str,
    order: Order,
    notifier: Optional[NotificationSender],
    calendar: Optional[CalendarSync],
) -> list[str]:
    """Notify the assignee and sync the calendar. Failures are returned, never raised."""
    errors: list[str] = []
    notification = assignment_notification(order)
    if notifier is not None and notification is not None:
        try:
            notifier.send(notification)
        except Exception as exc:
            logger.warning(f"Notification for {order.kind.value} {order.id} failed: {exc}")
            errors.append(f"notification: {exc}")
    if calendar is not None:
        try:
            calendar.sync_order(account_id, order)
        except Exception as exc:
            logger.warning(f"Calendar sync for {order.kind.value} {order.id} failed: {exc}")
            errors.append(f"calendar: {exc}")
    return errors


def create_order(
    store: DocumentStore,
    order: Order,
    recurrence: Optional[Cadence] = None,
    *,
    directions: Optional[DirectionsProvider] = None,
    notifier: Optional[NotificationSender] = None,
    calendar: Optional[CalendarSync] = None,
    now: Optional[datetime] = None,
) -> OrderCreation:
    """Create ``order`` (and its recurrence profile, when given) then run side effects.

    The travel cost is filled in from the directions provider when the order
    has a base and a located destination; a provider failure leaves it at 0.
    """
    now = now or datetime.now(timezone.utc)
    if order.value < 0:
        raise ValidationError("Order value must not be negative")
    if localize(order.ends_at) < localize(order.starts_at):
        raise ValidationError("Order must not end before it starts")
    if order.base_id and directions is not None and order.destination.has_coordinates:
        try:
            estimate = estimate_order_travel_cost(
                store, order.account_id, order.base_id, order.truck_id, order.destination, directions
            )
            order.travel_cost = estimate.travel_cost
        except TransientUpstreamError as exc:
            logger.warning(f"Travel cost not computed for new {order.kind.value}: {exc}")

    profile_id = None
    if recurrence is not None:
        profile_id, created = create_profile(store, order, recurrence, now)
    else:
        created = orders_repository.create_order(store, order, now)

    errors = run_side_effects(created.account_id, created, notifier, calendar)
    return OrderCreation(order=created, recurrence_profile_id=profile_id, side_effect_errors=errors)
