"""Per-kilometer cost model for trucks."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..config import settings
from ..models.domain import CostConfig, Truck, TruckType

logger = logging.getLogger(__name__)

NO_COST = 0.0


def resolve_cost_per_km(configs: Sequence[CostConfig], base_id: Optional[str], truck_type_id: Optional[str]) -> float:
    """Cost per km for a truck type leaving from ``base_id``.

    Exact (base, type) match first, then any config for the type, then 0.
    Within the type-only fallback a config without a base wins over one
    bound to another base.
    """
    if truck_type_id is None:
        return NO_COST
    same_type = [config for config in configs if config.truck_type_id == truck_type_id]
    if base_id is not None:
        for config in same_type:
            if config.base_id == base_id:
                return config.value
    for config in same_type:
        if config.base_id is None:
            return config.value
    if same_type:
        return same_type[0].value
    return NO_COST


def truck_type_id_for(truck_types: Sequence[TruckType], type_name: Optional[str]) -> Optional[str]:
    """Translate the type name stored on a truck into its catalog id."""
    if not type_name:
        return None
    wanted = type_name.strip().lower()
    for truck_type in truck_types:
        if truck_type.name.strip().lower() == wanted:
            return truck_type.id
    return None


def resolve_truck_cost_per_km(
    configs: Sequence[CostConfig],
    truck_types: Sequence[TruckType],
    truck: Optional[Truck],
    base_id: Optional[str],
) -> float:
    if truck is None:
        return NO_COST
    type_id = truck_type_id_for(truck_types, truck.type_name)
    if type_id is None:
        logger.info(f"Truck {truck.id} type '{truck.type_name}' is not in the catalog; no cost config applies")
        return NO_COST
    return resolve_cost_per_km(configs, base_id if base_id is not None else truck.base_id, type_id)


def estimate_travel_cost(distance_km: float, cost_per_km: float, round_trip_factor: float | None = None) -> float:
    """Travel cost of a one-way distance driven there and back."""
    factor = settings.round_trip_factor if round_trip_factor is None else round_trip_factor
    return distance_km * factor * cost_per_km
