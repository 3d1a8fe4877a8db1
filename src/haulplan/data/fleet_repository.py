"""Fleet catalog access: bases, truck types, operational costs and trucks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import NotFoundError
from ..models.domain import Base, CostConfig, Truck, TruckType
from ..persistence.documents import DocumentStore
from .orders_repository import account_path, location_from_document

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FleetCatalog:
    """Account-level data the cost model needs."""

    truck_types: list[TruckType] = field(default_factory=list)
    cost_configs: list[CostConfig] = field(default_factory=list)
    bases: list[Base] = field(default_factory=list)

    def base(self, base_id: Optional[str]) -> Optional[Base]:
        if base_id is None:
            return None
        return next((base for base in self.bases if base.id == base_id), None)


def _cost_from_row(row: dict[str, Any]) -> Optional[CostConfig]:
    try:
        return CostConfig(
            truck_type_id=str(row["truckTypeId"]),
            value=float(row["value"]),
            base_id=row.get("baseId") or None,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Skipping invalid operational cost row {row}: {e}")
        return None


def load_fleet_catalog(store: DocumentStore, account_id: str) -> FleetCatalog:
    account = store.get(account_path(account_id))
    if account is None:
        raise NotFoundError(f"Account not found: {account_id}")

    truck_types = [
        TruckType(id=str(row["id"]), name=str(row["name"]))
        for row in account.get("truckTypes") or []
        if row.get("id") and row.get("name")
    ]
    cost_configs = [cost for cost in map(_cost_from_row, account.get("operationalCosts") or []) if cost]
    bases = []
    for row in account.get("bases") or []:
        location = location_from_document(row.get("location"))
        if not row.get("id") or location is None:
            logger.warning(f"Skipping base without id or location: {row}")
            continue
        bases.append(Base(id=str(row["id"]), name=str(row.get("name") or row["id"]), location=location))
    return FleetCatalog(truck_types=truck_types, cost_configs=cost_configs, bases=bases)


def get_truck(store: DocumentStore, account_id: str, truck_id: str) -> Truck:
    data = store.get(f"{account_path(account_id)}/trucks/{truck_id}")
    if data is None:
        raise NotFoundError(f"Truck not found: {truck_id}")
    return Truck(
        id=truck_id,
        name=str(data.get("name") or truck_id),
        type_name=data.get("type"),
        plate=data.get("plate"),
        base_id=data.get("baseId"),
    )
