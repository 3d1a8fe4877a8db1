"""Domain models for orders, recurrence profiles and the fleet cost catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class OrderKind(str, Enum):
    RENTAL = "rental"
    OPERATION = "operation"


class RentalStatus(str, Enum):
    PENDING = "Pendente"
    ACTIVE = "Ativo"
    FINISHED = "Finalizado"
    LATE = "Atrasado"


class OperationStatus(str, Enum):
    PENDING = "Pendente"
    IN_PROGRESS = "Em Andamento"
    COMPLETED = "Concluído"


class BillingType(str, Enum):
    PER_DAY = "perDay"
    LUMP_SUM = "lumpSum"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ProfileStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Movement(str, Enum):
    """What the truck does at a stop."""

    DELIVERY = "delivery"
    PICKUP = "pickup"
    SERVICE = "service"


@dataclass(slots=True)
class Location:
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def as_tuple(self) -> tuple[float, float]:
        if not self.has_coordinates:
            raise ValueError(f"Location '{self.address}' has no coordinates.")
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class AdditionalCost:
    name: str
    value: float


@dataclass(slots=True)
class Rental:
    """A dumpster delivered to a client and picked up on the return date."""

    id: Optional[str]
    account_id: str
    client_id: str
    delivery_location: Location
    rental_date: datetime
    return_date: datetime
    value: float
    dumpster_ids: list[str] = field(default_factory=list)
    billing_type: BillingType = BillingType.PER_DAY
    lump_sum_value: Optional[float] = None
    truck_id: Optional[str] = None
    assigned_to: Optional[str] = None
    base_id: Optional[str] = None
    additional_costs: list[AdditionalCost] = field(default_factory=list)
    travel_cost: float = 0.0
    observations: Optional[str] = None
    sequential_id: Optional[int] = None
    status: RentalStatus = RentalStatus.PENDING
    recurrence_profile_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    kind = OrderKind.RENTAL

    @property
    def starts_at(self) -> datetime:
        return self.rental_date

    @property
    def ends_at(self) -> datetime:
        return self.return_date

    @property
    def destination(self) -> Location:
        return self.delivery_location


@dataclass(slots=True)
class Operation:
    """A scheduled truck job between an origin and a destination."""

    id: Optional[str]
    account_id: str
    client_id: str
    start_date: datetime
    end_date: datetime
    destination_location: Location
    value: float
    start_location: Optional[Location] = None
    operation_type_ids: list[str] = field(default_factory=list)
    truck_id: Optional[str] = None
    assigned_to: Optional[str] = None
    base_id: Optional[str] = None
    additional_costs: list[AdditionalCost] = field(default_factory=list)
    travel_cost: float = 0.0
    observations: Optional[str] = None
    sequential_id: Optional[int] = None
    status: OperationStatus = OperationStatus.PENDING
    recurrence_profile_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    kind = OrderKind.OPERATION

    @property
    def starts_at(self) -> datetime:
        return self.start_date

    @property
    def ends_at(self) -> datetime:
        return self.end_date

    @property
    def destination(self) -> Location:
        return self.destination_location


Order = Union[Rental, Operation]


TEMPLATE_SCHEMA_VERSION = 1


@dataclass(slots=True, frozen=True)
class OrderTemplate:
    """Frozen snapshot of the order fields copied into every generated order.

    Identity, sequence number, timestamps and status are never part of the
    snapshot; they are assigned when an order is materialized.
    """

    kind: OrderKind
    fields: dict[str, Any]
    schema_version: int = TEMPLATE_SCHEMA_VERSION


@dataclass(slots=True)
class RecurrenceProfile:
    id: Optional[str]
    account_id: str
    type: OrderKind
    frequency: Frequency
    days_of_week: list[int]
    time: str
    next_run_date: datetime
    template_data: OrderTemplate
    billing_type: Optional[BillingType] = None
    end_date: Optional[datetime] = None
    status: ProfileStatus = ProfileStatus.ACTIVE
    original_order_id: Optional[str] = None
    last_run_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProfileStatus.CANCELLED, ProfileStatus.EXPIRED)


@dataclass(slots=True)
class CostConfig:
    """Currency per kilometer for a truck type, optionally tied to a base."""

    truck_type_id: str
    value: float
    base_id: Optional[str] = None


@dataclass(slots=True)
class TruckType:
    id: str
    name: str


@dataclass(slots=True)
class Truck:
    id: str
    name: str
    type_name: Optional[str] = None
    plate: Optional[str] = None
    base_id: Optional[str] = None


@dataclass(slots=True)
class Base:
    """A depot from which routes start."""

    id: str
    name: str
    location: Location
