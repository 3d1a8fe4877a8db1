"""Order request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..data.orders_repository import order_to_document
from ..models.domain import (
    AdditionalCost,
    BillingType,
    Frequency,
    Location,
    Operation,
    Order,
    Rental,
)
from ..services.recurrence import Cadence
from ..services.timezones import localize


class LocationModel(BaseModel):
    address: str = ""
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)

    def to_domain(self) -> Location:
        return Location(address=self.address, latitude=self.lat, longitude=self.lng)

    @classmethod
    def from_domain(cls, location: Location) -> "LocationModel":
        return cls(address=location.address, lat=location.latitude, lng=location.longitude)


class AdditionalCostModel(BaseModel):
    name: str
    value: float = Field(ge=0)


class RecurrenceModel(BaseModel):
    frequency: Frequency = Frequency.WEEKLY
    days_of_week: List[int] = Field(..., min_length=1, description="0 = Sunday ... 6 = Saturday")
    time: str = Field(..., description="HH:MM, 24h, business timezone")
    end_date: Optional[datetime] = None
    billing_type: Optional[BillingType] = None

    @field_validator("end_date")
    @classmethod
    def _localize_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return localize(value)

    def to_domain(self) -> Cadence:
        return Cadence(
            frequency=self.frequency,
            days_of_week=list(self.days_of_week),
            time=self.time,
            end_date=self.end_date,
            billing_type=self.billing_type,
        )


class _OrderDraftBase(BaseModel):
    client_id: str
    value: float = Field(default=0.0, ge=0)
    truck_id: Optional[str] = None
    assigned_to: Optional[str] = None
    base_id: Optional[str] = None
    additional_costs: List[AdditionalCostModel] = Field(default_factory=list)
    observations: Optional[str] = None

    def _common(self, account_id: str, created_by: Optional[str]) -> dict[str, Any]:
        return dict(
            id=None,
            account_id=account_id,
            client_id=self.client_id,
            value=self.value,
            truck_id=self.truck_id,
            assigned_to=self.assigned_to,
            base_id=self.base_id,
            additional_costs=[AdditionalCost(name=cost.name, value=cost.value) for cost in self.additional_costs],
            observations=self.observations,
            created_by=created_by,
        )


class RentalDraft(_OrderDraftBase):
    kind: Literal["rental"] = "rental"
    delivery_location: LocationModel
    rental_date: datetime
    return_date: datetime
    dumpster_ids: List[str] = Field(default_factory=list)
    billing_type: BillingType = BillingType.PER_DAY
    lump_sum_value: Optional[float] = Field(default=None, ge=0)

    @field_validator("rental_date", "return_date")
    @classmethod
    def _localize_dates(cls, value: datetime) -> datetime:
        return localize(value)

    def to_domain(self, account_id: str, created_by: Optional[str] = None) -> Rental:
        return Rental(
            **self._common(account_id, created_by),
            delivery_location=self.delivery_location.to_domain(),
            rental_date=self.rental_date,
            return_date=self.return_date,
            dumpster_ids=list(self.dumpster_ids),
            billing_type=self.billing_type,
            lump_sum_value=self.lump_sum_value,
        )


class OperationDraft(_OrderDraftBase):
    kind: Literal["operation"] = "operation"
    destination_location: LocationModel
    start_location: Optional[LocationModel] = None
    start_date: datetime
    end_date: datetime
    operation_type_ids: List[str] = Field(default_factory=list)

    @field_validator("start_date", "end_date")
    @classmethod
    def _localize_dates(cls, value: datetime) -> datetime:
        return localize(value)

    def to_domain(self, account_id: str, created_by: Optional[str] = None) -> Operation:
        return Operation(
            **self._common(account_id, created_by),
            destination_location=self.destination_location.to_domain(),
            start_location=self.start_location.to_domain() if self.start_location else None,
            start_date=self.start_date,
            end_date=self.end_date,
            operation_type_ids=list(self.operation_type_ids),
        )


OrderDraft = Annotated[Union[RentalDraft, OperationDraft], Field(discriminator="kind")]


class OrderCreateRequest(BaseModel):
    order: OrderDraft
    recurrence: Optional[RecurrenceModel] = None
    created_by: Optional[str] = None


class OrderModel(BaseModel):
    id: str
    kind: str
    sequential_id: Optional[int]
    status: str
    recurrence_profile_id: Optional[str] = None
    travel_cost: float = 0.0
    document: Dict[str, Any]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderModel":
        return cls(
            id=order.id,
            kind=order.kind.value,
            sequential_id=order.sequential_id,
            status=order.status.value,
            recurrence_profile_id=order.recurrence_profile_id,
            travel_cost=order.travel_cost,
            document=order_to_document(order),
        )


class OrderCreateResponse(BaseModel):
    order: OrderModel
    recurrence_profile_id: Optional[str] = None
    side_effect_errors: List[str] = Field(default_factory=list)


class TravelCostRequest(BaseModel):
    account_id: str
    destination: LocationModel
    base_id: Optional[str] = None
    truck_id: Optional[str] = None


class TravelCostResponse(BaseModel):
    distance_km: float
    cost_per_km: float
    travel_cost: float
