"""Order documents: serialization, per-account counters and persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from ..errors import NotFoundError, ValidationError
from ..models.domain import (
    TEMPLATE_SCHEMA_VERSION,
    AdditionalCost,
    BillingType,
    Location,
    Operation,
    OperationStatus,
    Order,
    OrderKind,
    OrderTemplate,
    Rental,
    RentalStatus,
)
from ..persistence.documents import DocumentStore, Filter, Transaction
from ..services.timezones import localize

logger = logging.getLogger(__name__)

COLLECTIONS = {OrderKind.RENTAL: "rentals", OrderKind.OPERATION: "operations"}
COUNTER_FIELDS = {OrderKind.RENTAL: "rentalCounter", OrderKind.OPERATION: "operationCounter"}

# Fields that identify a concrete order and are never copied into a template.
_NON_TEMPLATE_FIELDS = ("id", "accountId", "sequentialId", "status", "createdAt", "createdBy", "recurrenceProfileId")


def account_path(account_id: str) -> str:
    return f"accounts/{account_id}"


def collection_path(account_id: str, kind: OrderKind) -> str:
    return f"accounts/{account_id}/{COLLECTIONS[kind]}"


def order_path(account_id: str, kind: OrderKind, order_id: str) -> str:
    return f"{collection_path(account_id, kind)}/{order_id}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp '{value}'") from exc
    return localize(parsed)


def location_to_document(location: Optional[Location]) -> Optional[dict[str, Any]]:
    if location is None:
        return None
    return {"address": location.address, "lat": location.latitude, "lng": location.longitude}


def location_from_document(data: Optional[dict[str, Any]]) -> Optional[Location]:
    if not data:
        return None
    lat = data.get("lat")
    lng = data.get("lng")
    return Location(
        address=str(data.get("address") or ""),
        latitude=float(lat) if lat is not None else None,
        longitude=float(lng) if lng is not None else None,
    )


def order_to_document(order: Order) -> dict[str, Any]:
    document: dict[str, Any] = {
        "kind": order.kind.value,
        "accountId": order.account_id,
        "clientId": order.client_id,
        "value": order.value,
        "truckId": order.truck_id,
        "assignedTo": order.assigned_to,
        "baseId": order.base_id,
        "additionalCosts": [{"name": cost.name, "value": cost.value} for cost in order.additional_costs],
        "travelCost": order.travel_cost,
        "observations": order.observations,
        "sequentialId": order.sequential_id,
        "status": order.status.value,
        "recurrenceProfileId": order.recurrence_profile_id,
        "createdBy": order.created_by,
        "createdAt": _iso(order.created_at),
    }
    if isinstance(order, Rental):
        document.update(
            {
                "dumpsterIds": list(order.dumpster_ids),
                "deliveryLocation": location_to_document(order.delivery_location),
                "rentalDate": _iso(order.rental_date),
                "returnDate": _iso(order.return_date),
                "billingType": order.billing_type.value,
                "lumpSumValue": order.lump_sum_value,
            }
        )
    else:
        document.update(
            {
                "operationTypeIds": list(order.operation_type_ids),
                "startLocation": location_to_document(order.start_location),
                "destinationLocation": location_to_document(order.destination_location),
                "startDate": _iso(order.start_date),
                "endDate": _iso(order.end_date),
            }
        )
    return document


def order_from_document(kind: OrderKind, order_id: Optional[str], data: dict[str, Any]) -> Order:
    try:
        common = dict(
            id=order_id,
            account_id=data["accountId"],
            client_id=data["clientId"],
            value=float(data.get("value") or 0.0),
            truck_id=data.get("truckId"),
            assigned_to=data.get("assignedTo"),
            base_id=data.get("baseId"),
            additional_costs=[
                AdditionalCost(name=str(item["name"]), value=float(item["value"]))
                for item in data.get("additionalCosts") or []
            ],
            travel_cost=float(data.get("travelCost") or 0.0),
            observations=data.get("observations"),
            sequential_id=data.get("sequentialId"),
            recurrence_profile_id=data.get("recurrenceProfileId"),
            created_by=data.get("createdBy"),
            created_at=parse_datetime(data.get("createdAt")),
        )
        if kind is OrderKind.RENTAL:
            return Rental(
                **common,
                dumpster_ids=list(data.get("dumpsterIds") or []),
                delivery_location=location_from_document(data.get("deliveryLocation")) or Location(address=""),
                rental_date=parse_datetime(data["rentalDate"]),
                return_date=parse_datetime(data["returnDate"]),
                billing_type=BillingType(data.get("billingType") or BillingType.PER_DAY.value),
                lump_sum_value=data.get("lumpSumValue"),
                status=RentalStatus(data.get("status") or RentalStatus.PENDING.value),
            )
        return Operation(
            **common,
            operation_type_ids=list(data.get("operationTypeIds") or []),
            start_location=location_from_document(data.get("startLocation")),
            destination_location=location_from_document(data.get("destinationLocation")) or Location(address=""),
            start_date=parse_datetime(data["startDate"]),
            end_date=parse_datetime(data["endDate"]),
            status=OperationStatus(data.get("status") or OperationStatus.PENDING.value),
        )
    except KeyError as exc:
        raise ValidationError(f"Order document is missing field {exc}") from exc


def template_from_order(order: Order) -> OrderTemplate:
    fields = order_to_document(order)
    for name in _NON_TEMPLATE_FIELDS:
        fields.pop(name, None)
    return OrderTemplate(kind=order.kind, fields=fields)


def template_to_document(template: OrderTemplate) -> dict[str, Any]:
    return {"schemaVersion": template.schema_version, "kind": template.kind.value, "fields": dict(template.fields)}


def template_from_document(data: dict[str, Any]) -> OrderTemplate:
    version = data.get("schemaVersion")
    if version != TEMPLATE_SCHEMA_VERSION:
        raise ValidationError(f"Unsupported order template version: {version!r}")
    return OrderTemplate(kind=OrderKind(data["kind"]), fields=dict(data.get("fields") or {}), schema_version=version)


def order_from_template(template: OrderTemplate, account_id: str, run_at: datetime) -> Order:
    """Build a fresh order from a template, moving its schedule to ``run_at``.

    The original order's duration (rental period or operation length) is kept.
    """
    fields = dict(template.fields)
    start_key, end_key = ("rentalDate", "returnDate") if template.kind is OrderKind.RENTAL else ("startDate", "endDate")
    start = parse_datetime(fields.get(start_key))
    end = parse_datetime(fields.get(end_key))
    if start is None or end is None:
        raise ValidationError(f"Template is missing '{start_key}'/'{end_key}'")
    fields[start_key] = run_at.isoformat()
    fields[end_key] = (run_at + (end - start)).isoformat()
    fields["accountId"] = account_id
    return order_from_document(template.kind, None, fields)


def next_sequential_id(tx: Transaction, account_id: str, kind: OrderKind) -> int:
    """Read-modify-write of the account counter inside ``tx``."""
    account = tx.get(account_path(account_id))
    if account is None:
        raise NotFoundError(f"Account not found: {account_id}")
    field_name = COUNTER_FIELDS[kind]
    new_value = int(account.get(field_name) or 0) + 1
    tx.update(account_path(account_id), {field_name: new_value})
    return new_value


def ensure_references(tx: Transaction, order: Order) -> None:
    """Fail with NotFoundError when the order points at a deleted client or truck."""
    base = account_path(order.account_id)
    if tx.get(f"{base}/clients/{order.client_id}") is None:
        raise NotFoundError(f"Client not found: {order.client_id}")
    if order.truck_id and tx.get(f"{base}/trucks/{order.truck_id}") is None:
        raise NotFoundError(f"Truck not found: {order.truck_id}")


def insert_order(tx: Transaction, store: DocumentStore, order: Order, now: datetime) -> Order:
    """Assign id, sequence number and creation time, and stage the write in ``tx``."""
    order.id = order.id or store.new_id()
    order.sequential_id = next_sequential_id(tx, order.account_id, order.kind)
    order.created_at = now
    tx.set(order_path(order.account_id, order.kind, order.id), order_to_document(order))
    return order


def create_order(store: DocumentStore, order: Order, now: Optional[datetime] = None) -> Order:
    now = now or datetime.now(timezone.utc)
    order_id = order.id or store.new_id()

    def _create(tx: Transaction) -> Order:
        order.id = order_id
        ensure_references(tx, order)
        return insert_order(tx, store, order, now)

    created = store.run_transaction(_create)
    logger.info(f"Created {created.kind.value} #{created.sequential_id} ({created.id}) for account {created.account_id}")
    return created


def get_order(store: DocumentStore, account_id: str, kind: OrderKind, order_id: str) -> Order:
    data = store.get(order_path(account_id, kind, order_id))
    if data is None:
        raise NotFoundError(f"{kind.value.capitalize()} not found: {order_id}")
    return order_from_document(kind, order_id, data)


def list_orders(
    store: DocumentStore,
    account_id: str,
    kind: OrderKind,
    filters: Sequence[Filter] = (),
) -> list[Order]:
    return [
        order_from_document(kind, document.id, document.data)
        for document in store.query(collection_path(account_id, kind), filters)
    ]
