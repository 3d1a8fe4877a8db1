"""Recurrence profile documents."""

from __future__ import annotations

from typing import Any, Optional

from ..errors import NotFoundError
from ..models.domain import BillingType, Frequency, OrderKind, ProfileStatus, RecurrenceProfile
from ..persistence.documents import DocumentStore, Filter
from .orders_repository import parse_datetime, template_from_document, template_to_document


def profiles_path(account_id: str) -> str:
    return f"accounts/{account_id}/recurrence_profiles"


def profile_path(account_id: str, profile_id: str) -> str:
    return f"{profiles_path(account_id)}/{profile_id}"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def profile_to_document(profile: RecurrenceProfile) -> dict[str, Any]:
    return {
        "accountId": profile.account_id,
        "type": profile.type.value,
        "frequency": profile.frequency.value,
        "daysOfWeek": sorted(profile.days_of_week),
        "time": profile.time,
        "endDate": _iso(profile.end_date),
        "billingType": profile.billing_type.value if profile.billing_type else None,
        "status": profile.status.value,
        "nextRunDate": _iso(profile.next_run_date),
        "originalOrderId": profile.original_order_id,
        "templateData": template_to_document(profile.template_data),
        "lastRunAt": _iso(profile.last_run_at),
        "createdAt": _iso(profile.created_at),
        "updatedAt": _iso(profile.updated_at),
    }


def profile_from_document(profile_id: str, data: dict[str, Any]) -> RecurrenceProfile:
    billing_type = data.get("billingType")
    return RecurrenceProfile(
        id=profile_id,
        account_id=data["accountId"],
        type=OrderKind(data["type"]),
        frequency=Frequency(data["frequency"]),
        days_of_week=[int(day) for day in data.get("daysOfWeek") or []],
        time=data["time"],
        next_run_date=parse_datetime(data["nextRunDate"]),
        template_data=template_from_document(data["templateData"]),
        billing_type=BillingType(billing_type) if billing_type else None,
        end_date=parse_datetime(data.get("endDate")),
        status=ProfileStatus(data.get("status") or ProfileStatus.ACTIVE.value),
        original_order_id=data.get("originalOrderId"),
        last_run_at=parse_datetime(data.get("lastRunAt")),
        created_at=parse_datetime(data.get("createdAt")),
        updated_at=parse_datetime(data.get("updatedAt")),
    )


def get_profile(store: DocumentStore, account_id: str, profile_id: str) -> RecurrenceProfile:
    data = store.get(profile_path(account_id, profile_id))
    if data is None:
        raise NotFoundError(f"Recurrence profile not found: {profile_id}")
    return profile_from_document(profile_id, data)


def list_profiles(
    store: DocumentStore,
    account_id: str,
    status: Optional[ProfileStatus] = None,
) -> list[RecurrenceProfile]:
    filters: list[Filter] = []
    if status is not None:
        filters.append(("status", "==", status.value))
    return [profile_from_document(document.id, document.data) for document in store.query(profiles_path(account_id), filters)]
