"""Recurrence endpoints: periodic tick, profile listing and cancellation."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...data.recurrence_repository import list_profiles
from ...models.domain import Order, ProfileStatus
from ...persistence.documents import DocumentStore
from ...schemas.recurrence import RecurrenceProfileModel, TickRequest, TickResponse
from ...services.notifications import CalendarSync, NotificationSender
from ...services.orders import run_side_effects
from ...services.recurrence import cancel, tick
from ..deps import get_calendar, get_notifier, get_store, http_error

router = APIRouter(prefix="/recurrence", tags=["recurrence"])


@router.post("/{account_id}/tick", response_model=TickResponse, status_code=status.HTTP_200_OK)
def run_tick(
    account_id: str,
    payload: Optional[TickRequest] = None,
    store: DocumentStore = Depends(get_store),
    notifier: NotificationSender = Depends(get_notifier),
    calendar: CalendarSync = Depends(get_calendar),
) -> TickResponse:
    """Generate every order that is due. Meant to be called by a scheduler."""

    def _after_create(order: Order) -> None:
        run_side_effects(account_id, order, notifier, calendar)

    try:
        result = tick(store, account_id, payload.now if payload else None, on_order_created=_after_create)
    except Exception as exc:
        raise http_error(exc, "run recurrence tick") from exc
    return TickResponse(
        generated_order_ids=result.generated_order_ids,
        expired_profile_ids=result.expired_profile_ids,
        failed=result.failed,
    )


@router.get("/{account_id}", response_model=List[RecurrenceProfileModel])
def list_account_profiles(
    account_id: str,
    status_filter: Optional[ProfileStatus] = Query(default=None, alias="status"),
    store: DocumentStore = Depends(get_store),
) -> List[RecurrenceProfileModel]:
    try:
        profiles = list_profiles(store, account_id, status_filter)
    except Exception as exc:
        raise http_error(exc, "list recurrence profiles") from exc
    profiles.sort(key=lambda profile: profile.next_run_date)
    return [RecurrenceProfileModel.from_domain(profile) for profile in profiles]


@router.post("/{account_id}/{profile_id}/cancel", response_model=RecurrenceProfileModel)
def cancel_profile(account_id: str, profile_id: str, store: DocumentStore = Depends(get_store)) -> RecurrenceProfileModel:
    """Stop a profile. Cancelling twice returns the same cancelled profile."""
    try:
        return RecurrenceProfileModel.from_domain(cancel(store, account_id, profile_id))
    except Exception as exc:
        raise http_error(exc, "cancel recurrence profile") from exc
