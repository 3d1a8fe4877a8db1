"""Recurrence profiles: creation, periodic ticks and cancellation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from ...data import recurrence_repository as profiles
from ...data.orders_repository import (
    ensure_references,
    insert_order,
    order_from_template,
    template_from_order,
)
from ...errors import NotFoundError, ValidationError
from ...models.domain import BillingType, Frequency, Order, ProfileStatus, RecurrenceProfile
from ...persistence.documents import DocumentStore, Transaction
from ..timezones import localize
from .cadence import next_run_for_frequency, normalize_days, parse_time_of_day

logger = logging.getLogger(__name__)

OrderCallback = Callable[[Order], None]


@dataclass(slots=True)
class Cadence:
    frequency: Frequency
    days_of_week: Sequence[int]
    time: str
    end_date: Optional[datetime] = None
    billing_type: Optional[BillingType] = None


@dataclass(slots=True)
class TickResult:
    generated_order_ids: list[str] = field(default_factory=list)
    expired_profile_ids: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def validate_cadence(cadence: Cadence, starts_at: datetime) -> list[int]:
    days = normalize_days(cadence.days_of_week)
    parse_time_of_day(cadence.time)
    if not isinstance(cadence.frequency, Frequency):
        raise ValidationError(f"Unknown frequency: {cadence.frequency!r}")
    end_date = localize(cadence.end_date)
    if end_date is not None and end_date < localize(starts_at):
        raise ValidationError("endDate must not be before the order start date")
    return days


def create_profile(
    store: DocumentStore,
    first_order: Order,
    cadence: Cadence,
    now: Optional[datetime] = None,
) -> tuple[str, Order]:
    """Persist the first order and the profile that repeats it in one transaction.

    The first run is the first slot after both ``now`` and the first order's
    start, so the slot the first order covers is never generated again.
    Returns the new profile id and the created order.
    """
    now = localize(now) or datetime.now(timezone.utc)
    days = validate_cadence(cadence, first_order.starts_at)
    reference = max(now, localize(first_order.starts_at))
    next_run = next_run_for_frequency(cadence.frequency, days, cadence.time, reference)
    order_id = first_order.id or store.new_id()
    profile_id = store.new_id()

    def _create(tx: Transaction) -> Order:
        first_order.id = order_id
        first_order.recurrence_profile_id = profile_id
        ensure_references(tx, first_order)
        created = insert_order(tx, store, first_order, now)
        profile = RecurrenceProfile(
            id=profile_id,
            account_id=created.account_id,
            type=created.kind,
            frequency=cadence.frequency,
            days_of_week=days,
            time=cadence.time,
            next_run_date=next_run,
            template_data=template_from_order(created),
            billing_type=cadence.billing_type,
            end_date=localize(cadence.end_date),
            original_order_id=created.id,
            created_at=now,
            updated_at=now,
        )
        tx.set(profiles.profile_path(created.account_id, profile_id), profiles.profile_to_document(profile))
        return created

    created = store.run_transaction(_create)
    logger.info(
        f"Created recurrence profile {profile_id} ({cadence.frequency.value} {days} {cadence.time}) "
        f"with first {created.kind.value} #{created.sequential_id}; next run {next_run.isoformat()}"
    )
    return profile_id, created


def _tick_profile(store: DocumentStore, account_id: str, profile_id: str, now: datetime) -> tuple[str, Optional[Order]]:
    """Run one profile inside its own transaction.

    Returns ("generated", order), ("expired", None) or ("skipped", None).
    """
    path = profiles.profile_path(account_id, profile_id)

    def _run(tx: Transaction) -> tuple[str, Optional[Order]]:
        data = tx.get(path)
        if data is None:
            raise NotFoundError(f"Recurrence profile not found: {profile_id}")
        profile = profiles.profile_from_document(profile_id, data)
        if profile.is_terminal:
            return "skipped", None

        if profile.end_date is not None and now >= profile.end_date:
            tx.update(path, {"status": ProfileStatus.EXPIRED.value, "updatedAt": now.isoformat()})
            return "expired", None

        if profile.next_run_date > now:
            return "skipped", None

        order = order_from_template(profile.template_data, account_id, profile.next_run_date)
        order.recurrence_profile_id = profile_id
        ensure_references(tx, order)
        order.id = None
        insert_order(tx, store, order, now)

        next_run = next_run_for_frequency(profile.frequency, profile.days_of_week, profile.time, now)
        tx.update(
            path,
            {
                "nextRunDate": next_run.isoformat(),
                "lastRunAt": now.isoformat(),
                "updatedAt": now.isoformat(),
            },
        )
        return "generated", order

    return store.run_transaction(_run)


def tick(
    store: DocumentStore,
    account_id: str,
    now: Optional[datetime] = None,
    on_order_created: Optional[OrderCallback] = None,
) -> TickResult:
    """Generate the orders that are due for ``account_id`` at ``now``.

    Each profile is processed in its own transaction. A profile whose order
    cannot be materialized is left untouched so the next tick retries it.
    """
    now = localize(now) or datetime.now(timezone.utc)
    result = TickResult()

    for profile in profiles.list_profiles(store, account_id, ProfileStatus.ACTIVE):
        if profile.next_run_date > now and (profile.end_date is None or now < profile.end_date):
            continue
        try:
            outcome, order = _tick_profile(store, account_id, profile.id, now)
        except Exception as exc:
            logger.warning(f"Recurrence profile {profile.id} not processed this tick: {exc}")
            result.failed[profile.id] = str(exc)
            continue

        if outcome == "expired":
            logger.info(f"Recurrence profile {profile.id} expired (end date {profile.end_date.isoformat()})")
            result.expired_profile_ids.append(profile.id)
        elif outcome == "generated" and order is not None:
            logger.info(f"Recurrence profile {profile.id} generated {order.kind.value} #{order.sequential_id}")
            result.generated_order_ids.append(order.id)
            if on_order_created is not None:
                try:
                    on_order_created(order)
                except Exception as exc:
                    logger.warning(f"Post-creation hook failed for {order.kind.value} {order.id}: {exc}")

    return result


def cancel(store: DocumentStore, account_id: str, profile_id: str, now: Optional[datetime] = None) -> RecurrenceProfile:
    """Stop a profile from generating orders. Cancelling twice is a no-op."""
    now = localize(now) or datetime.now(timezone.utc)
    path = profiles.profile_path(account_id, profile_id)

    def _cancel(tx: Transaction) -> RecurrenceProfile:
        data = tx.get(path)
        if data is None:
            raise NotFoundError(f"Recurrence profile not found: {profile_id}")
        profile = profiles.profile_from_document(profile_id, data)
        if not profile.is_terminal:
            profile.status = ProfileStatus.CANCELLED
            profile.updated_at = now
            tx.update(path, {"status": ProfileStatus.CANCELLED.value, "updatedAt": now.isoformat()})
        return profile

    profile = store.run_transaction(_cancel)
    logger.info(f"Recurrence profile {profile_id} is {profile.status.value}")
    return profile
