"""Recurrence request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import RecurrenceProfile
from ..services.timezones import localize


class RecurrenceProfileModel(BaseModel):
    id: str
    type: str
    frequency: str
    days_of_week: List[int]
    time: str
    status: str
    next_run_date: datetime
    end_date: Optional[datetime] = None
    billing_type: Optional[str] = None
    original_order_id: Optional[str] = None
    last_run_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, profile: RecurrenceProfile) -> "RecurrenceProfileModel":
        return cls(
            id=profile.id,
            type=profile.type.value,
            frequency=profile.frequency.value,
            days_of_week=list(profile.days_of_week),
            time=profile.time,
            status=profile.status.value,
            next_run_date=profile.next_run_date,
            end_date=profile.end_date,
            billing_type=profile.billing_type.value if profile.billing_type else None,
            original_order_id=profile.original_order_id,
            last_run_at=profile.last_run_at,
        )


class TickRequest(BaseModel):
    now: Optional[datetime] = Field(default=None, description="Evaluation instant; defaults to the current time.")

    @field_validator("now")
    @classmethod
    def _localize_now(cls, value: Optional[datetime]) -> Optional[datetime]:
        return localize(value)


class TickResponse(BaseModel):
    generated_order_ids: List[str]
    expired_profile_ids: List[str]
    failed: Dict[str, str]
