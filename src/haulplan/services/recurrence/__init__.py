"""Recurring order scheduling."""

from .cadence import next_occurrence, next_run_for_frequency
from .engine import Cadence, TickResult, cancel, create_profile, tick

__all__ = [
    "Cadence",
    "TickResult",
    "cancel",
    "create_profile",
    "next_occurrence",
    "next_run_for_frequency",
    "tick",
]
