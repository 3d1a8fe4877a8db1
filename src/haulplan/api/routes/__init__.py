"""Route group exports."""

from . import health, orders, recurrence, routes

__all__ = ["health", "orders", "recurrence", "routes"]
