"""Outbound notification and calendar-sync senders."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

import httpx

from ..config import settings
from ..data.orders_repository import order_to_document
from ..models.domain import Order, OrderKind

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Notification:
    recipient_id: str
    title: str
    body: str


class NotificationSender(Protocol):
    def send(self, notification: Notification) -> None: ...


class CalendarSync(Protocol):
    def sync_order(self, account_id: str, order: Order) -> None: ...


def assignment_notification(order: Order) -> Optional[Notification]:
    """Message for the person assigned to a newly created order."""
    if not order.assigned_to:
        return None
    if order.kind is OrderKind.RENTAL:
        title = f"Nova OS #{order.sequential_id} Designada"
        body = f"Você foi designado para a OS de {len(order.dumpster_ids)} caçamba(s)."
    else:
        title = f"Nova Operação #{order.sequential_id} Designada"
        body = "Você foi designado para uma operação."
    return Notification(recipient_id=order.assigned_to, title=title, body=body)


class LoggingNotificationSender:
    def send(self, notification: Notification) -> None:
        logger.info(f"Notification for {notification.recipient_id}: {notification.title}")


class WebhookNotificationSender:
    def __init__(self, url: str, timeout: Optional[float] = None) -> None:
        self.url = url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds

    def send(self, notification: Notification) -> None:
        response = httpx.post(self.url, json=asdict(notification), timeout=self.timeout)
        response.raise_for_status()


class LoggingCalendarSync:
    def sync_order(self, account_id: str, order: Order) -> None:
        logger.info(f"Calendar sync skipped for {order.kind.value} {order.id} (no calendar webhook configured)")


class WebhookCalendarSync:
    def __init__(self, url: str, timeout: Optional[float] = None) -> None:
        self.url = url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds

    def sync_order(self, account_id: str, order: Order) -> None:
        payload = {"accountId": account_id, "orderId": order.id, "order": order_to_document(order)}
        response = httpx.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()


def get_notification_sender() -> NotificationSender:
    if settings.notification_webhook_url:
        return WebhookNotificationSender(settings.notification_webhook_url)
    return LoggingNotificationSender()


def get_calendar_sync() -> CalendarSync:
    if settings.calendar_webhook_url:
        return WebhookCalendarSync(settings.calendar_webhook_url)
    return LoggingCalendarSync()
