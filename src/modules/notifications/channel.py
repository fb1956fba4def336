"""Notification channel: fire-and-forget delivery of status changes.

The order engine calls ``notify`` and never waits for, or fails because of,
delivery.  ``CeleryNotificationChannel`` hands the work to a Celery task
once the surrounding database transaction has committed, so a rolled-back
transition never produces a notification.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, NamedTuple
from uuid import UUID

import structlog
from django.db import transaction
from kombu.exceptions import OperationalError as BrokerError

logger = structlog.get_logger(__name__)


class INotificationChannel(ABC):
    @abstractmethod
    def notify(self, actor_id: str, order_id: UUID, new_status: str) -> None:
        """Queue a status-change notice for ``actor_id``; never raises."""


class CeleryNotificationChannel(INotificationChannel):
    def notify(self, actor_id: str, order_id: UUID, new_status: str) -> None:
        transaction.on_commit(
            lambda: self._enqueue(actor_id, str(order_id), str(new_status))
        )

    @staticmethod
    def _enqueue(actor_id: str, order_id: str, new_status: str) -> None:
        from modules.notifications.tasks import deliver_notification

        try:
            deliver_notification.delay(actor_id, order_id, new_status)
        except BrokerError:
            logger.exception(
                "notification.enqueue_failed",
                recipient_id=actor_id,
                order_id=order_id,
                status=new_status,
            )


class SentNotification(NamedTuple):
    actor_id: str
    order_id: UUID
    new_status: str


class InMemoryNotificationChannel(INotificationChannel):
    """Records every call; for tests and local tooling."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sent: List[SentNotification] = []

    def notify(self, actor_id: str, order_id: UUID, new_status: str) -> None:
        with self._lock:
            self._sent.append(SentNotification(actor_id, order_id, str(new_status)))

    @property
    def sent(self) -> List[SentNotification]:
        with self._lock:
            return list(self._sent)
