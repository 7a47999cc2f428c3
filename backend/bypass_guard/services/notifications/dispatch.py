"""Notification dispatch handler run by the queue worker."""

from __future__ import annotations

from bypass_guard.core.logging import get_logger
from bypass_guard.services.notifications.queue import (
    NotificationIntent,
    decode_notification_task,
    requeue_if_failed,
)
from bypass_guard.services.queue import QueuedTask
from bypass_guard.services.whapi import WhapiClient

logger = get_logger(__name__)


def _gateway() -> WhapiClient:
    return WhapiClient()


def _dispatch(intent: NotificationIntent) -> None:
    logger.info(
        "notification.dispatch",
        extra={
            "event_type": intent.event_type,
            "request_id": str(intent.request_id),
            "attempt": intent.attempts,
        },
    )
    _gateway().send(intent.recipient_phone, intent.message)


async def process_notification_task(task: QueuedTask) -> None:
    """Decode and deliver a notification task."""
    intent = decode_notification_task(task)
    _dispatch(intent)


def requeue_notification_task(task: QueuedTask, *, delay_seconds: float = 0) -> bool:
    """Requeue a notification task whose handler raised.

    Undecodable tasks are dropped: retrying them cannot succeed.
    """
    try:
        intent = decode_notification_task(task)
    except (KeyError, TypeError, ValueError):
        logger.warning(
            "notification.requeue_undecodable",
            extra={"task_type": task.task_type, "attempt": task.attempts},
        )
        return False
    return requeue_if_failed(intent, delay_seconds=delay_seconds)
