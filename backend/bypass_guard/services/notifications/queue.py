"""Notification intent queue persistence helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from bypass_guard.core.config import settings
from bypass_guard.core.logging import get_logger
from bypass_guard.services.queue import QueuedTask, enqueue_task
from bypass_guard.services.queue import requeue_if_failed as generic_requeue_if_failed

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)
TASK_TYPE = "whatsapp_notification"


@dataclass(frozen=True)
class NotificationIntent:
    """A single text message to deliver to one recipient."""

    # request_created | request_to_validate | request_updated | request_decided
    # | request_decided_admin | pending_reminder | auto_cancelled | reactivation_required
    event_type: str
    recipient_phone: str
    message: str
    request_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0


def _task_from_intent(intent: NotificationIntent) -> QueuedTask:
    return QueuedTask(
        task_type=TASK_TYPE,
        payload={
            "event_type": intent.event_type,
            "recipient_phone": intent.recipient_phone,
            "message": intent.message,
            "request_id": str(intent.request_id) if intent.request_id else None,
        },
        created_at=intent.created_at,
        attempts=intent.attempts,
    )


def decode_notification_task(task: QueuedTask) -> NotificationIntent:
    """Decode a QueuedTask into a NotificationIntent."""
    if task.task_type != TASK_TYPE:
        raise ValueError(f"Unexpected task_type={task.task_type!r}; expected {TASK_TYPE!r}")

    p: dict[str, Any] = task.payload
    raw_request_id = p.get("request_id")
    return NotificationIntent(
        event_type=str(p["event_type"]),
        recipient_phone=str(p["recipient_phone"]),
        message=str(p["message"]),
        request_id=UUID(raw_request_id) if raw_request_id else None,
        created_at=task.created_at,
        attempts=task.attempts,
    )


def enqueue_notification(intent: NotificationIntent) -> bool:
    """Persist a notification intent in the Redis queue; never raises."""
    try:
        queued = enqueue_task(
            _task_from_intent(intent),
            settings.rq_queue_name,
            redis_url=settings.rq_redis_url,
        )
    except Exception as exc:
        logger.warning(
            "notification.enqueue_failed",
            extra={
                "event_type": intent.event_type,
                "request_id": str(intent.request_id),
                "error": str(exc),
            },
        )
        return False
    if queued:
        logger.info(
            "notification.enqueued",
            extra={"event_type": intent.event_type, "request_id": str(intent.request_id)},
        )
    return queued


def enqueue_notifications(intents: Iterable[NotificationIntent]) -> int:
    """Enqueue each intent independently; returns how many were accepted."""
    return sum(1 for intent in intents if enqueue_notification(intent))


def requeue_if_failed(
    intent: NotificationIntent,
    *,
    delay_seconds: float = 0,
) -> bool:
    """Requeue a failed notification with capped retries."""
    try:
        return generic_requeue_if_failed(
            _task_from_intent(intent),
            settings.rq_queue_name,
            max_retries=settings.rq_dispatch_max_retries,
            redis_url=settings.rq_redis_url,
            delay_seconds=delay_seconds,
        )
    except Exception as exc:
        logger.warning(
            "notification.requeue_failed",
            extra={"event_type": intent.event_type, "error": str(exc)},
        )
        return False
