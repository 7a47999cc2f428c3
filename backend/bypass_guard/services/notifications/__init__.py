"""WhatsApp notification queueing + dispatch utilities."""

from bypass_guard.services.notifications.queue import (
    TASK_TYPE,
    NotificationIntent,
    decode_notification_task,
    enqueue_notification,
    enqueue_notifications,
)

__all__ = [
    "TASK_TYPE",
    "NotificationIntent",
    "decode_notification_task",
    "enqueue_notification",
    "enqueue_notifications",
]
