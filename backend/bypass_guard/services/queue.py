"""Redis list-backed task queue with a sorted-set side queue for delayed retries."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, cast

import redis

from bypass_guard.core.config import settings
from bypass_guard.core.logging import get_logger

logger = get_logger(__name__)

_SCHEDULED_SUFFIX = ":scheduled"
_DRAIN_BATCH_SIZE = 100


@dataclass(frozen=True)
class QueuedTask:
    """Envelope stored in Redis for every background task."""

    task_type: str
    payload: dict[str, Any]
    created_at: datetime
    attempts: int = 0

    def to_json(self) -> str:
        return json.dumps(
            {
                "task_type": self.task_type,
                "payload": self.payload,
                "created_at": self.created_at.isoformat(),
                "attempts": self.attempts,
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> QueuedTask:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data: dict[str, Any] = json.loads(raw)
        created_raw = data.get("created_at")
        created_at = (
            datetime.fromisoformat(created_raw)
            if isinstance(created_raw, str)
            else datetime.now(UTC)
        )
        return cls(
            task_type=str(data["task_type"]),
            payload=dict(data.get("payload") or {}),
            created_at=created_at,
            attempts=int(data.get("attempts", 0)),
        )


def _redis_client(redis_url: str | None = None) -> redis.Redis:
    return redis.Redis.from_url(redis_url or settings.rq_redis_url)


def _scheduled_key(queue_name: str) -> str:
    return f"{queue_name}{_SCHEDULED_SUFFIX}"


def _now_seconds() -> float:
    return time.time()


def _promote_due_tasks(client: redis.Redis, queue_name: str) -> float | None:
    """Move due delayed tasks onto the main list.

    Returns the number of seconds until the next delayed task is due, or None
    when nothing is scheduled.
    """
    scheduled_key = _scheduled_key(queue_name)
    now = _now_seconds()
    due = cast(
        list[str | bytes],
        client.zrangebyscore(scheduled_key, "-inf", now, start=0, num=_DRAIN_BATCH_SIZE),
    )
    if due:
        client.lpush(queue_name, *due)
        client.zrem(scheduled_key, *due)
        logger.debug(
            "queue.scheduled.promoted",
            extra={"queue_name": queue_name, "count": len(due)},
        )

    upcoming = cast(
        list[tuple[str | bytes, float]],
        client.zrangebyscore(scheduled_key, now, "+inf", start=0, num=1, withscores=True),
    )
    if not upcoming:
        return None
    return max(0.0, float(upcoming[0][1]) - now)


def enqueue_task(
    task: QueuedTask,
    queue_name: str,
    *,
    redis_url: str | None = None,
) -> bool:
    """Push a task onto the queue; returns False instead of raising on Redis errors."""
    try:
        _redis_client(redis_url=redis_url).lpush(queue_name, task.to_json())
    except Exception as exc:
        logger.warning(
            "queue.enqueue_failed",
            extra={"task_type": task.task_type, "queue_name": queue_name, "error": str(exc)},
        )
        return False
    logger.info(
        "queue.enqueued",
        extra={"task_type": task.task_type, "queue_name": queue_name, "attempt": task.attempts},
    )
    return True


def enqueue_task_with_delay(
    task: QueuedTask,
    queue_name: str,
    *,
    delay_seconds: float,
    redis_url: str | None = None,
) -> bool:
    """Enqueue now, or park the task in the delayed set until `delay_seconds` pass."""
    delay = max(0.0, float(delay_seconds))
    if delay == 0:
        return enqueue_task(task, queue_name, redis_url=redis_url)
    try:
        client = _redis_client(redis_url=redis_url)
        client.zadd(_scheduled_key(queue_name), {task.to_json(): _now_seconds() + delay})
    except Exception as exc:
        logger.warning(
            "queue.schedule_failed",
            extra={
                "task_type": task.task_type,
                "queue_name": queue_name,
                "delay_seconds": delay,
                "error": str(exc),
            },
        )
        return False
    logger.info(
        "queue.scheduled",
        extra={"task_type": task.task_type, "queue_name": queue_name, "delay_seconds": delay},
    )
    return True


def dequeue_task(
    queue_name: str,
    *,
    redis_url: str | None = None,
    block: bool = False,
    block_timeout: float = 0,
) -> QueuedTask | None:
    """Pop the oldest task, optionally blocking up to `block_timeout` seconds."""
    client = _redis_client(redis_url=redis_url)
    raw: str | bytes | None
    if block:
        timeout = max(0.0, float(block_timeout))
        next_due = _promote_due_tasks(client, queue_name)
        if next_due is not None:
            timeout = min(timeout, next_due) if timeout else next_due
        popped = cast(
            tuple[bytes | str, bytes | str] | None,
            client.brpop([queue_name], timeout=timeout),
        )
        raw = popped[1] if popped is not None else None
    else:
        raw = cast(str | bytes | None, client.rpop(queue_name))

    if raw is None:
        if not block:
            _promote_due_tasks(client, queue_name)
        return None
    try:
        return QueuedTask.from_json(raw)
    except (KeyError, TypeError, ValueError) as exc:
        logger.error(
            "queue.decode_failed",
            extra={"queue_name": queue_name, "raw_payload": str(raw), "error": str(exc)},
        )
        raise


def requeue_if_failed(
    task: QueuedTask,
    queue_name: str,
    *,
    max_retries: int,
    redis_url: str | None = None,
    delay_seconds: float = 0,
) -> bool:
    """Requeue a failed task with one more attempt; drop it past `max_retries`."""
    retried = replace(task, attempts=task.attempts + 1)
    if retried.attempts > max_retries:
        logger.warning(
            "queue.drop_failed_task",
            extra={
                "task_type": task.task_type,
                "queue_name": queue_name,
                "attempts": retried.attempts,
            },
        )
        return False
    return enqueue_task_with_delay(
        retried,
        queue_name,
        delay_seconds=delay_seconds,
        redis_url=redis_url,
    )
