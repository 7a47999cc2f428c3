# ruff: noqa: INP001
"""Notification intent encoding and enqueue behavior."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from bypass_guard.services.notifications.queue import (
    TASK_TYPE,
    NotificationIntent,
    decode_notification_task,
    enqueue_notification,
    enqueue_notifications,
    requeue_if_failed,
)
from bypass_guard.services.queue import QueuedTask, dequeue_task
from fake_redis import FakeRedis


def _install(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    fake = FakeRedis()

    def _fake_redis(*, redis_url: str | None = None) -> FakeRedis:
        return fake

    monkeypatch.setattr("bypass_guard.services.queue._redis_client", _fake_redis)
    return fake


def _intent(**overrides: object) -> NotificationIntent:
    values: dict[str, object] = {
        "event_type": "pending_reminder",
        "recipient_phone": "+33600000002",
        "message": "📌 *Rappel : Demande en attente*",
        "request_id": uuid4(),
    }
    values.update(overrides)
    return NotificationIntent(**values)  # type: ignore[arg-type]


def test_enqueued_intent_decodes_back(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch)
    intent = _intent()

    assert enqueue_notification(intent)
    task = dequeue_task("bypass-notifications")

    assert task is not None
    assert task.task_type == TASK_TYPE
    decoded = decode_notification_task(task)
    assert decoded.event_type == intent.event_type
    assert decoded.recipient_phone == intent.recipient_phone
    assert decoded.message == intent.message
    assert decoded.request_id == intent.request_id


def test_intent_without_request_id_is_supported(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch)
    assert enqueue_notification(_intent(request_id=None))
    task = dequeue_task("bypass-notifications")
    assert task is not None
    assert decode_notification_task(task).request_id is None


def test_decode_rejects_foreign_task_type() -> None:
    task = QueuedTask(task_type="other", payload={}, created_at=datetime.now(UTC))
    with pytest.raises(ValueError, match="Unexpected task_type"):
        decode_notification_task(task)


def test_enqueue_never_raises_when_redis_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(*, redis_url: str | None = None) -> FakeRedis:
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr("bypass_guard.services.queue._redis_client", _broken)
    assert enqueue_notification(_intent()) is False
    assert enqueue_notifications([_intent(), _intent()]) == 0


def test_enqueue_notifications_counts_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install(monkeypatch)
    assert enqueue_notifications([_intent(), _intent(), _intent()]) == 3
    assert len(fake.lists["bypass-notifications"]) == 3


def test_requeue_stops_after_max_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install(monkeypatch)
    assert requeue_if_failed(_intent(attempts=2)) is True
    assert requeue_if_failed(_intent(attempts=3)) is False
    assert len(fake.lists["bypass-notifications"]) == 1
