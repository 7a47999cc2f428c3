# ruff: noqa: INP001
"""Generic Redis queue helper tests."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from bypass_guard.services import queue as queue_module
from bypass_guard.services.queue import (
    QueuedTask,
    dequeue_task,
    enqueue_task,
    enqueue_task_with_delay,
    requeue_if_failed,
)
from fake_redis import FakeRedis


def _install(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    fake = FakeRedis()

    def _fake_redis(*, redis_url: str | None = None) -> FakeRedis:
        return fake

    monkeypatch.setattr("bypass_guard.services.queue._redis_client", _fake_redis)
    return fake


def _task(attempts: int = 0) -> QueuedTask:
    return QueuedTask(
        task_type="generic-task",
        payload={"name": "reminder"},
        created_at=datetime.now(UTC),
        attempts=attempts,
    )


def test_enqueue_then_dequeue_preserves_envelope(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch)
    task = _task(attempts=2)

    assert enqueue_task(task, "generic-queue")
    item = dequeue_task("generic-queue")

    assert item == task
    assert dequeue_task("generic-queue") is None


def test_enqueue_returns_false_when_redis_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(*, redis_url: str | None = None) -> FakeRedis:
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr("bypass_guard.services.queue._redis_client", _broken)
    assert enqueue_task(_task(), "generic-queue") is False


@pytest.mark.parametrize("attempts", [0, 1, 2, 3])
def test_requeue_respects_retry_cap(monkeypatch: pytest.MonkeyPatch, attempts: int) -> None:
    fake = _install(monkeypatch)

    requeued = requeue_if_failed(_task(attempts), "generic-queue", max_retries=3)

    if attempts >= 3:
        assert requeued is False
        assert fake.lists.get("generic-queue", []) == []
    else:
        assert requeued is True
        item = dequeue_task("generic-queue")
        assert item is not None
        assert item.attempts == attempts + 1


def test_delayed_task_is_promoted_once_due(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install(monkeypatch)
    clock = {"now": 1_000.0}
    monkeypatch.setattr(queue_module, "_now_seconds", lambda: clock["now"])

    assert enqueue_task_with_delay(_task(), "generic-queue", delay_seconds=30)
    assert fake.zsets["generic-queue:scheduled"]
    assert dequeue_task("generic-queue") is None

    clock["now"] = 1_031.0
    # The first empty pop promotes the due task; the next pop returns it.
    assert dequeue_task("generic-queue") is None
    item = dequeue_task("generic-queue")
    assert item is not None
    assert item.task_type == "generic-task"
    assert fake.zsets["generic-queue:scheduled"] == {}


def test_zero_delay_enqueues_immediately(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install(monkeypatch)
    assert enqueue_task_with_delay(_task(), "generic-queue", delay_seconds=0)
    assert len(fake.lists["generic-queue"]) == 1
    assert "generic-queue:scheduled" not in fake.zsets


def test_dequeue_raises_on_undecodable_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install(monkeypatch)
    fake.lpush("generic-queue", '{"payload": {}}')

    with pytest.raises(KeyError):
        dequeue_task("generic-queue")
