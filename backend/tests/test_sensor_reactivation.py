# ruff: noqa: INP001
"""Advisory reactivation notifier: candidate selection and side-effect freedom."""

from __future__ import annotations

from datetime import timedelta

import pytest

from bypass_guard.core.time import utcnow
from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.sensors import Sensor
from bypass_guard.services import sensor_reactivation
from bypass_guard.services.bypass_requests import is_active_bypass, needs_reactivation
from bypass_guard.services.notifications.queue import NotificationIntent
from bypass_guard.services.sensor_reactivation import (
    notify_sensor_reactivations,
    select_reactivation_candidates,
)
from plant_seed import add_request, add_sensor, make_engine, make_session, seed_plant


def _capture(monkeypatch: pytest.MonkeyPatch) -> list[NotificationIntent]:
    captured: list[NotificationIntent] = []

    def _fake_enqueue(intent: NotificationIntent) -> bool:
        captured.append(intent)
        return True

    monkeypatch.setattr(sensor_reactivation, "enqueue_notification", _fake_enqueue)
    return captured


@pytest.mark.asyncio
async def test_candidates_require_approved_expired_and_still_bypassed() -> None:
    now = utcnow()
    engine = await make_engine()
    try:
        async with make_session(engine) as session:
            plant = await seed_plant(session)
            overdue_sensor = await add_sensor(session, plant.equipment, code="LT-1", status="bypassed")
            restored_sensor = await add_sensor(session, plant.equipment, code="LT-2", status="active")
            running_sensor = await add_sensor(session, plant.equipment, code="LT-3", status="bypassed")
            pending_sensor = await add_sensor(session, plant.equipment, code="LT-4", status="bypassed")

            overdue = await add_request(
                session,
                plant,
                sensor=overdue_sensor,
                status="approved",
                end_time=now - timedelta(hours=1),
            )
            await add_request(
                session,
                plant,
                sensor=restored_sensor,
                status="approved",
                end_time=now - timedelta(hours=1),
            )
            running = await add_request(
                session,
                plant,
                sensor=running_sensor,
                status="approved",
                end_time=now + timedelta(hours=1),
            )
            await add_request(
                session,
                plant,
                sensor=pending_sensor,
                status="pending",
                end_time=now - timedelta(hours=1),
            )

            candidates = await select_reactivation_candidates(session, now=now)

            assert [c.request.id for c in candidates] == [overdue.id]
            candidate = candidates[0]
            assert candidate.sensor.id == overdue_sensor.id
            assert candidate.requester.id == plant.requester.id
            assert candidate.equipment.id == plant.equipment.id
            assert needs_reactivation(candidate.request, candidate.sensor, now)
            assert is_active_bypass(running, running_sensor, now)
            assert not needs_reactivation(running, running_sensor, now)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_notifier_advises_every_approver_and_mutates_nothing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured = _capture(monkeypatch)
    now = utcnow()
    engine = await make_engine()
    try:
        async with make_session(engine) as session:
            plant = await seed_plant(session)
            sensor = await add_sensor(session, plant.equipment, code="FT-9", status="bypassed")
            request = await add_request(
                session,
                plant,
                sensor=sensor,
                status="approved",
                end_time=now - timedelta(days=1),
            )

            first = await notify_sensor_reactivations(session, now=now)
            second = await notify_sensor_reactivations(session, now=now)

            assert first == second == 2
            assert len(captured) == 4
            assert {intent.event_type for intent in captured} == {"reactivation_required"}
            assert sorted({intent.recipient_phone for intent in captured}) == [
                "+33600000002",
                "+33600000004",
            ]
            message = captured[0].message
            assert "Réactivation de Capteur" in message
            assert f"📡 Capteur : Capteur FT-9 (ID: {sensor.id})" in message
            assert "🔧 Équipement : Pompe P-101" in message

            stored_sensor = await Sensor.objects.by_id(sensor.id).first(session)
            stored_request = await BypassRequest.objects.by_id(request.id).first(session)
            assert stored_sensor is not None and stored_sensor.status == "bypassed"
            assert stored_request is not None and stored_request.status == "approved"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_notifier_is_quiet_without_candidates(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)
    engine = await make_engine()
    try:
        async with make_session(engine) as session:
            await seed_plant(session)
            assert await notify_sensor_reactivations(session, now=utcnow()) == 0
        assert captured == []
    finally:
        await engine.dispose()
