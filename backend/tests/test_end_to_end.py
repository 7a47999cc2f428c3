# ruff: noqa: INP001
"""Full lifecycles: approval through reactivation advice, and an undecided request expiring."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from bypass_guard.core.time import utcnow
from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.sensors import Sensor
from bypass_guard.schemas.bypass_requests import BypassRequestCreate
from bypass_guard.services import bypass_requests as engine_module
from bypass_guard.services import request_sweeper, sensor_reactivation
from bypass_guard.services.bypass_requests import submit_request, validate_request
from bypass_guard.services.notifications.queue import NotificationIntent
from bypass_guard.services.request_sweeper import process_requests
from bypass_guard.services.sensor_reactivation import notify_sensor_reactivations
from plant_seed import make_engine, make_session, seed_plant


@pytest.mark.asyncio
async def test_calibration_bypass_lifecycle(monkeypatch: pytest.MonkeyPatch) -> None:
    outbox: list[NotificationIntent] = []

    def _single(intent: NotificationIntent) -> bool:
        outbox.append(intent)
        return True

    def _batch(intents: Any) -> int:
        batch = list(intents)
        outbox.extend(batch)
        return len(batch)

    monkeypatch.setattr(engine_module, "enqueue_notifications", _batch)
    monkeypatch.setattr(request_sweeper, "enqueue_notification", _single)
    monkeypatch.setattr(sensor_reactivation, "enqueue_notification", _single)

    engine = await make_engine()
    try:
        async with make_session(engine) as session:
            plant = await seed_plant(session)
            start = utcnow()
            request = await submit_request(
                session,
                requester=plant.requester,
                payload=BypassRequestCreate(
                    title="calibration",
                    priority="low",
                    equipment_id=plant.equipment.id,
                    sensor_id=plant.sensor.id,
                    start_time=start,
                    estimated_duration_hours=2,
                    mitigation_measures=["Surveillance manuelle"],
                    safety_acknowledged=True,
                    responsibility_acknowledged=True,
                ),
            )
            await validate_request(
                session,
                request_id=request.id,
                validator=plant.supervisor,
                decision="approved",
                comment="RAS",
            )
            outbox.clear()

            later = start + timedelta(hours=3)
            sweep = await process_requests(session, now=later)
            assert sweep.reminders_sent == 0
            assert sweep.cancelled == 0

            advised = await notify_sensor_reactivations(session, now=later)
            assert advised == 2
            assert all("📝 Requête : Étalonnage" in intent.message for intent in outbox)

            sensor = await Sensor.objects.by_id(plant.sensor.id).first(session)
            assert sensor is not None and sensor.status == "bypassed"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_undecided_calibration_request_is_reminded_then_auto_cancelled(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    outbox: list[NotificationIntent] = []

    def _single(intent: NotificationIntent) -> bool:
        outbox.append(intent)
        return True

    monkeypatch.setattr(engine_module, "enqueue_notifications", lambda intents: len(list(intents)))
    monkeypatch.setattr(request_sweeper, "enqueue_notification", _single)

    engine = await make_engine()
    try:
        async with make_session(engine) as session:
            plant = await seed_plant(session)
            start = utcnow()
            request = await submit_request(
                session,
                requester=plant.requester,
                payload=BypassRequestCreate(
                    title="calibration",
                    equipment_id=plant.equipment.id,
                    sensor_id=plant.sensor.id,
                    start_time=start,
                    end_time=start + timedelta(hours=4),
                    mitigation_measures=["Surveillance manuelle"],
                    safety_acknowledged=True,
                    responsibility_acknowledged=True,
                ),
            )
            request_id = request.id

            reminded = await process_requests(session, now=start + timedelta(hours=1))
            assert (reminded.reminders_sent, reminded.cancelled) == (2, 0)
            assert sorted((i.event_type, i.recipient_phone) for i in outbox) == [
                ("pending_reminder", "+33600000002"),
                ("pending_reminder", "+33600000004"),
            ]
            outbox.clear()

            expired = await process_requests(session, now=start + timedelta(hours=5))
            assert (expired.reminders_sent, expired.cancelled) == (0, 1)
            assert expired.cancel_notifications_sent == 2
            assert sorted((i.event_type, i.recipient_phone) for i in outbox) == [
                ("auto_cancelled", "+33600000002"),
                ("auto_cancelled", "+33600000004"),
            ]
            assert all("📝 Titre : Étalonnage" in intent.message for intent in outbox)

            stored = await BypassRequest.objects.by_id(request_id).first(session)
            assert stored is not None and stored.status == "cancelled"
            sensor = await Sensor.objects.by_id(plant.sensor.id).first(session)
            assert sensor is not None and sensor.status == "active"
    finally:
        await engine.dispose()
