# ruff: noqa: INP001
"""French WhatsApp message rendering."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

import pytest

from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.equipment import Equipment
from bypass_guard.models.sensors import Sensor
from bypass_guard.models.users import User
from bypass_guard.services import messages


def _request(**overrides: object) -> BypassRequest:
    values: dict[str, object] = {
        "request_code": "BR-2026-007",
        "requester_id": uuid4(),
        "equipment_id": uuid4(),
        "sensor_id": uuid4(),
        "title": "emergency_repair",
        "priority": "high",
        "start_time": datetime(2026, 3, 1, 6, 0),
        "end_time": datetime(2026, 3, 1, 14, 30),
    }
    values.update(overrides)
    return BypassRequest(**values)


def _requester() -> User:
    return User(full_name="Alice Martin", email="alice@plant.example", role="user")


@pytest.mark.parametrize(
    ("key", "label"),
    [
        ("preventive_maintenance", "Maintenance préventive"),
        ("calibration", "Étalonnage"),
        ("emergency_repair", "Réparation d'urgence"),
        ("unknown_reason", "unknown_reason"),
    ],
)
def test_reason_labels(key: str, label: str) -> None:
    assert messages.reason_label(key) == label


def test_created_message_layout() -> None:
    text = messages.request_created_message(
        _request(),
        _requester(),
        now=datetime(2026, 2, 28, 9, 5),
    )
    assert text.splitlines() == [
        "📌 *Nouvelle Demande Créée*",
        "👤 Demandeur : Alice Martin",
        "📝 Titre : Réparation d'urgence",
        "⚡ Priorité : Élevée",
        "📅 Soumis le : 28/02/2026 09:05",
        "🔍 Statut : En cours de validation.",
    ]


def test_to_validate_message_links_validation_page(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(messages.settings, "base_url", "https://bypass.example/")
    text = messages.request_to_validate_message(
        _request(),
        _requester(),
        now=datetime(2026, 2, 28, 9, 5),
    )
    assert text.splitlines()[-1] == "🌐 https://bypass.example/validation"

    monkeypatch.setattr(messages.settings, "base_url", "")
    text = messages.request_to_validate_message(
        _request(),
        _requester(),
        now=datetime(2026, 2, 28, 9, 5),
    )
    assert "🌐" not in text


def test_rejection_message_includes_reason_only_when_rejected() -> None:
    request = _request(rejection_reason="Plan de contingence absent")
    rejected = messages.request_decision_message(
        request,
        decision="rejected",
        validated_at=datetime(2026, 3, 1, 7, 0),
    )
    approved = messages.request_decision_message(
        request,
        decision="approved",
        validated_at=datetime(2026, 3, 1, 7, 0),
        requester=_requester(),
    )
    assert "📌 *Notification : Requête Rejetée*" in rejected
    assert "❌ Raison du rejet : Plan de contingence absent" in rejected
    assert "👤 Demandeur" not in rejected
    assert "❌" not in approved
    assert "👤 Demandeur : Alice Martin" in approved
    assert "📅 Validée le : 01/03/2026 07:00" in approved


def test_sweeper_messages_show_deadline() -> None:
    request = _request(priority="low")
    reminder = messages.pending_reminder_message(request, _requester())
    cancelled = messages.auto_cancelled_message(request)
    assert "📅 Date limite : 01/03/2026 14:30" in reminder
    assert "⚡ Priorité : Faible" in reminder
    assert "Annulée automatiquement car la date limite a été dépassée." in cancelled


def test_reactivation_message_identifies_sensor() -> None:
    equipment = Equipment(code="P-101", name="Pompe P-101")
    sensor = Sensor(equipment_id=uuid4(), code="PT-101", name="PT-101")
    text = messages.reactivation_required_message(
        _request(title="calibration"),
        requester=_requester(),
        equipment=equipment,
        sensor=sensor,
    )
    assert "📝 Requête : Étalonnage" in text
    assert f"📡 Capteur : PT-101 (ID: {sensor.id})" in text
    assert "📅 Date de fin prévue : 01/03/2026 14:30" in text
