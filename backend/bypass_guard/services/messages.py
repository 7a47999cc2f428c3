"""WhatsApp message rendering for bypass request notifications.

Reason and priority keys are translated to French labels here and nowhere
else; everything upstream works with the enum keys.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from bypass_guard.core.config import settings
from bypass_guard.models.enums import RequestPriority, RequestReason, ValidationDecision

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from bypass_guard.models.bypass_requests import BypassRequest
    from bypass_guard.models.equipment import Equipment
    from bypass_guard.models.sensors import Sensor
    from bypass_guard.models.users import User

DATETIME_DISPLAY_FORMAT = "%d/%m/%Y %H:%M"

REASON_LABELS: Mapping[str, str] = MappingProxyType(
    {
        RequestReason.PREVENTIVE_MAINTENANCE: "Maintenance préventive",
        RequestReason.CORRECTIVE_MAINTENANCE: "Maintenance corrective",
        RequestReason.CALIBRATION: "Étalonnage",
        RequestReason.TESTING: "Tests",
        RequestReason.EMERGENCY_REPAIR: "Réparation d'urgence",
        RequestReason.SYSTEM_UPGRADE: "Mise à niveau système",
        RequestReason.INVESTIGATION: "Investigation",
        RequestReason.OTHER: "Autre",
    },
)

PRIORITY_LABELS: Mapping[str, str] = MappingProxyType(
    {
        RequestPriority.LOW: "Faible",
        RequestPriority.MEDIUM: "Moyenne",
        RequestPriority.HIGH: "Élevée",
    },
)

DECISION_LABELS: Mapping[str, str] = MappingProxyType(
    {
        ValidationDecision.APPROVED: "Approuvée",
        ValidationDecision.REJECTED: "Rejetée",
    },
)


def reason_label(key: str) -> str:
    """Human label for a reason key; unknown keys render as-is."""
    return REASON_LABELS.get(key, key)


def priority_label(key: str) -> str:
    return PRIORITY_LABELS.get(key, key)


def format_deadline(value: datetime) -> str:
    return value.strftime(DATETIME_DISPLAY_FORMAT)


def _lines(*parts: str) -> str:
    return "\n".join(parts)


def request_created_message(request: BypassRequest, requester: User, *, now: datetime) -> str:
    return _lines(
        "📌 *Nouvelle Demande Créée*",
        f"👤 Demandeur : {requester.full_name}",
        f"📝 Titre : {reason_label(request.title)}",
        f"⚡ Priorité : {priority_label(request.priority)}",
        f"📅 Soumis le : {format_deadline(now)}",
        "🔍 Statut : En cours de validation.",
    )


def request_to_validate_message(request: BypassRequest, requester: User, *, now: datetime) -> str:
    lines = [
        "📌 *Nouvelle Demande à Valider*",
        f"👤 Demandeur : {requester.full_name}",
        f"📝 Titre : {reason_label(request.title)}",
        f"⚡ Priorité : {priority_label(request.priority)}",
        f"📅 Soumis le : {format_deadline(now)}",
        "🔍 Statut : En attente de votre validation.",
        "📂 Consultez la demande dans le système pour plus de détails.",
    ]
    if settings.base_url:
        lines.append(f"🌐 {settings.base_url.rstrip('/')}/validation")
    return _lines(*lines)


def request_updated_message(request: BypassRequest, requester: User, *, now: datetime) -> str:
    return _lines(
        "📌 *Demande Modifiée*",
        f"👤 Demandeur : {requester.full_name}",
        f"📝 Code : {request.request_code}",
        f"📝 Titre : {reason_label(request.title)}",
        f"⚡ Priorité : {priority_label(request.priority)}",
        f"📅 Modifiée le : {format_deadline(now)}",
        "🔍 Statut : En attente de validation.",
    )


def request_decision_message(
    request: BypassRequest,
    *,
    decision: ValidationDecision,
    validated_at: datetime,
    requester: User | None = None,
) -> str:
    """Decision notice; pass `requester` to include the requester line (admin copy)."""
    status_label = DECISION_LABELS[decision]
    lines = [f"📌 *Notification : Requête {status_label}*"]
    if requester is not None:
        lines.append(f"👤 Demandeur : {requester.full_name}")
    lines.append(f"📝 Titre : {reason_label(request.title)}")
    lines.append(f"⚡ Statut : {status_label}")
    if decision == ValidationDecision.REJECTED and request.rejection_reason:
        lines.append(f"❌ Raison du rejet : {request.rejection_reason}")
    lines.append(f"📅 Validée le : {format_deadline(validated_at)}")
    return _lines(*lines)


def pending_reminder_message(request: BypassRequest, requester: User) -> str:
    return _lines(
        "📌 *Rappel : Demande en attente*",
        f"👤 Demandeur : {requester.full_name}",
        f"📝 Titre : {reason_label(request.title)}",
        f"⚡ Priorité : {priority_label(request.priority)}",
        f"📅 Date limite : {format_deadline(request.end_time)}",
        "🔍 Statut : En attente de validation.",
        "Merci de traiter cette demande dès que possible.",
    )


def auto_cancelled_message(request: BypassRequest) -> str:
    return _lines(
        "📌 *Notification : Demande annulée*",
        f"📝 Titre : {reason_label(request.title)}",
        f"⚡ Priorité : {priority_label(request.priority)}",
        f"📅 Date limite : {format_deadline(request.end_time)}",
        "🔍 Statut : Annulée automatiquement car la date limite a été dépassée.",
    )


def reactivation_required_message(
    request: BypassRequest,
    *,
    requester: User,
    equipment: Equipment,
    sensor: Sensor,
) -> str:
    return _lines(
        "⚠️ *Alerte : Réactivation de Capteur & Son Equipement associe Requise*",
        f"📝 Requête : {reason_label(request.title)}",
        f"👤 Demandeur : {requester.full_name}",
        f"🔧 Équipement : {equipment.name}",
        f"📡 Capteur : {sensor.name} (ID: {sensor.id})",
        f"📅 Date de fin prévue : {format_deadline(request.end_time)}",
        "🔍 Statut actuel : Inactif",
        "⏰ Action requise : Veuillez vérifier et réactiver le capteur si nécessaire.",
    )
