"""Emergency and telemetry alert rules.

Telemetry thresholds are checked first; keyword matching on the user's text can
only add an emergency, never clear a telemetry alert.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from .models import TelemetrySnapshot

O2_MIN_PSI = 2900
HEART_RATE_MAX_BPM = 105
SUIT_PRESSURE_MIN_PSI = 4.0

EMERGENCY_KEYWORDS = ("emergency", "critical", "abort", "help", "danger")


@dataclass(frozen=True)
class AlertResult:
    emergency: bool
    telemetry_alert: bool
    triggered_rules: tuple[str, ...] = field(default=())


def telemetry_rules(telemetry: TelemetrySnapshot) -> tuple[str, ...]:
    triggered: list[str] = []
    if telemetry.primary_o2 < O2_MIN_PSI:
        triggered.append("primary_o2_low")
    if telemetry.secondary_o2 < O2_MIN_PSI:
        triggered.append("secondary_o2_low")
    if telemetry.heart_rate > HEART_RATE_MAX_BPM:
        triggered.append("heart_rate_high")
    if telemetry.suit_pressure < SUIT_PRESSURE_MIN_PSI:
        triggered.append("suit_pressure_low")
    return tuple(triggered)


def text_matches_any(text: str, keywords: tuple[str, ...] = EMERGENCY_KEYWORDS) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def evaluate(text: str, telemetry: TelemetrySnapshot) -> AlertResult:
    triggered = telemetry_rules(telemetry)
    telemetry_alert = bool(triggered)
    return AlertResult(
        emergency=telemetry_alert or text_matches_any(text),
        telemetry_alert=telemetry_alert,
        triggered_rules=triggered,
    )
