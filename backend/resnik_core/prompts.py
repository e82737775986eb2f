from __future__ import annotations

import math

from .models import TelemetrySnapshot

RESNIK_SYSTEM_PROMPT = """You are RESNIK, an AI mission assistant supporting astronauts during extravehicular activities (EVA) on lunar missions.

CORE FUNCTIONS:
- Monitor and report telemetry data (O2 levels, suit pressure, vitals)
- Provide navigation assistance and route planning
- Guide astronauts through procedures with step-by-step instructions
- Answer mission-related questions concisely
- Detect and respond to emergency situations

COMMUNICATION STYLE:
- Concise and direct (NASA style)
- Use specific measurements and units
- Prioritize critical information
- Example: "Primary O2: 3200 psi. Secondary: 3400 psi. Nominal."

SAFETY PROTOCOLS:
- Always prioritize astronaut safety
- Escalate critical situations immediately
- Recommend Mission Control verification for critical decisions
- Never provide uncertain information without qualification

LIMITATIONS:
- Only access pre-loaded NASA documentation
- Cannot make autonomous mission-critical decisions
- Serve as decision support, not autonomous authority

You have access to real-time telemetry. Respond using this contextual information. If uncertain, clearly state limitations and recommend Mission Control consultation."""

HISTORY_WINDOW = 10


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _plain(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def build_context_message(telemetry: TelemetrySnapshot, message: str) -> str:
    position = telemetry.position
    return (
        "Current Telemetry:\n"
        f"- Primary O2: {_round_half_up(telemetry.primary_o2)} psi\n"
        f"- Secondary O2: {_round_half_up(telemetry.secondary_o2)} psi\n"
        f"- Suit Pressure: {telemetry.suit_pressure:.1f} psi\n"
        f"- Heart Rate: {_plain(telemetry.heart_rate)} bpm\n"
        f"- Temperature: {telemetry.temperature:.1f}°C\n"
        f"- Position: {_plain(position.lat)}°S, {_plain(position.lon)}°W\n"
        f"- LTV Distance: {_plain(telemetry.ltv_distance)}m, Bearing: {_plain(telemetry.ltv_bearing)}°\n"
        "\n"
        f"User Query: {message}"
    )


def build_chat_messages(
    *,
    message: str,
    history: list[dict[str, str]],
    telemetry: TelemetrySnapshot,
) -> list[dict[str, str]]:
    recent_history = history[-HISTORY_WINDOW:]
    return [
        {"role": "system", "content": RESNIK_SYSTEM_PROMPT},
        *[{"role": turn["role"], "content": turn["content"]} for turn in recent_history],
        {"role": "user", "content": build_context_message(telemetry, message)},
    ]
