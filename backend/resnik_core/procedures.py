from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProcedureDoc:
    key: str
    title: str
    section: str
    steps: tuple[str, ...] | None = None
    guidance: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": self.title, "section": self.section}
        if self.steps is not None:
            payload["steps"] = list(self.steps)
        if self.guidance is not None:
            payload["guidance"] = self.guidance
        return payload


EGRESS = ProcedureDoc(
    key="egress",
    title="EVA Egress Procedure",
    section="EVA Manual §4.2.1",
    steps=(
        "Verify UIA connections secure",
        "Check Primary O2 ≥ 3000 psi",
        "Check Secondary O2 ≥ 3000 psi",
        "Verify suit pressure nominal (4.0-4.5 psi)",
        "Disconnect Primary O2 umbilical",
        "Disconnect Secondary O2 umbilical",
        "Disconnect power umbilical",
        "Release tether connection",
        "Proceed through airlock",
    ),
)

EMERGENCY = ProcedureDoc(
    key="emergency",
    title="Emergency Return Protocol",
    section="Emergency Procedures §2.1",
    steps=(
        "IMMEDIATELY cease current activity",
        "Assess vital signs and O2 levels",
        "Calculate fastest route to rover/LTV",
        "Notify Mission Control via emergency channel",
        "Begin return navigation",
        "Monitor vitals continuously",
        "Request assistance if needed",
    ),
)

NAVIGATION = ProcedureDoc(
    key="navigation",
    title="Navigation Procedures",
    section="Navigation Manual §3.4",
    guidance=(
        "Use bearing and distance information. Follow optimal route calculated by Resnik. "
        "Avoid craters and steep slopes marked as hazards. "
        "Maintain visual contact with LTV or rover when possible."
    ),
)

PROCEDURES: dict[str, ProcedureDoc] = {doc.key: doc for doc in (EGRESS, EMERGENCY, NAVIGATION)}

# Order matters: the first rule with a matching keyword wins.
_MATCH_RULES: tuple[tuple[tuple[str, ...], ProcedureDoc], ...] = (
    (("egress", "exit"), EGRESS),
    (("emergency", "abort"), EMERGENCY),
    (("navigation", "route"), NAVIGATION),
)


def match(query: str) -> ProcedureDoc | None:
    lowered = (query or "").lower()
    for keywords, doc in _MATCH_RULES:
        if any(keyword in lowered for keyword in keywords):
            return doc
    return None
