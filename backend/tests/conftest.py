from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

_PROVIDER_ENV = (
    "RESNIK_CHAT_PROVIDER",
    "CLOUDFLARE_ACCOUNT_ID",
    "CLOUDFLARE_API_TOKEN",
    "OPENAI_API_KEY",
    "RESNIK_CHAT_TIMEOUT_SECONDS",
)


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "resnik-test.sqlite"
    monkeypatch.setenv("RESNIK_DB_PATH", str(db_path))
    # Keep CI deterministic; chat tests install their own fake provider.
    for name in _PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def nominal_telemetry() -> dict[str, Any]:
    return {
        "primaryO2": 3200,
        "secondaryO2": 3400,
        "suitPressure": 4.3,
        "heartRate": 72,
        "temperature": 21.5,
        "position": {"lat": -23.4, "lon": 12.8},
        "ltvDistance": 127,
        "ltvBearing": 45,
    }


@pytest.fixture
def fake_inference(backend_module, monkeypatch) -> Callable[..., list[list[dict[str, str]]]]:
    """Replace the hosted model with a canned reply; returns the captured calls."""

    def _install(reply: str = "Copy. All systems nominal.") -> list[list[dict[str, str]]]:
        calls: list[list[dict[str, str]]] = []

        def _run_chat(messages: list[dict[str, str]]) -> str:
            calls.append(messages)
            return reply

        monkeypatch.setattr(backend_module.inference, "run_chat", _run_chat)
        return calls

    return _install
