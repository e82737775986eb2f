from __future__ import annotations

import copy
import hashlib
import threading
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from .database import SQLiteStateDB
from .time_utils import epoch_ms

logger = structlog.get_logger()

MAX_MESSAGES = 50

MESSAGES_KEY = "messages"
TELEMETRY_KEY = "telemetry"

DEFAULT_TELEMETRY: dict[str, Any] = {
    "primaryO2": 3200,
    "secondaryO2": 3400,
    "suitPressure": 4.3,
    "heartRate": 72,
    "temperature": 21.5,
    "position": {"lat": -23.4, "lon": 12.8},
    "ltvDistance": 127,
    "ltvBearing": 45,
}


def namespace_id(conversation_id: str) -> str:
    return f"conv_{hashlib.sha256(conversation_id.encode('utf-8')).hexdigest()[:32]}"


def default_telemetry() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_TELEMETRY)


class ConversationStateStore:
    """Per-conversation message log and latest telemetry snapshot.

    Every operation is a single read-modify-write in one transaction, run while
    holding the conversation's own lock so writes to one id never interleave.
    Writes also open the transaction with BEGIN IMMEDIATE, which serializes
    them across processes sharing the database file.
    """

    def __init__(self, db: SQLiteStateDB, max_messages: int = MAX_MESSAGES) -> None:
        self._db = db
        self._max_messages = max_messages
        # ns_id -> [lock, number of callers holding or waiting on it]
        self._locks: dict[str, list[Any]] = {}
        self._locks_guard = threading.Lock()

    def _acquire_slot(self, ns_id: str) -> threading.Lock:
        with self._locks_guard:
            slot = self._locks.get(ns_id)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._locks[ns_id] = slot
            slot[1] += 1
            return slot[0]

    def _release_slot(self, ns_id: str) -> None:
        with self._locks_guard:
            slot = self._locks[ns_id]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[ns_id]

    @contextmanager
    def _exclusive(self, conversation_id: str, *, write: bool = False) -> Iterator[tuple[Any, str]]:
        ns_id = namespace_id(conversation_id)
        lock = self._acquire_slot(ns_id)
        try:
            with lock, self._db.connection(immediate=write) as conn:
                yield conn, ns_id
        finally:
            self._release_slot(ns_id)

    def list_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        with self._exclusive(conversation_id) as (conn, ns_id):
            return self._db.get(conn, ns_id, MESSAGES_KEY) or []

    def append_message(self, conversation_id: str, message: dict[str, Any]) -> list[dict[str, Any]]:
        with self._exclusive(conversation_id, write=True) as (conn, ns_id):
            messages = self._db.get(conn, ns_id, MESSAGES_KEY) or []
            messages.append({**message, "timestamp": epoch_ms()})
            trimmed = messages[-self._max_messages :]
            self._db.put(conn, ns_id, MESSAGES_KEY, trimmed)
        if len(messages) > len(trimmed):
            logger.debug(
                "messages_evicted",
                namespace=ns_id,
                evicted=len(messages) - len(trimmed),
            )
        return trimmed

    def get_telemetry(self, conversation_id: str) -> dict[str, Any]:
        with self._exclusive(conversation_id) as (conn, ns_id):
            stored = self._db.get(conn, ns_id, TELEMETRY_KEY)
        return stored if stored is not None else default_telemetry()

    def set_telemetry(self, conversation_id: str, snapshot: dict[str, Any]) -> dict[str, Any]:
        with self._exclusive(conversation_id, write=True) as (conn, ns_id):
            self._db.put(conn, ns_id, TELEMETRY_KEY, snapshot)
        return snapshot

    def reset(self, conversation_id: str) -> None:
        with self._exclusive(conversation_id, write=True) as (conn, ns_id):
            removed = self._db.delete_all(conn, ns_id)
        logger.info("conversation_reset", namespace=ns_id, keys_removed=removed)
