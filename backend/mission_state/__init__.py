from .database import SQLiteStateDB
from .state_store import (
    DEFAULT_TELEMETRY,
    MAX_MESSAGES,
    ConversationStateStore,
    default_telemetry,
    namespace_id,
)

__all__ = [
    "DEFAULT_TELEMETRY",
    "MAX_MESSAGES",
    "ConversationStateStore",
    "SQLiteStateDB",
    "default_telemetry",
    "namespace_id",
]
