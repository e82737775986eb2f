from .alerts import AlertResult, evaluate
from .errors import InferenceError, InvalidRequestError, ResnikError
from .logging_config import configure_logging
from .models import (
    ChatRequest,
    ChatResponse,
    Message,
    MessageIn,
    Position,
    ProcedureSearchRequest,
    TelemetrySnapshot,
)
from .procedures import PROCEDURES, ProcedureDoc, match
from .prompts import RESNIK_SYSTEM_PROMPT, build_chat_messages, build_context_message

__all__ = [
    "PROCEDURES",
    "RESNIK_SYSTEM_PROMPT",
    "AlertResult",
    "ChatRequest",
    "ChatResponse",
    "InferenceError",
    "InvalidRequestError",
    "Message",
    "MessageIn",
    "Position",
    "ProcedureDoc",
    "ProcedureSearchRequest",
    "ResnikError",
    "TelemetrySnapshot",
    "build_chat_messages",
    "build_context_message",
    "configure_logging",
    "evaluate",
    "match",
]
