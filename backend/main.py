from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Annotated, Any

import structlog
from fastapi import FastAPI, Request
from fastapi import Path as PathParam
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from mission_state import ConversationStateStore, SQLiteStateDB
from mission_state.time_utils import epoch_ms
from resnik_core import (
    ChatRequest,
    ChatResponse,
    InvalidRequestError,
    MessageIn,
    ProcedureSearchRequest,
    ResnikError,
    TelemetrySnapshot,
    build_chat_messages,
    configure_logging,
    evaluate,
    inference,
    match,
)

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()
configure_logging()

logger = structlog.get_logger()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
EMPTY_REPLY = "Unable to process request. Please try again."
SERVICE_BANNER = "Resnik AI Worker - NASA SUITS Challenge"


class ResnikApp:
    def __init__(self) -> None:
        db_path = os.getenv(
            "RESNIK_DB_PATH",
            str(Path(__file__).resolve().parent / "resnik.sqlite"),
        )
        self.db = SQLiteStateDB(db_path)
        self.store = ConversationStateStore(self.db)


container = ResnikApp()
app = FastAPI(title="Resnik EVA Assistant Backend")


@app.middleware("http")
async def _cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception("request_failed", method=request.method, path=request.url.path)
        response = JSONResponse(
            status_code=500,
            content=ResnikError(f"Unhandled {type(exc).__name__}.").as_payload(),
        )
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(ResnikError)
async def _resnik_error_handler(request: Request, exc: ResnikError) -> JSONResponse:
    logger.warning(
        "request_error",
        path=request.url.path,
        status=exc.status_code,
        error=exc.error,
        detail=getattr(exc, "detail", exc.message),
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_payload())


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidRequestError("Request body failed validation.")
    payload = {**error.as_payload(), "detail": jsonable_encoder(exc.errors())}
    return JSONResponse(status_code=error.status_code, content=payload)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code in {404, 405}:
        return PlainTextResponse("Not Found", status_code=404)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


ConversationId = Annotated[str, PathParam(min_length=1, max_length=128)]


@app.get("/api/state/{conversation_id}/messages")
def list_messages(conversation_id: ConversationId):
    return container.store.list_messages(conversation_id)


@app.post("/api/state/{conversation_id}/messages")
def append_message(payload: MessageIn, conversation_id: ConversationId):
    return container.store.append_message(conversation_id, payload.to_wire())


@app.get("/api/state/{conversation_id}/telemetry")
def get_telemetry(conversation_id: ConversationId):
    return container.store.get_telemetry(conversation_id)


@app.post("/api/state/{conversation_id}/telemetry")
def set_telemetry(payload: TelemetrySnapshot, conversation_id: ConversationId):
    return container.store.set_telemetry(conversation_id, payload.to_wire())


@app.post("/api/state/{conversation_id}/reset")
def reset_state(conversation_id: ConversationId):
    container.store.reset(conversation_id)
    return PlainTextResponse("Reset complete")


def _resolve_chat_context(payload: ChatRequest) -> tuple[list[dict[str, Any]], TelemetrySnapshot]:
    if payload.conversation_history is not None:
        history = [turn.to_wire() for turn in payload.conversation_history]
    elif payload.conversation_id:
        history = container.store.list_messages(payload.conversation_id)
    else:
        history = []

    if payload.telemetry is not None:
        telemetry = payload.telemetry
    elif payload.conversation_id:
        telemetry = TelemetrySnapshot.model_validate(container.store.get_telemetry(payload.conversation_id))
    else:
        raise InvalidRequestError("Telemetry is required when no conversationId is given.")
    return history, telemetry


@app.post("/api/chat")
def chat(payload: ChatRequest):
    history, telemetry = _resolve_chat_context(payload)
    messages = build_chat_messages(message=payload.message, history=history, telemetry=telemetry)
    reply = inference.run_chat(messages) or EMPTY_REPLY

    alert = evaluate(payload.message, telemetry)
    if alert.emergency:
        logger.warning(
            "emergency_flagged",
            telemetry_alert=alert.telemetry_alert,
            rules=list(alert.triggered_rules),
        )
    return ChatResponse(
        response=reply,
        emergency=alert.emergency,
        telemetry_alert=alert.telemetry_alert,
        timestamp=epoch_ms(),
    ).to_wire()


@app.post("/api/procedures/search")
def search_procedures(payload: ProcedureSearchRequest):
    procedure = match(payload.query)
    return {
        "found": procedure is not None,
        "procedure": procedure.to_dict() if procedure else None,
        "query": payload.query,
    }


@app.get("/api/health")
def health():
    return {
        "status": "operational",
        "services": {
            "ai": "operational",
            "stateStore": "operational",
            "timestamp": epoch_ms(),
        },
    }


@app.get("/")
def banner():
    return PlainTextResponse(SERVICE_BANNER)
