from __future__ import annotations

from typing import Any


class ResnikError(Exception):
    """Error that crosses the HTTP boundary as a structured JSON payload."""

    status_code = 500
    error = "Internal error"
    fallback = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
        fallback: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error is not None:
            self.error = error
        if fallback is not None:
            self.fallback = fallback

    def as_payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message, "fallback": self.fallback}


class InferenceError(ResnikError):
    status_code = 500
    error = "AI processing failed"
    fallback = True

    PUBLIC_MESSAGE = "Unable to process request. System error occurred."

    def __init__(self, detail: str) -> None:
        super().__init__(self.PUBLIC_MESSAGE)
        self.detail = detail


class InvalidRequestError(ResnikError):
    status_code = 422
    error = "Invalid request"
