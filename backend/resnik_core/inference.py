"""Hosted text-generation client.

Exactly one provider is used per call. There is no retry or provider fallback:
any failure surfaces as an InferenceError for the router to report.
"""
from __future__ import annotations

import os
from typing import Any

import httpx
import structlog

from .errors import InferenceError

logger = structlog.get_logger()

DEFAULT_CLOUDFLARE_MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

TEMPERATURE = 0.7
MAX_TOKENS = 512
TOP_P = 0.9


def _cloudflare_api_base() -> str:
    return os.getenv("CLOUDFLARE_API_BASE_URL", "https://api.cloudflare.com/client/v4").rstrip("/")


def _openai_api_base() -> str:
    return os.getenv("OPENAI_API_BASE_URL", "https://api.openai.com/v1").rstrip("/")


def _timeout() -> httpx.Timeout:
    raw = (os.getenv("RESNIK_CHAT_TIMEOUT_SECONDS") or "").strip()
    if not raw:
        return httpx.Timeout(None)
    return httpx.Timeout(float(raw), connect=8.0)


def chat_provider_candidates() -> list[dict[str, Any]]:
    provider_preference = (os.getenv("RESNIK_CHAT_PROVIDER") or "auto").strip().lower()
    candidates: list[dict[str, Any]] = []

    account_id = (os.getenv("CLOUDFLARE_ACCOUNT_ID") or "").strip()
    api_token = (os.getenv("CLOUDFLARE_API_TOKEN") or "").strip()
    if account_id and api_token:
        candidates.append(
            {
                "provider": "cloudflare",
                "base_url": f"{_cloudflare_api_base()}/accounts/{account_id}/ai/run",
                "api_key": api_token,
                "model": (os.getenv("CLOUDFLARE_AI_MODEL") or DEFAULT_CLOUDFLARE_MODEL).strip(),
            }
        )

    openai_api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
    if openai_api_key:
        candidates.append(
            {
                "provider": "openai",
                "base_url": _openai_api_base(),
                "api_key": openai_api_key,
                "model": (os.getenv("RESNIK_CHAT_MODEL") or DEFAULT_OPENAI_MODEL).strip(),
            }
        )

    if provider_preference in {"", "auto"}:
        return candidates

    aliases = {
        "cloudflare": "cloudflare",
        "workers-ai": "cloudflare",
        "openai": "openai",
    }
    canonical = aliases.get(provider_preference)
    if not canonical:
        return candidates
    preferred = [candidate for candidate in candidates if candidate["provider"] == canonical]
    others = [candidate for candidate in candidates if candidate["provider"] != canonical]
    return preferred + others


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            msg = errors[0].get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


def _coerce_completion_text(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                text_value = item.get("text")
                if isinstance(text_value, str):
                    parts.append(text_value)
        return "\n".join(parts)
    return ""


def _json_object(response: httpx.Response) -> dict[str, Any]:
    payload = response.json()
    if not isinstance(payload, dict):
        raise RuntimeError(f"provider returned {type(payload).__name__} instead of a JSON object")
    return payload


def _coerce_workers_ai_text(response_json: dict[str, Any]) -> str:
    result = response_json.get("result")
    if isinstance(result, dict):
        text_value = result.get("response")
        if isinstance(text_value, str):
            return text_value
    return ""


def _workers_ai_chat(
    *,
    provider: dict[str, Any],
    messages: list[dict[str, str]],
    timeout: httpx.Timeout,
) -> str:
    payload = {
        "messages": messages,
        "temperature": TEMPERATURE,
        "max_tokens": MAX_TOKENS,
        "top_p": TOP_P,
    }
    headers = {
        "Authorization": f"Bearer {provider['api_key']}",
        "Content-Type": "application/json",
    }
    with httpx.Client(timeout=timeout) as client:
        response = client.post(f"{provider['base_url']}/{provider['model']}", headers=headers, json=payload)
    if response.status_code >= 400:
        raise RuntimeError(_provider_error_message(response))
    completion_payload = _json_object(response)
    if completion_payload.get("success") is False:
        raise RuntimeError(_provider_error_message(response))
    return _coerce_workers_ai_text(completion_payload).strip()


def _openai_compatible_chat(
    *,
    provider: dict[str, Any],
    messages: list[dict[str, str]],
    timeout: httpx.Timeout,
) -> str:
    payload = {
        "model": provider["model"],
        "messages": messages,
        "temperature": TEMPERATURE,
        "max_tokens": MAX_TOKENS,
        "top_p": TOP_P,
    }
    headers = {
        "Authorization": f"Bearer {provider['api_key']}",
        "Content-Type": "application/json",
    }
    with httpx.Client(timeout=timeout) as client:
        response = client.post(f"{provider['base_url']}/chat/completions", headers=headers, json=payload)
    if response.status_code >= 400:
        raise RuntimeError(_provider_error_message(response))
    return _coerce_completion_text(_json_object(response)).strip()


def run_chat(messages: list[dict[str, str]]) -> str:
    """Send one chat turn to the configured provider and return its text.

    An empty string means the provider answered without any text.
    """
    providers = chat_provider_candidates()
    if not providers:
        raise InferenceError("no inference provider configured")

    provider = providers[0]
    provider_name = str(provider.get("provider") or "unknown")
    try:
        if provider_name == "cloudflare":
            text = _workers_ai_chat(provider=provider, messages=messages, timeout=_timeout())
        else:
            text = _openai_compatible_chat(provider=provider, messages=messages, timeout=_timeout())
    except (httpx.HTTPError, RuntimeError, ValueError) as exc:
        logger.error("inference_failed", provider=provider_name, model=provider["model"], error=str(exc))
        raise InferenceError(f"{provider_name}: {exc}") from exc

    logger.info("inference_completed", provider=provider_name, model=provider["model"], chars=len(text))
    return text
