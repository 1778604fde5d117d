from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from config.settings import Settings, settings as default_settings
from ops.metrics import Timer
from utils.errors import InvalidArgument, InvalidConfig, UpstreamError

log = logging.getLogger("drk.ai")

RESPONSE_FORMATS = {"text": "text/plain", "json": "application/json"}


def build_request(
    prompt: str,
    system: Optional[str],
    temperature: float,
    max_output_tokens: int,
    response_format: str,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
            "responseMimeType": RESPONSE_FORMATS[response_format],
        },
    }
    if system:
        body["systemInstruction"] = {"parts": [{"text": system}]}
    return body


def extract_text(data: Dict[str, Any]) -> str:
    for cand in data.get("candidates") or []:
        parts = ((cand or {}).get("content") or {}).get("parts") or []
        text = "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))
        if text:
            return text
    return ""


class GeminiClient:
    """generateContent over the Generative Language REST API."""

    def __init__(self, http: Optional[httpx.Client] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.http = http

    def _http(self) -> httpx.Client:
        if self.http is None:
            self.http = httpx.Client(timeout=float(self.settings.GEMINI_TIMEOUT_SEC))
        return self.http

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 512,
        response_format: str = "text",
    ) -> Dict[str, Any]:
        prompt = (prompt or "").strip()
        if not prompt:
            raise InvalidArgument("prompt required")
        if len(prompt) > self.settings.AI_MAX_PROMPT_CHARS:
            raise InvalidArgument("prompt too long")
        if not 0.0 <= float(temperature) <= 2.0:
            raise InvalidArgument("temperature must be between 0 and 2")
        if response_format not in RESPONSE_FORMATS:
            raise InvalidArgument("responseFormat must be 'text' or 'json'")
        if int(max_output_tokens) < 1:
            raise InvalidArgument("maxOutputTokens must be positive")
        max_output_tokens = min(int(max_output_tokens), self.settings.AI_MAX_OUTPUT_TOKENS_CAP)

        if not self.settings.GEMINI_API_KEY:
            raise InvalidConfig("Generative model API key not configured")

        model = self.settings.GEMINI_MODEL
        url = f"{self.settings.GEMINI_API_BASE.rstrip('/')}/models/{model}:generateContent"
        body = build_request(prompt, (system or "").strip() or None, float(temperature), max_output_tokens, response_format)
        rev = os.getenv("K_REVISION") or ""
        timer = Timer()

        try:
            r = self._http().post(url, json=body, headers={"x-goog-api-key": self.settings.GEMINI_API_KEY})
        except httpx.HTTPError as e:
            log.error(
                "ai_request_exception",
                extra={"extra": {"event": "ai_request_exception", "model": model, "error_type": type(e).__name__, "latency_ms": timer.ms(), "revision": rev}},
                exc_info=True,
            )
            raise UpstreamError("Generative model unavailable", context={"model": model})

        if r.status_code != 200:
            log.warning(
                "ai_request_failed",
                extra={"extra": {"event": "ai_request_failed", "model": model, "status_code": r.status_code, "resp": (r.text or "")[:500], "latency_ms": timer.ms()}},
            )
            raise UpstreamError("Generative model request failed", context={"model": model, "status_code": r.status_code})

        try:
            data = r.json()
        except ValueError:
            raise UpstreamError("Generative model returned invalid JSON", context={"model": model})

        text = extract_text(data)
        if not text:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            log.warning("ai_empty_response", extra={"extra": {"event": "ai_empty_response", "model": model, "block_reason": block_reason}})
            raise UpstreamError("Generative model returned no text", context={"model": model, "block_reason": block_reason})

        log.info(
            "ai_request_result",
            extra={"extra": {"event": "ai_request_result", "model": model, "chars": len(text), "format": response_format, "latency_ms": timer.ms(), "revision": rev}},
        )
        return {"text": text, "model": model}
