"""HTTP transport for the Gemini ``generateContent`` endpoint."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from legallens.config import DEFAULT_BASE_URL, DEFAULT_MODEL, GenerationSettings
from legallens.errors import ModelCallTimeout, RateLimitedError, TransportError

LOGGER = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS: tuple[str, ...] = ("quota", "resource_exhausted", "rate limit")


@dataclass(slots=True)
class TransportReply:
    text: str
    tokens_used: int = 0


class ModelTransport(ABC):
    """Single-shot call to a text-generation service with one API key."""

    @abstractmethod
    async def send(self, prompt: str, api_key: str) -> TransportReply:
        """Send ``prompt`` authenticated with ``api_key``.

        Implementations raise :class:`RateLimitedError` when the key hit a
        quota and :class:`TransportError` for every other failure.
        """

    @property
    def model_name(self) -> str:
        return "unknown"

    async def aclose(self) -> None:
        return None


def _is_rate_limited(status_code: int | None, message: str) -> bool:
    if status_code == 429:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        parts = [str(error.get("status") or ""), str(error.get("message") or "")]
        return " ".join(part for part in parts if part) or response.text[:500]
    return response.text[:500]


def _reply_text(payload: Dict[str, Any]) -> str:
    pieces: list[str] = []
    for candidate in payload.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            text = part.get("text")
            if isinstance(text, str):
                pieces.append(text)
    return "".join(pieces)


class GeminiTransport(ModelTransport):
    """Call ``{base_url}/models/{model}:generateContent`` through ``httpx``.

    ``transport`` lets callers plug an ``httpx`` transport such as
    :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        generation: GenerationSettings | None = None,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._generation = generation or GenerationSettings()
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._generation.temperature,
                "topK": self._generation.top_k,
                "topP": self._generation.top_p,
                "maxOutputTokens": self._generation.max_output_tokens,
            },
        }

    async def send(self, prompt: str, api_key: str) -> TransportReply:
        headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        try:
            response = await self._client.post(self.endpoint, headers=headers, json=self.build_payload(prompt))
        except httpx.TimeoutException as error:
            raise ModelCallTimeout("Model request timed out", cause=error) from error
        except httpx.HTTPError as error:
            message = str(error)
            if _is_rate_limited(None, message):
                raise RateLimitedError(message, cause=error) from error
            raise TransportError(f"Model request failed: {message}", cause=error) from error

        if response.status_code >= 400:
            message = _error_message(response)
            LOGGER.warning("Model service returned HTTP %s: %s", response.status_code, message[:200])
            if _is_rate_limited(response.status_code, message):
                raise RateLimitedError(message, status_code=response.status_code)
            raise TransportError(
                f"Model service error {response.status_code}: {message}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as error:
            raise TransportError("Model service returned a non-JSON body", cause=error) from error

        usage = payload.get("usageMetadata") or {}
        return TransportReply(
            text=_reply_text(payload),
            tokens_used=int(usage.get("totalTokenCount") or 0),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["GeminiTransport", "ModelTransport", "TransportReply"]
