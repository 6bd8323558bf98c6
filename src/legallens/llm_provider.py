"""Key-rotating client for the hosted language model."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

from legallens.config import Settings, load_settings
from legallens.errors import (
    KeyPoolExhausted,
    MalformedModelOutput,
    ModelCallTimeout,
    RateLimitedError,
)
from legallens.llm.gemini import GeminiTransport, ModelTransport
from legallens.llm.parsing import parse_structured_reply
from legallens.telemetry import emit_model_call, emit_model_client_init

LOGGER = logging.getLogger(__name__)


class KeyRotation:
    """Fixed, ordered pool of API keys with a shared round-robin cursor.

    Every call to :meth:`next` hands out the key under the cursor and moves the
    cursor forward, whether or not the caller's request later succeeds.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys: Tuple[str, ...] = tuple(key for key in keys if key)
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def next(self) -> Tuple[int, str]:
        if not self._keys:
            raise KeyPoolExhausted("No API keys are configured")
        with self._lock:
            index = self._cursor
            self._cursor = (self._cursor + 1) % len(self._keys)
        return index, self._keys[index]


@dataclass(slots=True)
class ModelReply:
    text: str
    tokens_used: int
    key_index: int
    attempts: int


@dataclass(slots=True)
class ModelStatus:
    """Structured status information about the configured model client."""

    model_name: str
    key_pool_size: int
    cursor: int
    ready: bool
    error: Optional[str] = None


class ResilientModelClient:
    """Send prompts through a transport, rotating keys on rate limits.

    A call tries each pooled key at most once. Rate limit failures move on to
    the next key; any other failure, timeouts included, is raised immediately.
    """

    def __init__(
        self,
        keys: Sequence[str] | KeyRotation,
        transport: ModelTransport,
        *,
        timeout_seconds: float | None = 60.0,
    ) -> None:
        self._rotation = keys if isinstance(keys, KeyRotation) else KeyRotation(keys)
        self._transport = transport
        self._timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
        emit_model_client_init(
            model=transport.model_name,
            key_pool_size=len(self._rotation),
            timeout_seconds=self._timeout,
        )

    @property
    def rotation(self) -> KeyRotation:
        return self._rotation

    @property
    def transport(self) -> ModelTransport:
        return self._transport

    async def _send(self, prompt: str, api_key: str):
        if self._timeout is None:
            return await self._transport.send(prompt, api_key)
        try:
            return await asyncio.wait_for(self._transport.send(prompt, api_key), timeout=self._timeout)
        except asyncio.TimeoutError as error:
            raise ModelCallTimeout(f"Model call exceeded {self._timeout:.1f}s", cause=error) from error

    async def generate(self, prompt: str, *, req_id: str | None = None) -> ModelReply:
        pool_size = len(self._rotation)
        if pool_size == 0:
            raise KeyPoolExhausted("No API keys are configured")

        req_id = req_id or uuid.uuid4().hex
        last_error: RateLimitedError | None = None
        for attempt in range(1, pool_size + 1):
            key_index, api_key = self._rotation.next()
            started = time.perf_counter()
            try:
                reply = await self._send(prompt, api_key)
            except RateLimitedError as error:
                last_error = error
                emit_model_call(
                    req_id=req_id,
                    attempt=attempt,
                    key_index=key_index,
                    pool_size=pool_size,
                    outcome="rate_limited",
                    duration_ms=(time.perf_counter() - started) * 1000.0,
                    error=error,
                )
                continue
            except Exception as error:
                emit_model_call(
                    req_id=req_id,
                    attempt=attempt,
                    key_index=key_index,
                    pool_size=pool_size,
                    outcome="error",
                    duration_ms=(time.perf_counter() - started) * 1000.0,
                    error=error,
                )
                raise

            emit_model_call(
                req_id=req_id,
                attempt=attempt,
                key_index=key_index,
                pool_size=pool_size,
                outcome="ok",
                duration_ms=(time.perf_counter() - started) * 1000.0,
            )
            return ModelReply(
                text=reply.text,
                tokens_used=reply.tokens_used,
                key_index=key_index,
                attempts=attempt,
            )

        raise KeyPoolExhausted(
            f"All {pool_size} API keys are rate limited",
            cause=last_error,
        )

    async def call(self, prompt: str) -> str:
        reply = await self.generate(prompt)
        return reply.text

    async def call_structured(self, prompt: str) -> Any:
        """Return the JSON value carried by the model reply.

        Raises :class:`MalformedModelOutput` when the reply holds no decodable
        JSON; such failures are not retried with another key.
        """

        text = await self.call(prompt)
        parsed = parse_structured_reply(text)
        if not parsed.ok:
            source = "fenced block" if parsed.fenced else "reply"
            raise MalformedModelOutput(
                f"Could not decode JSON from model {source}: {parsed.error}",
                raw_text=text,
            )
        return parsed.value

    def status(self) -> ModelStatus:
        pool_size = len(self._rotation)
        return ModelStatus(
            model_name=self._transport.model_name,
            key_pool_size=pool_size,
            cursor=self._rotation.cursor,
            ready=pool_size > 0,
            error=None if pool_size else "No API keys are configured.",
        )

    async def aclose(self) -> None:
        await self._transport.aclose()


_GLOBAL_CLIENT: Optional[ResilientModelClient] = None
_GLOBAL_LOCK = threading.Lock()


def build_model_client(settings: Settings) -> ResilientModelClient:
    transport = GeminiTransport(
        model=settings.model,
        base_url=settings.base_url,
        generation=settings.generation,
        timeout_seconds=settings.timeout_seconds,
    )
    if not settings.api_keys:
        LOGGER.warning("No GEMINI_API_KEY* variables are configured; model calls will fail.")
    return ResilientModelClient(
        settings.api_keys,
        transport,
        timeout_seconds=settings.timeout_seconds,
    )


def get_model_client() -> ResilientModelClient:
    """Return the process-wide model client, building it on first use."""

    global _GLOBAL_CLIENT

    if _GLOBAL_CLIENT is not None:
        return _GLOBAL_CLIENT
    with _GLOBAL_LOCK:
        if _GLOBAL_CLIENT is None:
            _GLOBAL_CLIENT = build_model_client(load_settings())
    return _GLOBAL_CLIENT


def get_model_status() -> ModelStatus:
    return get_model_client().status()


__all__ = [
    "KeyRotation",
    "ModelReply",
    "ModelStatus",
    "ResilientModelClient",
    "build_model_client",
    "get_model_client",
    "get_model_status",
]
