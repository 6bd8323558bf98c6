"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import sys
import time
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

LOGGER = logging.getLogger("legallens.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "GEMINI_MODEL",
    "GEMINI_BASE_URL",
    "LLM_TIMEOUT_SECONDS",
    "LLM_TEMPERATURE",
    "LLM_TOP_K",
    "LLM_TOP_P",
    "LLM_MAX_TOKENS",
    "ANALYSIS_PREFIX_CHARS",
    "CHAT_CONTEXT_CHUNKS",
    "STORE_BACKEND",
    "STORE_DIR",
    "LOG_DIR",
    "LOG_LEVEL",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event(*, key_pool_size: int) -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "key_pool_size": key_pool_size,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "cwd": str(Path.cwd()),
        "pid": os.getpid(),
    }
    log_event(LOGGER, "app.startup", details=details)


def emit_model_client_init(*, model: str, key_pool_size: int, timeout_seconds: float | None) -> None:
    details = {
        "model": model,
        "key_pool_size": key_pool_size,
        "timeout_seconds": timeout_seconds,
    }
    log_event(LOGGER, "llm.client.init", details=details)


def emit_model_call(
    *,
    req_id: str,
    attempt: int,
    key_index: int,
    pool_size: int,
    outcome: str,
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    details = {
        "attempt": attempt,
        "key_index": key_index,
        "pool_size": pool_size,
        "outcome": outcome,
    }
    level = "info" if outcome == "ok" else "warning"
    log_event(
        LOGGER,
        "llm.call",
        level=level,
        req_id=req_id,
        duration_ms=duration_ms,
        details=details,
        exc=str(error) if error is not None else None,
    )


def emit_inference_request(
    *,
    req_id: str,
    session_id: str,
    prompt_preview: str,
    prompt_len: int,
    sources: Iterable[str],
) -> None:
    details = {
        "prompt_preview": prompt_preview[:120],
        "prompt_len": prompt_len,
        "sources": list(sources),
    }
    log_event(LOGGER, "inference.request", req_id=req_id, session_id=session_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    session_id: str,
    duration_ms: float,
    answer_preview: str,
    fallback: bool,
    tokens_used: int | None,
) -> None:
    details = {
        "answer_preview": answer_preview[:120],
        "fallback": fallback,
        "tokens_used": tokens_used,
    }
    log_event(
        LOGGER,
        "inference.result",
        req_id=req_id,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_retriever_event(
    *,
    query: str,
    limit: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "limit": limit,
        "results": results,
    }
    log_event(LOGGER, "retriever.search", duration_ms=duration_ms, details=details)


def emit_prompt_event(
    *,
    document_name: str,
    sources: Iterable[str],
    history_messages: int,
    prompt_len: int,
) -> None:
    details = {
        "document_name": document_name,
        "sources": list(sources),
        "history_messages": history_messages,
        "prompt_len": prompt_len,
    }
    log_event(LOGGER, "prompt.compose", details=details)


def emit_analysis_event(
    step: str,
    *,
    document_name: str,
    duration_ms: float | None = None,
    facet: str | None = None,
    truncated: bool | None = None,
    word_count: int | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "document_name": document_name,
        "facet": facet,
        "truncated": truncated,
        "word_count": word_count,
    }
    level = "error" if error else "info"
    log_event(LOGGER, step, level=level, duration_ms=duration_ms, details=details, exc=error)


def emit_session_event(
    step: str,
    *,
    document_id: str,
    messages: int | None = None,
    version: int | None = None,
) -> None:
    details = {"messages": messages, "version": version}
    log_event(LOGGER, step, session_id=document_id, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_analysis_event",
    "emit_app_startup_event",
    "emit_exception",
    "emit_inference_request",
    "emit_inference_result",
    "emit_model_call",
    "emit_model_client_init",
    "emit_prompt_event",
    "emit_retriever_event",
    "emit_session_event",
    "log_event",
    "traced_duration",
]
