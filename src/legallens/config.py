"""Environment driven configuration for the LegalLens service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

LOGGER = logging.getLogger(__name__)

API_KEY_ENV_KEYS: tuple[str, ...] = (
    "GEMINI_API_KEY",
    "GEMINI_API_KEY1",
    "GEMINI_API_KEY2",
    "GEMINI_API_KEY3",
)
API_KEY_LIST_ENV = "GEMINI_API_KEYS"

DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def resolve_api_keys() -> list[str]:
    """Collect the ordered key pool from the environment.

    Individual ``GEMINI_API_KEY*`` variables come first, followed by the entries
    of the comma-separated ``GEMINI_API_KEYS`` list. Blank entries and repeats
    are dropped while keeping the first occurrence.
    """

    candidates: list[str] = [os.getenv(name, "") for name in API_KEY_ENV_KEYS]
    candidates.extend(os.getenv(API_KEY_LIST_ENV, "").split(","))

    keys: list[str] = []
    for candidate in candidates:
        key = candidate.strip()
        if key and key not in keys:
            keys.append(key)
    return keys


@dataclass(slots=True)
class GenerationSettings:
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 2048


@dataclass(slots=True)
class Settings:
    """Runtime settings resolved once per process."""

    api_keys: list[str] = field(default_factory=list)
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 60.0
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    analysis_prefix_chars: int = 8000
    chat_context_chunks: int = 5
    store_backend: str = "memory"
    store_dir: Path = Path("data")


def load_settings() -> Settings:
    """Build :class:`Settings` from environment variables."""

    generation = GenerationSettings(
        temperature=_env_float("LLM_TEMPERATURE", 0.7),
        top_k=_env_int("LLM_TOP_K", 40),
        top_p=_env_float("LLM_TOP_P", 0.95),
        max_output_tokens=_env_int("LLM_MAX_TOKENS", 2048),
    )
    backend = os.getenv("STORE_BACKEND", "memory").strip().lower() or "memory"
    if backend not in {"memory", "file"}:
        LOGGER.warning("Unknown STORE_BACKEND %s; using in-memory store", backend)
        backend = "memory"

    return Settings(
        api_keys=resolve_api_keys(),
        model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL,
        base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL).strip().rstrip("/") or DEFAULT_BASE_URL,
        timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 60.0),
        generation=generation,
        analysis_prefix_chars=_env_int("ANALYSIS_PREFIX_CHARS", 8000),
        chat_context_chunks=_env_int("CHAT_CONTEXT_CHUNKS", 5),
        store_backend=backend,
        store_dir=Path(os.getenv("STORE_DIR", "data")),
    )


__all__ = [
    "API_KEY_ENV_KEYS",
    "API_KEY_LIST_ENV",
    "GenerationSettings",
    "Settings",
    "load_settings",
    "resolve_api_keys",
]
