"""FastAPI dependency providers for the shared service objects."""
from __future__ import annotations

import logging
import threading
from typing import Optional

from fastapi import Depends

from legallens.config import Settings, load_settings
from legallens.llm_provider import ResilientModelClient, get_model_client
from legallens.services.analysis import AnalysisOrchestrator
from legallens.services.chat import ChatService
from legallens.services.documents import DocumentService
from legallens.sessions import ContextStore
from legallens.storage import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore

LOGGER = logging.getLogger(__name__)

_SETTINGS: Optional[Settings] = None
_STORE: Optional[ContextStore] = None
_LOCK = threading.Lock()


def get_settings() -> Settings:
    global _SETTINGS

    if _SETTINGS is None:
        _SETTINGS = load_settings()
    return _SETTINGS


def build_key_value_store(settings: Settings) -> KeyValueStore:
    if settings.store_backend == "file":
        LOGGER.info("Persisting documents and sessions under %s", settings.store_dir)
        return FileKeyValueStore(settings.store_dir)
    return InMemoryKeyValueStore()


def get_context_store() -> ContextStore:
    """Return the process-wide :class:`ContextStore`."""

    global _STORE

    if _STORE is None:
        with _LOCK:
            if _STORE is None:
                _STORE = ContextStore(build_key_value_store(get_settings()))
    return _STORE


def get_document_service(
    store: ContextStore = Depends(get_context_store),
    model: ResilientModelClient = Depends(get_model_client),
    settings: Settings = Depends(get_settings),
) -> DocumentService:
    orchestrator = AnalysisOrchestrator(model, prefix_chars=settings.analysis_prefix_chars)
    return DocumentService(store, orchestrator)


def get_chat_service(
    store: ContextStore = Depends(get_context_store),
    model: ResilientModelClient = Depends(get_model_client),
    settings: Settings = Depends(get_settings),
) -> ChatService:
    return ChatService(store, model, context_chunks=settings.chat_context_chunks)


__all__ = [
    "build_key_value_store",
    "get_chat_service",
    "get_context_store",
    "get_document_service",
    "get_settings",
]
