"""Document contexts, chat sessions and their persistence."""
from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from legallens.errors import ContextNotFound, SessionNotFound, SessionWriteConflict
from legallens.ingest.models import Chunk
from legallens.storage import KeyValueStore
from legallens.telemetry import emit_session_event

LOGGER = logging.getLogger(__name__)

CONTEXT_PREFIX = "document_context_"
SESSION_PREFIX = "chat_session_"
REPORT_PREFIX = "document_report_"

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _unique(values: List[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


@dataclass(slots=True)
class DocumentContext:
    """Durable per-document bundle used to ground chat turns."""

    document_id: str
    document_name: str
    full_text: str
    chunks: List[Chunk]
    summary: str = ""
    key_entities: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    last_updated: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        self.key_entities = _unique(list(self.key_entities))
        self.risk_factors = _unique(list(self.risk_factors))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documentId": self.document_id,
            "documentName": self.document_name,
            "fullText": self.full_text,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "summary": self.summary,
            "keyEntities": list(self.key_entities),
            "riskFactors": list(self.risk_factors),
            "createdAt": self.created_at,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DocumentContext":
        return cls(
            document_id=str(payload["documentId"]),
            document_name=str(payload.get("documentName", "")),
            full_text=str(payload.get("fullText", "")),
            chunks=[Chunk.from_dict(item) for item in payload.get("chunks", [])],
            summary=str(payload.get("summary") or ""),
            key_entities=[str(item) for item in payload.get("keyEntities", [])],
            risk_factors=[str(item) for item in payload.get("riskFactors", [])],
            created_at=str(payload.get("createdAt") or utc_now_iso()),
            last_updated=str(payload.get("lastUpdated") or utc_now_iso()),
        )


@dataclass(slots=True)
class MessageMetadata:
    response_time_ms: Optional[float] = None
    tokens_used: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"responseTimeMs": self.response_time_ms, "tokensUsed": self.tokens_used}


@dataclass(slots=True)
class ChatMessage:
    """Single append-only entry of a chat transcript."""

    role: str
    content: str
    id: str = ""
    timestamp: str = field(default_factory=utc_now_iso)
    context_chunk_ids: Optional[List[str]] = None
    metadata: Optional[MessageMetadata] = None

    def __post_init__(self) -> None:
        if self.role not in {ROLE_USER, ROLE_ASSISTANT}:
            raise ValueError(f"Unsupported message role: {self.role}")
        if not self.id:
            suffix = "user" if self.role == ROLE_USER else "ai"
            self.id = f"msg_{uuid.uuid4().hex[:12]}_{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.context_chunk_ids is not None:
            payload["contextChunkIds"] = list(self.context_chunk_ids)
        if self.metadata is not None:
            payload["metadata"] = self.metadata.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ChatMessage":
        metadata = payload.get("metadata")
        chunk_ids = payload.get("contextChunkIds")
        return cls(
            id=str(payload.get("id") or ""),
            role=str(payload["role"]),
            content=str(payload.get("content", "")),
            timestamp=str(payload.get("timestamp") or utc_now_iso()),
            context_chunk_ids=[str(item) for item in chunk_ids] if chunk_ids is not None else None,
            metadata=(
                MessageMetadata(
                    response_time_ms=metadata.get("responseTimeMs"),
                    tokens_used=metadata.get("tokensUsed"),
                )
                if isinstance(metadata, dict)
                else None
            ),
        )


@dataclass(slots=True)
class SessionContext:
    document_summary: str = ""
    key_entities: List[str] = field(default_factory=list)
    last_updated: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documentSummary": self.document_summary,
            "keyEntities": list(self.key_entities),
            "lastUpdated": self.last_updated,
        }


@dataclass(slots=True)
class ChatSession:
    """Transcript attached one-to-one to a document context."""

    session_id: str
    document_id: str
    document_name: str
    messages: List[ChatMessage] = field(default_factory=list)
    context: SessionContext = field(default_factory=SessionContext)
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "documentId": self.document_id,
            "documentName": self.document_name,
            "messages": [message.to_dict() for message in self.messages],
            "context": self.context.to_dict(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ChatSession":
        context = payload.get("context") or {}
        return cls(
            session_id=str(payload["sessionId"]),
            document_id=str(payload["documentId"]),
            document_name=str(payload.get("documentName", "")),
            messages=[ChatMessage.from_dict(item) for item in payload.get("messages", [])],
            context=SessionContext(
                document_summary=str(context.get("documentSummary") or ""),
                key_entities=[str(item) for item in context.get("keyEntities", [])],
                last_updated=str(context.get("lastUpdated") or utc_now_iso()),
            ),
            version=int(payload.get("version", 0)),
        )


def _encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _decode(raw: bytes) -> Dict[str, Any]:
    return json.loads(raw.decode("utf-8"))


class ContextStore:
    """Lifecycle of document contexts, chat sessions and stored analysis reports.

    Every record lives under a single prefixed key of the backing
    :class:`~legallens.storage.KeyValueStore`. Appending to a session is a
    read-modify-write of the whole session guarded by a per-document lock, so
    concurrent turns inside one process are serialised. Writers in other
    processes are detected through the session ``version`` and reported as
    :class:`SessionWriteConflict` instead of silently overwriting.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, document_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = self._locks[document_id] = threading.Lock()
            return lock

    # Document contexts -----------------------------------------------------------
    def store_context(self, context: DocumentContext) -> None:
        self._kv.set(f"{CONTEXT_PREFIX}{context.document_id}", _encode(context.to_dict()))

    def find_context(self, document_id: str) -> Optional[DocumentContext]:
        raw = self._kv.get(f"{CONTEXT_PREFIX}{document_id}")
        if raw is None:
            return None
        return DocumentContext.from_dict(_decode(raw))

    def get_context(self, document_id: str) -> DocumentContext:
        context = self.find_context(document_id)
        if context is None:
            raise ContextNotFound(document_id)
        return context

    # Chat sessions ---------------------------------------------------------------
    def create_session(self, document_id: str, document_name: str) -> ChatSession:
        context = self.find_context(document_id)
        session = ChatSession(
            session_id=f"session_{document_id}_{int(time.time() * 1000)}",
            document_id=document_id,
            document_name=document_name,
            context=SessionContext(
                document_summary=context.summary if context else "",
                key_entities=list(context.key_entities) if context else [],
            ),
        )
        self._write_session(session)
        emit_session_event("session.create", document_id=document_id, messages=0, version=0)
        return session

    def find_session(self, document_id: str) -> Optional[ChatSession]:
        raw = self._kv.get(f"{SESSION_PREFIX}{document_id}")
        if raw is None:
            return None
        return ChatSession.from_dict(_decode(raw))

    def get_session(self, document_id: str) -> ChatSession:
        if self.find_context(document_id) is None:
            raise ContextNotFound(document_id)
        session = self.find_session(document_id)
        if session is None:
            raise SessionNotFound(document_id)
        return session

    def append_message(self, document_id: str, message: ChatMessage) -> ChatSession:
        """Append ``message`` to the session of ``document_id`` and persist it.

        Raises :class:`ContextNotFound` without writing anything when the
        document has no stored context.
        """

        with self._lock_for(document_id):
            context = self.get_context(document_id)
            session = self.find_session(document_id)
            if session is None:
                raise SessionNotFound(document_id)

            expected_version = session.version
            now = utc_now_iso()
            session.messages.append(message)
            session.context.last_updated = now
            session.version = expected_version + 1

            current = self.find_session(document_id)
            if current is None:
                raise SessionNotFound(document_id)
            if current.version != expected_version:
                raise SessionWriteConflict(document_id, expected_version, current.version)

            self._write_session(session)
            context.last_updated = now
            self.store_context(context)

        emit_session_event(
            "session.append",
            document_id=document_id,
            messages=len(session.messages),
            version=session.version,
        )
        return session

    def list_sessions(self) -> List[ChatSession]:
        """Return every stored session, most recently updated first."""

        sessions: List[ChatSession] = []
        for key in self._kv.keys(SESSION_PREFIX):
            raw = self._kv.get(key)
            if raw is None:
                continue
            try:
                sessions.append(ChatSession.from_dict(_decode(raw)))
            except (ValueError, KeyError, TypeError):
                LOGGER.exception("Skipping unreadable chat session %s", key)
        sessions.sort(key=lambda session: session.context.last_updated, reverse=True)
        return sessions

    def _write_session(self, session: ChatSession) -> None:
        self._kv.set(f"{SESSION_PREFIX}{session.document_id}", _encode(session.to_dict()))

    # Analysis reports ------------------------------------------------------------
    def store_report(self, document_id: str, report: Dict[str, Any]) -> None:
        self._kv.set(f"{REPORT_PREFIX}{document_id}", _encode(report))

    def get_report(self, document_id: str) -> Dict[str, Any]:
        raw = self._kv.get(f"{REPORT_PREFIX}{document_id}")
        if raw is None:
            raise ContextNotFound(document_id)
        return _decode(raw)

    # Removal ---------------------------------------------------------------------
    def delete_document(self, document_id: str) -> bool:
        """Delete the context, session and report of ``document_id``.

        Returns ``True`` when a context existed.
        """

        with self._lock_for(document_id):
            existed = self._kv.get(f"{CONTEXT_PREFIX}{document_id}") is not None
            for prefix in (CONTEXT_PREFIX, SESSION_PREFIX, REPORT_PREFIX):
                self._kv.delete(f"{prefix}{document_id}")
        with self._locks_guard:
            self._locks.pop(document_id, None)
        emit_session_event("session.delete", document_id=document_id)
        return existed

    def clear_all(self) -> int:
        """Remove every stored context, session and report; return the number of keys removed."""

        removed = 0
        for prefix in (CONTEXT_PREFIX, SESSION_PREFIX, REPORT_PREFIX):
            for key in self._kv.keys(prefix):
                self._kv.delete(key)
                removed += 1
        return removed


__all__ = [
    "CONTEXT_PREFIX",
    "ChatMessage",
    "ChatSession",
    "ContextStore",
    "DocumentContext",
    "MessageMetadata",
    "REPORT_PREFIX",
    "ROLE_ASSISTANT",
    "ROLE_USER",
    "SESSION_PREFIX",
    "SessionContext",
    "utc_now_iso",
]
