"""Chat turn flow: ground a question in the document and record the exchange."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Protocol

from legallens.errors import ModelClientError, SessionNotFound, TransportError
from legallens.llm_provider import ModelReply
from legallens.logging_config import AUDIT_LOGGER_NAME
from legallens.prompt_builder import build_prompt
from legallens.retriever import find_relevant
from legallens.sessions import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ChatMessage,
    ChatSession,
    ContextStore,
    DocumentContext,
    MessageMetadata,
)
from legallens.telemetry import emit_exception, emit_inference_request, emit_inference_result

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

APOLOGY_MESSAGE = "Sorry, I encountered an error while processing your request. Please try again."


class TextModel(Protocol):
    async def generate(self, prompt: str, *, req_id: str | None = None) -> ModelReply:
        ...


@dataclass(slots=True)
class ChatTurnResult:
    """Structured result returned from :meth:`ChatService.chat_turn`."""

    document_id: str
    reply_text: str
    response_time_ms: float
    tokens_used: int
    context_chunk_ids: List[str] = field(default_factory=list)
    failed: bool = False


class ChatService:
    """Answer questions about a stored document and keep its transcript."""

    def __init__(self, store: ContextStore, model: TextModel, *, context_chunks: int = 5) -> None:
        self.store = store
        self.model = model
        self.context_chunks = context_chunks

    def _ensure_session(self, context: DocumentContext) -> ChatSession:
        try:
            return self.store.get_session(context.document_id)
        except SessionNotFound:
            LOGGER.warning("Chat session missing for %s; creating a new one", context.document_id)
            return self.store.create_session(context.document_id, context.document_name)

    async def chat_turn(self, document_id: str, query: str) -> ChatTurnResult:
        if query is None or not query.strip():
            raise ValueError("query must not be empty")
        query = query.strip()

        context = self.store.get_context(document_id)
        session = self._ensure_session(context)
        history = list(session.messages)
        self.store.append_message(document_id, ChatMessage(role=ROLE_USER, content=query))

        req_id = uuid.uuid4().hex
        relevant = find_relevant(query, context.chunks, self.context_chunks)
        chunk_ids = [chunk.id for chunk in relevant]
        prompt = build_prompt(query, context, history, relevant)
        emit_inference_request(
            req_id=req_id,
            session_id=document_id,
            prompt_preview=prompt,
            prompt_len=len(prompt),
            sources=chunk_ids,
        )

        started = time.perf_counter()
        try:
            reply = await self.model.generate(prompt, req_id=req_id)
            if not reply.text.strip():
                raise TransportError("Model returned an empty reply")
        except ModelClientError as error:
            duration_ms = (time.perf_counter() - started) * 1000.0
            LOGGER.exception("Chat turn failed for document %s", document_id)
            emit_exception(module=f"{__name__}.model", error=error, req_id=req_id, session_id=document_id)
            self.store.append_message(document_id, ChatMessage(role=ROLE_ASSISTANT, content=APOLOGY_MESSAGE))
            emit_inference_result(
                req_id=req_id,
                session_id=document_id,
                duration_ms=duration_ms,
                answer_preview=APOLOGY_MESSAGE,
                fallback=True,
                tokens_used=None,
            )
            self._audit(document_id, query, chunk_ids, failed=True)
            return ChatTurnResult(
                document_id=document_id,
                reply_text=APOLOGY_MESSAGE,
                response_time_ms=duration_ms,
                tokens_used=0,
                context_chunk_ids=chunk_ids,
                failed=True,
            )

        duration_ms = (time.perf_counter() - started) * 1000.0
        self.store.append_message(
            document_id,
            ChatMessage(
                role=ROLE_ASSISTANT,
                content=reply.text,
                context_chunk_ids=chunk_ids,
                metadata=MessageMetadata(response_time_ms=round(duration_ms, 3), tokens_used=reply.tokens_used),
            ),
        )
        emit_inference_result(
            req_id=req_id,
            session_id=document_id,
            duration_ms=duration_ms,
            answer_preview=reply.text,
            fallback=False,
            tokens_used=reply.tokens_used,
        )
        self._audit(document_id, query, chunk_ids, failed=False)
        return ChatTurnResult(
            document_id=document_id,
            reply_text=reply.text,
            response_time_ms=duration_ms,
            tokens_used=reply.tokens_used,
            context_chunk_ids=chunk_ids,
        )

    @staticmethod
    def _audit(document_id: str, query: str, chunk_ids: List[str], *, failed: bool) -> None:
        AUDIT_LOGGER.info(
            {
                "event": "chat",
                "document_id": document_id,
                "question": query,
                "sources": chunk_ids,
                "failed": failed,
            }
        )


__all__ = ["APOLOGY_MESSAGE", "ChatService", "ChatTurnResult"]
