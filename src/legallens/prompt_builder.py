"""Utilities for constructing grounded chat prompts."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

from legallens.ingest.models import Chunk
from legallens.sessions import ROLE_USER, ChatMessage, DocumentContext
from legallens.telemetry import emit_prompt_event

_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
_SYSTEM_PROMPT_PATH = _PROMPTS_DIR / "chat" / "system.md"

HISTORY_WINDOW = 6
NO_CONTEXT_TEXT = "No matching excerpts were found in the document."
NO_HISTORY_TEXT = "No previous messages."


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


_SYSTEM_TEMPLATE = _load_template(_SYSTEM_PROMPT_PATH)


def format_history(history: Sequence[ChatMessage], window: int = HISTORY_WINDOW) -> str:
    recent = list(history)[-window:] if window > 0 else []
    lines = [
        f"{'User' if message.role == ROLE_USER else 'Assistant'}: {message.content}"
        for message in recent
    ]
    return "\n".join(lines)


def format_chunks(chunks: Sequence[Chunk]) -> str:
    return "\n\n".join(f"[{chunk.section_type.value.upper()}] {chunk.text}" for chunk in chunks)


def build_prompt(
    query: str,
    document_context: DocumentContext,
    history: Sequence[ChatMessage],
    relevant_chunks: Sequence[Chunk],
) -> str:
    """Compose the prompt answering ``query`` about ``document_context``.

    Only the last six ``history`` messages are included, oldest first. The
    caller passes the history as it stood before the current question.
    """

    if query is None:
        raise ValueError("query must not be None")

    context_block = format_chunks(relevant_chunks) or NO_CONTEXT_TEXT
    history_block = format_history(history) or NO_HISTORY_TEXT

    prompt = _SYSTEM_TEMPLATE.format(
        document_name=document_context.document_name,
        context_block=context_block,
        history_block=history_block,
        query=query,
    )
    emit_prompt_event(
        document_name=document_context.document_name,
        sources=[chunk.id for chunk in relevant_chunks],
        history_messages=min(len(history), HISTORY_WINDOW),
        prompt_len=len(prompt),
    )
    return prompt


__all__ = ["HISTORY_WINDOW", "build_prompt", "format_chunks", "format_history"]
