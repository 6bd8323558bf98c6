"""Lexical ranking of document chunks against a chat query.

Scores are plain keyword counts. Chunk length is not normalised, so longer
chunks collect more word hits and tend to rank higher.
"""
from __future__ import annotations

import logging
import time
from typing import List, Sequence, Tuple

from legallens.ingest.models import Chunk, SectionType
from legallens.telemetry import emit_retriever_event

LOGGER = logging.getLogger(__name__)

PHRASE_MATCH_SCORE = 10
WORD_MATCH_SCORE = 2
SECTION_MATCH_SCORE = 5
MIN_WORD_LENGTH = 3

_SECTION_HINTS: Tuple[Tuple[str, SectionType], ...] = (
    ("termination", SectionType.TERMINATION),
    ("payment", SectionType.PAYMENT),
    ("liability", SectionType.LIABILITY),
)


def query_words(query: str) -> List[str]:
    """Lower-cased whitespace tokens of ``query`` longer than two characters."""

    return [word for word in query.lower().split() if len(word) >= MIN_WORD_LENGTH]


def score_chunk(query: str, chunk: Chunk) -> int:
    """Return the relevance score of ``chunk`` for ``query``."""

    lowered_query = query.lower()
    chunk_text = chunk.text.lower()
    score = 0

    if lowered_query and lowered_query in chunk_text:
        score += PHRASE_MATCH_SCORE

    for word in query_words(query):
        score += chunk_text.count(word) * WORD_MATCH_SCORE

    for hint, section_type in _SECTION_HINTS:
        if hint in lowered_query and chunk.section_type is section_type:
            score += SECTION_MATCH_SCORE
            break

    return score


def find_relevant(query: str, chunks: Sequence[Chunk], limit: int = 5) -> List[Chunk]:
    """Return up to ``limit`` chunks ordered by descending score.

    Chunks with equal scores keep their document order.
    """

    if limit <= 0 or not chunks:
        return []

    started = time.perf_counter()
    scored = [(score_chunk(query, chunk), chunk) for chunk in chunks]
    scored.sort(key=lambda item: item[0], reverse=True)
    ranked = scored[:limit]

    emit_retriever_event(
        query=query,
        limit=limit,
        results=[{"id": chunk.id, "score": score} for score, chunk in ranked],
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )
    return [chunk for _, chunk in ranked]


__all__ = ["find_relevant", "query_words", "score_chunk"]
