"""Sentence-aware chunking with keyword based section labelling."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .models import Chunk, SectionType
from .normalization import normalize_text

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
LOGGER = logging.getLogger(__name__)

# Order matters: the first section whose keywords appear wins.
SECTION_KEYWORDS: Tuple[Tuple[SectionType, Tuple[str, ...]], ...] = (
    (SectionType.TERMINATION, ("terminat", "expir")),
    (SectionType.PAYMENT, ("payment", "fee", "cost")),
    (SectionType.LIABILITY, ("liability", "indemnif")),
    (SectionType.CONFIDENTIALITY, ("confidential", "proprietary")),
    (SectionType.WARRANTY, ("warranty", "guarantee")),
    (SectionType.INTELLECTUAL_PROPERTY, ("intellectual property", "copyright")),
    (SectionType.LEGAL, ("governing law", "jurisdiction")),
    (SectionType.FORCE_MAJEURE, ("force majeure", "act of god")),
)


def classify_section(text: str) -> SectionType:
    """Return the section type for ``text`` using the keyword precedence list."""

    lowered = text.lower()
    for section_type, keywords in SECTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return section_type
    return SectionType.GENERAL


@dataclass(slots=True)
class ChunkerConfig:
    max_chunk_chars: int = 800
    overlap_chars: int = 100
    confidence: float = 0.9


class SectionChunker:
    """Split document text into overlapping, sentence-aligned chunks.

    Sentences are accumulated greedily until the next one would push the
    buffer past ``max_chunk_chars``. The following chunk then starts with the
    trailing ``overlap_chars`` characters of the emitted one. Every chunk is a
    contiguous slice of the normalised text, so ``chunk.text`` always equals
    ``normalized[chunk.start_index:chunk.end_index]``.
    """

    def __init__(self, config: Optional[ChunkerConfig] = None) -> None:
        self.config = config or ChunkerConfig()
        if self.config.max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be a positive integer")
        if self.config.overlap_chars < 0:
            raise ValueError("overlap_chars must be a non-negative integer")
        if not 0.0 <= self.config.confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")

    def chunk(self, text: str, document_name: str) -> List[Chunk]:
        normalized = normalize_text(text or "")
        if not normalized:
            return []

        chunks: List[Chunk] = []
        for ordinal, (start, end) in enumerate(self._chunk_spans(normalized)):
            chunk_text = normalized[start:end]
            chunks.append(
                Chunk(
                    id=f"{document_name}_chunk_{ordinal}",
                    text=chunk_text,
                    section_type=classify_section(chunk_text),
                    confidence=self.config.confidence,
                    start_index=start,
                    end_index=end,
                    word_count=len(chunk_text.split()),
                )
            )
            LOGGER.debug(
                "Chunk %s offsets %s-%s section %s",  # noqa: G004 - f-string not required
                ordinal,
                start,
                end,
                chunks[-1].section_type.value,
            )
        return chunks

    def _chunk_spans(self, text: str) -> Iterator[Tuple[int, int]]:
        buffer_start: Optional[int] = None
        buffer_end = 0
        for sentence_start, sentence_end in self._sentence_spans(text):
            if buffer_start is None:
                buffer_start, buffer_end = sentence_start, sentence_end
                continue
            if sentence_end - buffer_start > self.config.max_chunk_chars:
                yield buffer_start, buffer_end
                buffer_start = self._overlap_start(text, buffer_start, buffer_end, sentence_start)
            buffer_end = sentence_end
        if buffer_start is not None:
            yield buffer_start, buffer_end

    def _overlap_start(self, text: str, chunk_start: int, chunk_end: int, next_sentence: int) -> int:
        # The seed never covers the whole emitted chunk so start offsets keep increasing.
        start = max(chunk_end - self.config.overlap_chars, chunk_start + 1)
        while start < next_sentence and text[start].isspace():
            start += 1
        return start

    @staticmethod
    def _sentence_spans(text: str) -> Iterator[Tuple[int, int]]:
        for match in _SENTENCE_RE.finditer(text):
            raw = match.group()
            stripped = raw.strip()
            if not stripped:
                continue
            start = match.start() + (len(raw) - len(raw.lstrip()))
            yield start, start + len(stripped)


def chunk_document(text: str, document_name: str, config: Optional[ChunkerConfig] = None) -> List[Chunk]:
    """Chunk ``text`` for ``document_name`` with the default or given configuration."""

    return SectionChunker(config).chunk(text, document_name)
