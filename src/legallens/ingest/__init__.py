"""Document segmentation and pattern extraction."""
from __future__ import annotations

from .chunking import ChunkerConfig, SectionChunker, chunk_document, classify_section
from .entities import DocumentType, DocumentTypeDetector, extract_entities
from .models import Chunk, ExtractedEntity, SectionType
from .normalization import normalize_text

__all__ = [
    "Chunk",
    "ChunkerConfig",
    "DocumentType",
    "DocumentTypeDetector",
    "ExtractedEntity",
    "SectionChunker",
    "SectionType",
    "chunk_document",
    "classify_section",
    "extract_entities",
    "normalize_text",
]
