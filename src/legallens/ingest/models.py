"""Data models produced by the ingestion step."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class SectionType(str, Enum):
    """Coarse content category assigned to a chunk."""

    TERMINATION = "termination"
    PAYMENT = "payment"
    LIABILITY = "liability"
    CONFIDENTIALITY = "confidentiality"
    WARRANTY = "warranty"
    INTELLECTUAL_PROPERTY = "intellectual_property"
    LEGAL = "legal"
    FORCE_MAJEURE = "force_majeure"
    GENERAL = "general"


@dataclass(frozen=True, slots=True)
class Chunk:
    """A labelled, bounded slice of the normalised document text."""

    id: str
    text: str
    section_type: SectionType
    confidence: float
    start_index: int
    end_index: int
    word_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sectionType": self.section_type.value,
            "confidence": self.confidence,
            "startIndex": self.start_index,
            "endIndex": self.end_index,
            "wordCount": self.word_count,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Chunk":
        return cls(
            id=str(payload["id"]),
            text=str(payload["text"]),
            section_type=SectionType(payload.get("sectionType", SectionType.GENERAL.value)),
            confidence=float(payload.get("confidence", 0.0)),
            start_index=int(payload["startIndex"]),
            end_index=int(payload["endIndex"]),
            word_count=int(payload.get("wordCount", 0)),
        )


@dataclass(frozen=True, slots=True)
class ExtractedEntity:
    """Entity found in the raw document text by pattern matching."""

    type: str
    value: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value, "confidence": self.confidence}
