"""Pattern based entity extraction and document type detection."""
from __future__ import annotations

import re
from enum import Enum
from typing import List, Tuple

from .models import ExtractedEntity

_AMOUNT_RE = re.compile(
    r"[₹$€£]\s*\d+(?:,\d{3})*(?:\.\d{2})?"
    r"|\d+(?:,\d{3})*(?:\.\d{2})?\s*(?:rupees?|dollars?|euros?|pounds?|lakh|crore)\b",
    re.IGNORECASE,
)
_DATE_RE = re.compile(
    r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"
    r"|\b\d{4}[/-]\d{1,2}[/-]\d{1,2}\b"
    r"|\b(?:january|february|march|april|may|june|july|august|september|october|november|december)"
    r"\s+\d{1,2},?\s+\d{4}\b",
    re.IGNORECASE,
)
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_RE = re.compile(r"(?:\+91[-\s]?)?\b\d{5}[-\s]?\d{5}\b")

LEGAL_TERMS: Tuple[str, ...] = (
    "agreement",
    "contract",
    "terms",
    "conditions",
    "liability",
    "warranty",
    "indemnity",
    "breach",
    "termination",
    "governing law",
    "jurisdiction",
    "arbitration",
    "confidentiality",
    "non-compete",
    "force majeure",
)

_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]", float], ...] = (
    ("amount", _AMOUNT_RE, 0.95),
    ("date", _DATE_RE, 0.9),
    ("email", _EMAIL_RE, 0.98),
    ("phone", _PHONE_RE, 0.9),
)


def extract_entities(text: str) -> List[ExtractedEntity]:
    """Return amounts, dates, e-mails, phone numbers and legal terms found in ``text``.

    Values are reported in document order per entity type; repeated values
    are kept once.
    """

    entities: List[ExtractedEntity] = []
    seen: set[tuple[str, str]] = set()
    for entity_type, pattern, confidence in _PATTERNS:
        for match in pattern.finditer(text):
            value = match.group().strip()
            if (entity_type, value) in seen:
                continue
            seen.add((entity_type, value))
            entities.append(ExtractedEntity(type=entity_type, value=value, confidence=confidence))

    for term in LEGAL_TERMS:
        if re.search(rf"\b{re.escape(term)}\b", text, re.IGNORECASE):
            entities.append(ExtractedEntity(type="legal_term", value=term, confidence=0.8))
    return entities


class DocumentType(str, Enum):
    """Document categories recognised from content keywords."""

    CONTRACT = "Contract Agreement"
    LEASE = "Lease Agreement"
    EMPLOYMENT = "Employment Document"
    NDA = "Non-Disclosure Agreement"
    TERMS_OF_SERVICE = "Terms of Service"
    GENERIC = "Document"


class DocumentTypeDetector:
    """Guess the document type from characteristic keywords."""

    _RULES: Tuple[Tuple[DocumentType, "re.Pattern[str]"], ...] = (
        (DocumentType.CONTRACT, re.compile(r"contract|agreement", re.IGNORECASE)),
        (DocumentType.LEASE, re.compile(r"lease|rental", re.IGNORECASE)),
        (DocumentType.EMPLOYMENT, re.compile(r"employment|job|salary", re.IGNORECASE)),
        (DocumentType.NDA, re.compile(r"nda|confidentiality|non-disclosure", re.IGNORECASE)),
        (DocumentType.TERMS_OF_SERVICE, re.compile(r"terms|service|conditions", re.IGNORECASE)),
    )

    @classmethod
    def detect(cls, text: str) -> DocumentType:
        for document_type, pattern in cls._RULES:
            if pattern.search(text):
                return document_type
        return DocumentType.GENERIC
