"""Upload flow: analyse a document, then persist its context and chat session."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from legallens.ingest import (
    ChunkerConfig,
    DocumentType,
    DocumentTypeDetector,
    ExtractedEntity,
    SectionChunker,
    extract_entities,
)
from legallens.services.analysis import AnalysisOrchestrator, AnalysisReport
from legallens.sessions import ChatSession, ContextStore, DocumentContext
from legallens.telemetry import emit_exception, traced_duration

LOGGER = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Document analysis completed"
_RISK_GROUPS = ("legalRisks", "financialRisks", "operationalRisks")


def new_document_id() -> str:
    return f"doc_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _strings(values: Any) -> List[str]:
    if isinstance(values, str):
        return [values.strip()] if values.strip() else []
    if not isinstance(values, list):
        return []
    return [str(value).strip() for value in values if isinstance(value, (str, int, float)) and str(value).strip()]


def summary_from_report(report: AnalysisReport) -> str:
    summary = report.executive_summary
    for key in ("keyPurpose", "mainSubject"):
        value = summary.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return DEFAULT_SUMMARY


def risk_factors_from_report(report: AnalysisReport) -> List[str]:
    """Collect risk descriptions and red flags named by the analysis."""

    factors: List[str] = []
    for group in _RISK_GROUPS:
        for risk in report.risk_assessment.get(group) or []:
            if isinstance(risk, dict):
                description = risk.get("description") or risk.get("type")
                if isinstance(description, str) and description.strip():
                    factors.append(description.strip())
    factors.extend(_strings(report.human_explanation.get("redFlags")))
    return factors


def key_entities_from(report: AnalysisReport, entities: Iterable[ExtractedEntity]) -> List[str]:
    names = _strings(report.executive_summary.get("partiesInvolved"))
    names.extend(entity.value for entity in entities if entity.type != "legal_term")
    return names


@dataclass(slots=True)
class DocumentAnalysisResult:
    document_id: str
    document_name: str
    report: AnalysisReport
    document_type: DocumentType
    entities: List[ExtractedEntity]
    chunk_count: int

    def to_dict(self) -> Dict[str, Any]:
        analysis = self.report.to_dict()
        analysis["documentType"] = self.document_type.value
        analysis["entities"] = [entity.to_dict() for entity in self.entities]
        analysis["chunkCount"] = self.chunk_count
        return analysis


class DocumentService:
    """Analyse extracted text and make the document available for chat.

    Nothing is stored unless the analysis succeeds. On success the report, the
    document context and a fresh empty chat session are written.
    """

    def __init__(
        self,
        store: ContextStore,
        orchestrator: AnalysisOrchestrator,
        *,
        chunker: SectionChunker | None = None,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.chunker = chunker or SectionChunker(ChunkerConfig())

    async def analyze_document(
        self,
        text: str,
        document_name: str,
        *,
        document_id: str | None = None,
    ) -> DocumentAnalysisResult:
        if not text or not text.strip():
            raise ValueError("extracted text must not be empty")
        document_id = document_id or new_document_id()

        with traced_duration("document.analyze", logger=LOGGER, document_id=document_id):
            try:
                report = await self.orchestrator.analyze(text, document_name)
            except Exception as error:
                LOGGER.error("Analysis failed for %s (%s)", document_name, document_id)
                emit_exception(module=f"{__name__}.analysis", error=error, session_id=document_id)
                raise

            chunks = self.chunker.chunk(text, document_name)
            entities = extract_entities(text)
            document_type = DocumentTypeDetector.detect(text)
            result = DocumentAnalysisResult(
                document_id=document_id,
                document_name=document_name,
                report=report,
                document_type=document_type,
                entities=entities,
                chunk_count=len(chunks),
            )

            self.store.store_report(document_id, result.to_dict())
            self.store.store_context(
                DocumentContext(
                    document_id=document_id,
                    document_name=document_name,
                    full_text=text,
                    chunks=chunks,
                    summary=summary_from_report(report),
                    key_entities=key_entities_from(report, entities),
                    risk_factors=risk_factors_from_report(report),
                )
            )
            self.store.create_session(document_id, document_name)

        LOGGER.info(
            "Stored %s chunks for %s as %s (%s)",
            len(chunks),
            document_name,
            document_id,
            document_type.value,
        )
        return result

    def get_context(self, document_id: str) -> DocumentContext:
        return self.store.get_context(document_id)

    def get_report(self, document_id: str) -> Dict[str, Any]:
        self.store.get_context(document_id)
        return self.store.get_report(document_id)

    def get_session(self, document_id: str) -> ChatSession:
        return self.store.get_session(document_id)

    def list_sessions(self) -> List[ChatSession]:
        return self.store.list_sessions()

    def delete_document(self, document_id: str) -> bool:
        return self.store.delete_document(document_id)


__all__ = [
    "DEFAULT_SUMMARY",
    "DocumentAnalysisResult",
    "DocumentService",
    "key_entities_from",
    "new_document_id",
    "risk_factors_from_report",
    "summary_from_report",
]
