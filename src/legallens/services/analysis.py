"""Six-facet document analysis driven by the hosted language model."""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Protocol

from legallens.errors import MalformedModelOutput
from legallens.sessions import utc_now_iso
from legallens.telemetry import emit_analysis_event

LOGGER = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "prompts" / "analysis"

DEFAULT_PREFIX_CHARS = 8000

_CONFIDENCE_TERMS_RE = re.compile(r"agreement|contract|terms|conditions", re.IGNORECASE)
_COMPLEXITY_TERMS_RE = re.compile(
    r"agreement|contract|liability|indemnity|warranty|breach|termination|jurisdiction|arbitration",
    re.IGNORECASE,
)


class AnalysisFacet(str, Enum):
    EXECUTIVE_SUMMARY = "executive_summary"
    CONTRACT_TERMS = "contract_terms"
    RISK_ASSESSMENT = "risk_assessment"
    COMPLIANCE_CHECK = "compliance_check"
    FINANCIAL_ANALYSIS = "financial_analysis"
    HUMAN_EXPLANATION = "human_explanation"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    HIGHLY_COMPLEX = "highly-complex"


def _load_templates() -> Dict[AnalysisFacet, str]:
    return {
        facet: (_TEMPLATES_DIR / f"{facet.value}.md").read_text(encoding="utf-8").strip()
        for facet in AnalysisFacet
    }


_TEMPLATES = _load_templates()


def count_words(text: str) -> int:
    return len(text.split())


def estimate_confidence(text: str) -> float:
    """Heuristic confidence in ``[0.7, 0.95]`` derived from surface features."""

    confidence = 0.7
    if count_words(text) > 500:
        confidence += 0.1
    if any(char.isdigit() for char in text):
        confidence += 0.1
    if _CONFIDENCE_TERMS_RE.search(text):
        confidence += 0.1
    return round(min(confidence, 0.95), 2)


def assess_complexity(text: str) -> Complexity:
    words = count_words(text)
    terms = len(_COMPLEXITY_TERMS_RE.findall(text))
    if words < 1000 and terms < 5:
        return Complexity.SIMPLE
    if words < 3000 and terms < 15:
        return Complexity.MODERATE
    if words < 8000 and terms < 30:
        return Complexity.COMPLEX
    return Complexity.HIGHLY_COMPLEX


@dataclass(slots=True)
class AnalysisMetadata:
    analysis_date: str
    processing_time_ms: float
    confidence: float
    word_count: int
    complexity: Complexity
    truncated: bool = False
    analyzed_characters: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysisDate": self.analysis_date,
            "processingTimeMs": round(self.processing_time_ms, 3),
            "confidence": self.confidence,
            "wordCount": self.word_count,
            "complexity": self.complexity.value,
            "truncated": self.truncated,
            "analyzedCharacters": self.analyzed_characters,
        }


@dataclass(slots=True)
class AnalysisReport:
    """Structured result of :meth:`AnalysisOrchestrator.analyze`."""

    executive_summary: Dict[str, Any]
    contract_terms: Dict[str, Any]
    risk_assessment: Dict[str, Any]
    compliance_check: Dict[str, Any]
    financial_analysis: Dict[str, Any]
    human_explanation: Dict[str, Any]
    metadata: AnalysisMetadata
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "executiveSummary": self.executive_summary,
            "detailedAnalysis": {
                "contractTerms": self.contract_terms,
                "riskAssessment": self.risk_assessment,
                "complianceCheck": self.compliance_check,
                "financialAnalysis": self.financial_analysis,
            },
            "humanExplanation": self.human_explanation,
            "metadata": self.metadata.to_dict(),
        }
        payload.update(self.extras)
        return payload


class StructuredModel(Protocol):
    async def call_structured(self, prompt: str) -> Any:
        ...


def render_facet_prompt(facet: AnalysisFacet, content: str, document_name: str) -> str:
    return _TEMPLATES[facet].format(content=content, document_name=document_name)


class AnalysisOrchestrator:
    """Fan the six facet prompts out concurrently and assemble one report.

    Each facet sees the first ``prefix_chars`` characters of the document. The
    first facet to fail, in the order the failures happened, cancels the
    remaining calls and is re-raised as is, so callers never observe a partial
    report.
    """

    def __init__(self, model: StructuredModel, *, prefix_chars: int = DEFAULT_PREFIX_CHARS) -> None:
        if prefix_chars <= 0:
            raise ValueError("prefix_chars must be positive")
        self._model = model
        self._prefix_chars = prefix_chars

    async def _run_facet(
        self,
        facet: AnalysisFacet,
        prompt: str,
        document_name: str,
        failures: List[AnalysisFacet],
    ) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            value = await self._model.call_structured(prompt)
            if not isinstance(value, dict):
                raise MalformedModelOutput(
                    f"{facet.value} reply is not a JSON object",
                    raw_text=json.dumps(value, ensure_ascii=False),
                )
        except Exception:
            failures.append(facet)
            raise
        emit_analysis_event(
            "analysis.facet",
            document_name=document_name,
            facet=facet.value,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return value

    async def analyze(self, text: str, document_name: str) -> AnalysisReport:
        content = text[: self._prefix_chars]
        truncated = len(text) > self._prefix_chars
        word_count = count_words(text)
        emit_analysis_event(
            "analysis.start",
            document_name=document_name,
            truncated=truncated,
            word_count=word_count,
        )
        if truncated:
            LOGGER.info(
                "Analysing the first %s of %s characters of %s",
                self._prefix_chars,
                len(text),
                document_name,
            )

        started = time.perf_counter()
        failures: List[AnalysisFacet] = []
        tasks = {
            facet: asyncio.create_task(
                self._run_facet(
                    facet,
                    render_facet_prompt(facet, content, document_name),
                    document_name,
                    failures,
                ),
                name=f"analysis:{facet.value}",
            )
            for facet in AnalysisFacet
        }
        try:
            done, pending = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
        except BaseException:
            await self._cancel(tasks.values())
            raise

        failed = [facet for facet in failures if tasks[facet] in done]
        if failed:
            await self._cancel(pending)
            facet = failed[0]
            error = tasks[facet].exception()
            emit_analysis_event(
                "analysis.error",
                document_name=document_name,
                facet=facet.value,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            raise error

        results = {facet: task.result() for facet, task in tasks.items()}
        processing_time_ms = (time.perf_counter() - started) * 1000.0
        metadata = AnalysisMetadata(
            analysis_date=utc_now_iso(),
            processing_time_ms=processing_time_ms,
            confidence=estimate_confidence(text),
            word_count=word_count,
            complexity=assess_complexity(text),
            truncated=truncated,
            analyzed_characters=len(content),
        )
        emit_analysis_event(
            "analysis.complete",
            document_name=document_name,
            duration_ms=processing_time_ms,
            truncated=truncated,
            word_count=word_count,
        )
        return AnalysisReport(
            executive_summary=results[AnalysisFacet.EXECUTIVE_SUMMARY],
            contract_terms=results[AnalysisFacet.CONTRACT_TERMS],
            risk_assessment=results[AnalysisFacet.RISK_ASSESSMENT],
            compliance_check=results[AnalysisFacet.COMPLIANCE_CHECK],
            financial_analysis=results[AnalysisFacet.FINANCIAL_ANALYSIS],
            human_explanation=results[AnalysisFacet.HUMAN_EXPLANATION],
            metadata=metadata,
        )

    @staticmethod
    async def _cancel(tasks) -> None:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = [
    "AnalysisFacet",
    "AnalysisMetadata",
    "AnalysisOrchestrator",
    "AnalysisReport",
    "Complexity",
    "assess_complexity",
    "count_words",
    "estimate_confidence",
    "render_facet_prompt",
]
