"""Shared fixtures: scripted model transports, stores and sample documents."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Tuple, Union

import pytest

from legallens.llm.gemini import ModelTransport, TransportReply
from legallens.llm_provider import ResilientModelClient
from legallens.services.analysis import AnalysisFacet, render_facet_prompt
from legallens.sessions import ContextStore
from legallens.storage import InMemoryKeyValueStore

Outcome = Union[str, TransportReply, BaseException]

SAMPLE_CONTRACT = (
    "This Service Agreement is made between Acme Corp and Beta LLC on January 5, 2024. "
    "The client shall pay a fee of $12,000 per month. Payment is due within 30 days of invoice. "
    "Either party may terminate this agreement with 60 days written notice. "
    "Neither party shall be liable for indirect damages and the liability of Acme Corp is capped. "
    "All proprietary information shall remain confidential. "
    "This agreement is governed by the laws of the State of New York and its courts have jurisdiction. "
    "Questions may be sent to legal@acme.example."
)

FACET_REPLIES: Dict[AnalysisFacet, Dict[str, Any]] = {
    AnalysisFacet.EXECUTIVE_SUMMARY: {
        "documentType": "Service Agreement",
        "keyPurpose": "Sets out the services Acme Corp provides to Beta LLC.",
        "partiesInvolved": ["Acme Corp", "Beta LLC"],
        "mainSubject": "Services",
        "overallRiskLevel": "medium",
        "confidence": 0.9,
        "isLegalDocument": True,
        "documentCategory": "contract",
    },
    AnalysisFacet.CONTRACT_TERMS: {
        "duration": "Until terminated",
        "paymentTerms": ["$12,000 per month"],
        "obligations": ["Pay within 30 days"],
        "terminationClauses": ["60 days written notice"],
        "penalties": [],
    },
    AnalysisFacet.RISK_ASSESSMENT: {
        "financialRisks": [{"type": "cash", "description": "Monthly fee is fixed"}],
        "legalRisks": [{"type": "liability", "description": "Liability cap favours Acme Corp"}],
        "operationalRisks": [],
    },
    AnalysisFacet.COMPLIANCE_CHECK: {"regulatoryRequirements": [], "industryStandards": []},
    AnalysisFacet.FINANCIAL_ANALYSIS: {"totalValue": "$144,000 per year", "paymentSchedule": [], "costBreakdown": []},
    AnalysisFacet.HUMAN_EXPLANATION: {
        "plainLanguageSummary": "Acme works for Beta for a monthly fee.",
        "keyTakeaways": ["Fixed fee"],
        "redFlags": ["Short notice period"],
        "greenFlags": [],
        "recommendations": [],
        "nextSteps": [],
    },
}


def facet_of(prompt: str) -> AnalysisFacet:
    """Identify which facet template produced ``prompt``."""

    for facet in AnalysisFacet:
        heading = render_facet_prompt(facet, "", "").splitlines()[0]
        if prompt.startswith(heading):
            return facet
    raise AssertionError(f"Unrecognised prompt: {prompt[:80]!r}")


class ScriptedTransport(ModelTransport):
    """Transport replaying queued outcomes, or answering through ``responder``."""

    def __init__(
        self,
        outcomes: List[Outcome] | None = None,
        *,
        responder: Callable[[str, str], Outcome] | None = None,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.responder = responder
        self.calls: List[Tuple[str, str]] = []

    @property
    def model_name(self) -> str:
        return "scripted-model"

    async def send(self, prompt: str, api_key: str) -> TransportReply:
        self.calls.append((prompt, api_key))
        if self.responder is not None:
            outcome = self.responder(prompt, api_key)
        else:
            outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, TransportReply):
            return outcome
        return TransportReply(text=outcome, tokens_used=42)


def facet_responder(prompt: str, api_key: str) -> Outcome:
    facet = facet_of(prompt)
    return "```json\n" + json.dumps(FACET_REPLIES[facet]) + "\n```"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def context_store() -> ContextStore:
    return ContextStore(InMemoryKeyValueStore())


@pytest.fixture
def analysis_client() -> ResilientModelClient:
    return ResilientModelClient(["key-a", "key-b"], ScriptedTransport(responder=facet_responder))
