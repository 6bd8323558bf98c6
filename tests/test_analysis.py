import asyncio

import pytest

from conftest import FACET_REPLIES, SAMPLE_CONTRACT, ScriptedTransport, facet_of, facet_responder
from legallens.errors import KeyPoolExhausted, MalformedModelOutput, RateLimitedError
from legallens.llm_provider import ResilientModelClient
from legallens.services.analysis import (
    AnalysisFacet,
    AnalysisOrchestrator,
    Complexity,
    assess_complexity,
    estimate_confidence,
    render_facet_prompt,
)
from legallens.services.documents import DocumentService


@pytest.mark.anyio
async def test_analyze_assembles_all_facets(analysis_client):
    orchestrator = AnalysisOrchestrator(analysis_client)

    report = await orchestrator.analyze(SAMPLE_CONTRACT, "service.pdf")

    assert report.executive_summary == FACET_REPLIES[AnalysisFacet.EXECUTIVE_SUMMARY]
    assert report.risk_assessment == FACET_REPLIES[AnalysisFacet.RISK_ASSESSMENT]
    assert report.metadata.truncated is False
    assert report.metadata.analyzed_characters == len(SAMPLE_CONTRACT)
    assert report.metadata.word_count == len(SAMPLE_CONTRACT.split())
    assert report.metadata.processing_time_ms >= 0

    payload = report.to_dict()
    assert set(payload) == {"executiveSummary", "detailedAnalysis", "humanExplanation", "metadata"}
    assert set(payload["detailedAnalysis"]) == {
        "contractTerms",
        "riskAssessment",
        "complianceCheck",
        "financialAnalysis",
    }
    assert payload["metadata"]["complexity"] == "moderate"
    assert len(analysis_client.transport.calls) == 6


@pytest.mark.anyio
async def test_prompts_receive_prefix_and_document_name():
    transport = ScriptedTransport(responder=facet_responder)
    orchestrator = AnalysisOrchestrator(ResilientModelClient(["k"], transport), prefix_chars=50)
    text = "A" * 40 + "B" * 40

    report = await orchestrator.analyze(text, "long.txt")

    assert report.metadata.truncated is True
    assert report.metadata.analyzed_characters == 50
    prompts = {facet_of(prompt): prompt for prompt, _ in transport.calls}
    assert "Document: long.txt" in prompts[AnalysisFacet.EXECUTIVE_SUMMARY]
    for prompt in prompts.values():
        assert "A" * 40 + "B" * 10 in prompt
        assert "B" * 11 not in prompt


@pytest.mark.anyio
async def test_failed_facet_fails_whole_analysis_and_stores_nothing(context_store):
    def responder(prompt, api_key):
        if facet_of(prompt) is AnalysisFacet.RISK_ASSESSMENT:
            return RateLimitedError("quota exceeded")
        return facet_responder(prompt, api_key)

    client = ResilientModelClient(["k1", "k2"], ScriptedTransport(responder=responder))
    service = DocumentService(context_store, AnalysisOrchestrator(client))

    with pytest.raises(KeyPoolExhausted):
        await service.analyze_document(SAMPLE_CONTRACT, "service.pdf", document_id="doc-1")

    assert context_store.find_context("doc-1") is None
    assert context_store.find_session("doc-1") is None
    assert context_store.list_sessions() == []


class SlowFacetModel:
    def __init__(self) -> None:
        self.cancelled = []

    async def call_structured(self, prompt):
        facet = facet_of(prompt)
        if facet is AnalysisFacet.COMPLIANCE_CHECK:
            raise MalformedModelOutput("bad json", raw_text="oops")
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            self.cancelled.append(facet)
            raise
        return {}


@pytest.mark.anyio
async def test_first_failure_cancels_remaining_facets():
    model = SlowFacetModel()

    with pytest.raises(MalformedModelOutput) as excinfo:
        await AnalysisOrchestrator(model).analyze(SAMPLE_CONTRACT, "doc")

    assert excinfo.value.raw_text == "oops"
    assert len(model.cancelled) == 5


class TwoFailuresModel:
    """The summary facet fails one loop step after the compliance facet."""

    async def call_structured(self, prompt):
        facet = facet_of(prompt)
        if facet is AnalysisFacet.EXECUTIVE_SUMMARY:
            await asyncio.sleep(0)
            raise MalformedModelOutput("late", raw_text="summary")
        if facet is AnalysisFacet.COMPLIANCE_CHECK:
            raise MalformedModelOutput("early", raw_text="compliance")
        return {}


@pytest.mark.anyio
async def test_earliest_failure_wins_over_facet_order():
    with pytest.raises(MalformedModelOutput) as excinfo:
        await AnalysisOrchestrator(TwoFailuresModel()).analyze(SAMPLE_CONTRACT, "doc")

    assert excinfo.value.raw_text == "compliance"


class ListFacetModel:
    async def call_structured(self, prompt):
        return ["not", "an", "object"]


@pytest.mark.anyio
async def test_non_object_facet_reply_is_malformed():
    with pytest.raises(MalformedModelOutput):
        await AnalysisOrchestrator(ListFacetModel()).analyze(SAMPLE_CONTRACT, "doc")


def test_invalid_prefix_is_rejected():
    with pytest.raises(ValueError):
        AnalysisOrchestrator(ListFacetModel(), prefix_chars=0)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("plain words only", 0.7),
        ("plain words 42", 0.8),
        ("terms 42", 0.9),
        (("word " * 501) + "contract 7", 0.95),
    ],
)
def test_estimate_confidence(text, expected):
    assert estimate_confidence(text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("A short contract.", Complexity.SIMPLE),
        ("word " * 1500, Complexity.MODERATE),
        ("liability " * 10, Complexity.MODERATE),
        ("word " * 5000, Complexity.COMPLEX),
        ("breach " * 20, Complexity.COMPLEX),
        ("word " * 9000, Complexity.HIGHLY_COMPLEX),
        ("arbitration " * 40, Complexity.HIGHLY_COMPLEX),
    ],
)
def test_assess_complexity(text, expected):
    assert assess_complexity(text) is expected


def test_facet_templates_render_content():
    prompt = render_facet_prompt(AnalysisFacet.CONTRACT_TERMS, "CONTENT-MARKER", "ignored.pdf")

    assert "CONTENT-MARKER" in prompt
    assert '"terminationClauses"' in prompt
