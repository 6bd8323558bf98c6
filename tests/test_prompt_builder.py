import pytest

from legallens.ingest import Chunk, SectionType
from legallens.prompt_builder import build_prompt, format_history
from legallens.sessions import ChatMessage, DocumentContext


def make_context() -> DocumentContext:
    return DocumentContext(document_id="doc-1", document_name="nda.pdf", full_text="", chunks=[])


def make_chunk(text: str, section_type: SectionType) -> Chunk:
    return Chunk(
        id="nda.pdf_chunk_0",
        text=text,
        section_type=section_type,
        confidence=0.9,
        start_index=0,
        end_index=len(text),
        word_count=len(text.split()),
    )


def test_prompt_contains_document_chunks_history_and_question():
    history = [
        ChatMessage(role="user", content="Hi"),
        ChatMessage(role="assistant", content="Hello! Ask me about the NDA."),
    ]
    chunks = [
        make_chunk("Information stays confidential for five years.", SectionType.CONFIDENTIALITY),
        make_chunk("Copyright stays with the discloser.", SectionType.INTELLECTUAL_PROPERTY),
    ]

    prompt = build_prompt("How long is the {confidentiality} period?", make_context(), history, chunks)

    assert 'You\'re helping with: "nda.pdf"' in prompt
    assert (
        "[CONFIDENTIALITY] Information stays confidential for five years.\n\n"
        "[INTELLECTUAL_PROPERTY] Copyright stays with the discloser."
    ) in prompt
    assert "User: Hi\nAssistant: Hello! Ask me about the NDA." in prompt
    assert "USER QUESTION: How long is the {confidentiality} period?" in prompt
    assert "legal advice" in prompt
    assert prompt.rstrip().endswith("Response:")


def test_only_last_six_messages_are_included():
    history = [ChatMessage(role="user", content=f"question {index}") for index in range(10)]

    rendered = format_history(history)

    assert rendered.splitlines() == [f"User: question {index}" for index in range(4, 10)]


def test_empty_history_and_chunks_use_placeholders():
    prompt = build_prompt("Anything?", make_context(), [], [])

    assert "No previous messages." in prompt
    assert "No matching excerpts were found in the document." in prompt


def test_none_query_is_rejected():
    with pytest.raises(ValueError):
        build_prompt(None, make_context(), [], [])
