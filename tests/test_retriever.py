from legallens.ingest import Chunk, SectionType
from legallens.retriever import find_relevant, query_words, score_chunk


def make_chunk(ordinal: int, text: str, section_type: SectionType = SectionType.GENERAL) -> Chunk:
    return Chunk(
        id=f"doc_chunk_{ordinal}",
        text=text,
        section_type=section_type,
        confidence=0.9,
        start_index=ordinal * 100,
        end_index=ordinal * 100 + len(text),
        word_count=len(text.split()),
    )


def test_exact_phrase_outranks_single_word_match():
    word_only = make_chunk(0, "Termination requires a signed letter.", SectionType.TERMINATION)
    phrase = make_chunk(1, "A termination notice must be sent.", SectionType.TERMINATION)

    ranked = find_relevant("termination notice", [word_only, phrase], 5)

    assert [chunk.id for chunk in ranked] == ["doc_chunk_1", "doc_chunk_0"]
    assert score_chunk("termination notice", phrase) > score_chunk("termination notice", word_only)


def test_score_components():
    chunk = make_chunk(0, "Payment terms: payment is due monthly.", SectionType.PAYMENT)

    # phrase (10) + "payment" twice (4) + section hint (5)
    assert score_chunk("payment", chunk) == 19


def test_repeated_query_words_count_each_time():
    chunk = make_chunk(0, "The fee is fixed.")

    assert score_chunk("fee fee", chunk) == 4


def test_short_words_are_ignored():
    assert query_words("Is it ok to go") == []
    assert score_chunk("is it", make_chunk(0, "This is it.")) == 10


def test_section_bonus_applies_once():
    chunk = make_chunk(0, "Nothing relevant here.", SectionType.LIABILITY)

    assert score_chunk("liability and termination", chunk) == 5


def test_limit_and_stable_ordering():
    chunks = [make_chunk(index, f"Clause {index} about delivery.") for index in range(8)]

    ranked = find_relevant("delivery", chunks, 3)

    assert [chunk.id for chunk in ranked] == ["doc_chunk_0", "doc_chunk_1", "doc_chunk_2"]


def test_results_are_subset_sorted_by_score():
    chunks = [
        make_chunk(0, "General provisions."),
        make_chunk(1, "Confidential information stays confidential."),
        make_chunk(2, "Confidential data."),
    ]

    ranked = find_relevant("confidential", chunks, 5)
    scores = [score_chunk("confidential", chunk) for chunk in ranked]

    assert len(ranked) == 3
    assert scores == sorted(scores, reverse=True)
    assert ranked[0].id == "doc_chunk_1"


def test_non_positive_limit_or_no_chunks_returns_empty():
    chunk = make_chunk(0, "Any text.")

    assert find_relevant("text", [chunk], 0) == []
    assert find_relevant("text", [chunk], -1) == []
    assert find_relevant("text", [], 5) == []
