"""Tests for document chunking, chunk metadata and chunk merging."""

import random

import pytest

from conftest import make_chunk
from docqa.core.errors import DocQAError, ErrorKind
from docqa.core.models import Document
from docqa.services.chunk_service import (
    DocumentChunker,
    calculate_importance,
    extract_heading,
    extract_keywords,
    extract_section,
    jaccard_similarity,
    merge_similar_chunks,
)


def _doc(content, doc_id="doc_1"):
    return Document(doc_id=doc_id, name="doc.txt", type="txt", content=content)


def _random_prose(seed, n_words=600):
    rng = random.Random(seed)
    vocab = ["alpha", "beta", "gamma", "delta", "river", "stone", "market", "growth", "data", "x"]
    words = []
    for i in range(n_words):
        w = rng.choice(vocab)
        sep = rng.choice([" ", " ", " ", ". ", "\n", "  "])
        words.append(w + sep)
    return "".join(words)


# ============================================================================
# CHUNK BOUNDARIES
# ============================================================================

def test_missing_content_raises():
    chunker = DocumentChunker()
    for content in (None, "", "   \n  "):
        with pytest.raises(DocQAError) as ei:
            chunker.chunk_document(_doc(content))
        assert ei.value.kind is ErrorKind.MISSING_CONTENT
        assert not ei.value.retryable


def test_unbroken_text_splits_at_raw_boundaries():
    chunks = DocumentChunker(1000, 200).chunk_document(_doc("a" * 2500))

    assert [c.start_index for c in chunks] == [0, 800, 1600]
    assert [c.end_index for c in chunks] == [1000, 1800, 2500]


def test_prose_gives_three_chunks_covering_everything():
    words = ("lorem ipsum dolor sit amet consectetur adipiscing elit sed do " * 50)[:2500]
    chunks = DocumentChunker(1000, 200).chunk_document(_doc(words))

    assert len(chunks) == 3
    for chunk, expected in zip(chunks, [0, 800, 1600]):
        assert abs(chunk.start_index - expected) <= 20
    assert chunks[0].start_index == 0
    assert chunks[-1].end_index == 2500


def test_window_snaps_after_sentence_end():
    text = "x" * 80 + ". " + "y" * 60
    chunks = DocumentChunker(100, 10).chunk_document(_doc(text))

    # break point '.'/' ' past the midpoint, so the window ends right after it
    assert chunks[0].end_index == 82
    assert chunks[0].content.endswith(".")


def test_break_before_midpoint_is_ignored():
    text = "x" * 20 + " " + "y" * 200
    chunks = DocumentChunker(100, 10).chunk_document(_doc(text))

    assert chunks[0].end_index == 100


@pytest.mark.parametrize("seed", range(5))
def test_chunk_ranges_are_ordered_overlapping_and_complete(seed):
    text = _random_prose(seed)
    chunk_size, overlap = 150, 30
    chunks = DocumentChunker(chunk_size, overlap).chunk_document(_doc(text))

    assert chunks
    assert chunks[0].start_index == 0
    assert chunks[-1].end_index == len(text)
    for c in chunks:
        assert 0 <= c.start_index < c.end_index <= len(text)
        assert c.content
        assert c.content == text[c.start_index:c.end_index].strip()
    for prev, nxt in zip(chunks, chunks[1:]):
        assert prev.start_index < nxt.start_index
        assert prev.end_index < nxt.end_index
        # overlapping, never more than the configured overlap, never a gap
        assert 0 <= prev.end_index - nxt.start_index <= overlap


def test_whitespace_windows_are_dropped():
    text = "a" * 50 + " " * 300 + "b" * 50
    chunks = DocumentChunker(100, 0).chunk_document(_doc(text))

    assert all(c.content.strip() for c in chunks)
    assert "".join(c.content for c in chunks) == "a" * 50 + "b" * 50


def test_overlap_larger_than_chunk_size_still_terminates():
    text = "word " * 100
    chunks = DocumentChunker(chunk_size=50, chunk_overlap=80).chunk_document(_doc(text))

    starts = [c.start_index for c in chunks]
    assert starts == sorted(set(starts))
    assert chunks[-1].end_index == len(text)


def test_chunk_ids_and_owner():
    chunks = DocumentChunker(100, 20).chunk_document(_doc("hello world. " * 30, doc_id="doc_42"))

    assert all(c.doc_id == "doc_42" for c in chunks)
    assert [c.chunk_id for c in chunks] == [f"doc_42_chunk_{i}" for i in range(len(chunks))]
    assert all(c.embedding is None for c in chunks)


def test_invalid_chunker_config():
    with pytest.raises(ValueError):
        DocumentChunker(chunk_size=0)
    with pytest.raises(ValueError):
        DocumentChunker(chunk_overlap=-1)


# ============================================================================
# METADATA
# ============================================================================

def test_section_prefers_markdown_heading():
    assert extract_section("intro text\n## Results\nmore") == "Results"


def test_section_canonical_names_and_default():
    assert extract_section("Some text\nConclusion and next steps") == "Conclusion and next steps"
    assert extract_section("Chapter 3 begins here") == "Chapter 3 begins here"
    assert extract_section("just ordinary words") == "General"


def test_heading_rules_in_order():
    assert extract_heading("# Title Here\nEXECUTIVE SUMMARY") == "Title Here"
    assert extract_heading("text\nEXECUTIVE SUMMARY\nmore") == "EXECUTIVE SUMMARY"
    assert extract_heading("Key points:\n- one") == "Key points"
    assert extract_heading("nothing special here") == ""


def test_heading_ignores_long_lines():
    assert extract_heading("A" * 120) == ""
    assert extract_heading("x" * 120 + ":") == ""


def test_importance_base_and_markers():
    plain = "a steady increase in sales"
    marked = "a 50% critical increase in sales"

    assert calculate_importance(plain) == pytest.approx(0.5)
    assert calculate_importance(marked) == pytest.approx(0.8)
    assert calculate_importance(marked) > calculate_importance(plain)


def test_importance_length_bonus():
    assert calculate_importance("word " * 60) == pytest.approx(0.6)
    assert calculate_importance("word " * 120) == pytest.approx(0.65)


def test_importance_is_clamped():
    text = "Important Summary of the Results in 2024 shows 50% growth in New York. " + "word " * 120
    assert calculate_importance(text) == 1.0


def test_keywords_by_frequency():
    assert extract_keywords("Python python PYTHON code code tests.") == ["python", "code", "tests"]


def test_keywords_ties_keep_first_appearance():
    assert extract_keywords("alpha beta gamma beta alpha") == ["alpha", "beta", "gamma"]


def test_keywords_drop_short_and_stop_words():
    assert extract_keywords("the cat would could should there") == ["there"]


def test_keywords_limit():
    words = " ".join(f"word{i:02d}" for i in range(15))
    assert len(extract_keywords(words)) == 10


def test_chunks_carry_metadata(sample_text):
    chunks = DocumentChunker(1000, 200).chunk_document(_doc(sample_text))

    assert len(chunks) == 1
    meta = chunks[0].metadata
    assert meta.section == "Annual Report"
    assert meta.heading == "Annual Report"
    assert 0.0 <= meta.importance <= 1.0
    assert "solar" in meta.keywords
    assert len(meta.keywords) == len(set(meta.keywords))


# ============================================================================
# MERGING
# ============================================================================

def test_jaccard_counts_repeated_words():
    a = "the cat sat on the mat"
    b = "the cat sat on the rug"
    assert jaccard_similarity(a, b) == pytest.approx(5 / 7)


def test_jaccard_identical_and_disjoint():
    assert jaccard_similarity("Alpha beta", "beta alpha") == 1.0
    assert jaccard_similarity("one two", "three four") == 0.0


def test_merge_cat_and_rug_example():
    a = make_chunk("c0", "d", "the cat sat on the mat", 0, 22, keywords=["cat", "mat"])
    b = make_chunk("c1", "d", "the cat sat on the rug", 18, 40, keywords=["cat", "rug"])

    merged = merge_similar_chunks([a, b])

    assert len(merged) == 1
    m = merged[0]
    assert m.content == "the cat sat on the mat the cat sat on the rug"
    assert (m.start_index, m.end_index) == (0, 40)
    assert m.metadata.keywords == ["cat", "mat", "rug"]
    assert m.chunk_id == "c0"


def test_merge_identical_word_sets_spans_both_ranges():
    a = make_chunk("c0", "d", "alpha beta gamma", 0, 16)
    b = make_chunk("c1", "d", "gamma beta alpha", 10, 26)

    merged = merge_similar_chunks([a, b])

    assert len(merged) == 1
    assert (merged[0].start_index, merged[0].end_index) == (0, 26)


def test_merge_is_greedy_and_sequential():
    a = make_chunk("c0", "d", "alpha beta", 0, 10)
    b = make_chunk("c1", "d", "alpha beta", 10, 20)
    c = make_chunk("c2", "d", "something else entirely", 20, 40)
    d = make_chunk("c3", "d", "something else entirely", 40, 60)

    merged = merge_similar_chunks([a, b, c, d])

    assert [m.chunk_id for m in merged] == ["c0", "c2"]
    assert merged[0].end_index == 20
    assert merged[1].end_index == 60


def test_merge_keeps_dissimilar_chunks():
    a = make_chunk("c0", "d", "solar demand keeps rising", 0, 25)
    b = make_chunk("c1", "d", "wind turbines stayed flat", 20, 45)

    assert merge_similar_chunks([a, b]) == [a, b]


def test_merge_drops_stale_embedding_and_keeps_originals():
    a = make_chunk("c0", "d", "alpha beta", 0, 10, embedding=[1.0, 0.0])
    b = make_chunk("c1", "d", "beta alpha", 5, 15, embedding=[0.0, 1.0])

    merged = merge_similar_chunks([a, b])

    assert merged[0].embedding is None
    assert a.content == "alpha beta"
    assert a.end_index == 10


def test_merge_trivial_inputs_unchanged():
    empty = []
    single = [make_chunk("c0", "d", "alone", 0, 5)]
    assert merge_similar_chunks(empty) is empty
    assert merge_similar_chunks(single) is single
