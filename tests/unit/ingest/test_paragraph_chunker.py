"""Tests for ParagraphChunker."""

from __future__ import annotations

import pytest

from holorag.ingest.paragraph import ParagraphChunker


def test_empty_content_yields_no_chunks():
    assert ParagraphChunker().chunk("k", "") == []
    assert ParagraphChunker().chunk("k", "  \n\n  ") == []


def test_small_paragraphs_are_packed_together():
    chunks = ParagraphChunker(chunk_size=500).chunk("k", "Uno.\n\nDos.\n\nTres.")
    assert len(chunks) == 1
    assert chunks[0].content == "Uno.\n\nDos.\n\nTres."


def test_overflow_starts_new_chunk_with_overlap_tail():
    first = "a" * 30
    second = "b" * 30
    chunks = ParagraphChunker(chunk_size=40, overlap=5).chunk("k", f"{first}\n\n{second}")
    assert [c.content for c in chunks] == [first, f"aaaaa\n\n{second}"]


def test_zero_overlap_has_no_tail():
    chunks = ParagraphChunker(chunk_size=40, overlap=0).chunk("k", "a" * 30 + "\n\n" + "b" * 30)
    assert [c.content for c in chunks] == ["a" * 30, "b" * 30]


def test_oversized_paragraph_kept_whole():
    big = "x" * 900
    chunks = ParagraphChunker(chunk_size=500).chunk("k", big)
    assert len(chunks) == 1
    assert chunks[0].content == big


def test_chunk_indices_sequential_and_source_set():
    text = "\n\n".join(["p" * 300] * 4)
    chunks = ParagraphChunker().chunk("knowledge", text)
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.source_id == "knowledge" for c in chunks)


def test_chunking_is_deterministic():
    text = "\n\n".join(f"Paragraph {i} " + "w" * (i * 37 % 200) for i in range(20))
    assert ParagraphChunker().chunk("k", text) == ParagraphChunker().chunk("k", text)


@pytest.mark.parametrize("size,overlap", [(0, 0), (100, 100), (100, -1)])
def test_invalid_sizes_rejected(size, overlap):
    with pytest.raises(ValueError):
        ParagraphChunker(chunk_size=size, overlap=overlap)
