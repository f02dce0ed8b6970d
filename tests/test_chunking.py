"""Unit tests for the chunking service."""

import pytest

from agentrag.services.chunking import chunk_text, normalize_text


def test_normalize_collapses_whitespace():
    raw = "  Hello   world  \n\n\n\n  foo  "
    result = normalize_text(raw)
    assert result == "Hello world\n\nfoo"


def test_chunk_empty_returns_empty():
    assert chunk_text("") == []
    assert chunk_text(None) == []


def test_chunk_short_text_single_chunk():
    text = "Hello, world!"
    chunks = chunk_text(text, chunk_size=100, overlap=10)
    assert len(chunks) == 1
    assert chunks[0].index == 0
    assert chunks[0].content == "Hello, world!"
    assert (chunks[0].start, chunks[0].end) == (0, len(text))


def test_chunk_2500_chars_default_window():
    text = "".join(chr(ord("a") + i % 26) for i in range(2500))
    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert [(c.start, c.end) for c in chunks] == [(0, 1000), (800, 1800), (1600, 2500)]
    assert [c.index for c in chunks] == [0, 1, 2]
    assert all(c.content == text[c.start:c.end] for c in chunks)


def test_chunk_offsets_cover_text_with_overlap():
    text = "Sentence number one is here. " * 40
    chunks = chunk_text(text, chunk_size=100, overlap=30)

    assert chunks[0].start == 0
    assert chunks[-1].end == len(text)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start >= prev.start
        assert prev.end - nxt.start == 30
        assert prev.content[-30:] == nxt.content[:30]


def test_chunk_is_deterministic():
    text = "Paragraph one.\n\nParagraph two.\n\nParagraph three.\n\nParagraph four."
    assert chunk_text(text, chunk_size=20, overlap=5) == chunk_text(text, chunk_size=20, overlap=5)


def test_last_chunk_may_be_shorter():
    chunks = chunk_text("x" * 250, chunk_size=100, overlap=0)
    assert [c.char_count for c in chunks] == [100, 100, 50]


@pytest.mark.parametrize("chunk_size,overlap", [(0, 0), (-5, 0), (100, 100), (100, 150), (100, -1)])
def test_invalid_window_rejected(chunk_size, overlap):
    with pytest.raises(ValueError):
        chunk_text("some text", chunk_size=chunk_size, overlap=overlap)
