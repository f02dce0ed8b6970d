"""Text normalization and chunking service."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True)
class TextChunk:
    """A window of text with its offsets in the source text."""
    index: int
    content: str
    start: int
    end: int

    @property
    def char_count(self) -> int:
        return self.end - self.start


def normalize_text(text: str) -> str:
    """Normalize unicode, collapse whitespace, strip control characters."""
    # Normalize unicode to NFC form
    text = unicodedata.normalize("NFC", text)
    # Remove control characters (except newlines and tabs)
    text = re.sub(r"[^\S \n\t]+", "", text)
    # Collapse multiple blank lines into at most two newlines
    text = re.sub(r"\n{3,}", "\n\n", text)
    # Collapse multiple spaces/tabs into a single space
    text = re.sub(r"[^\S\n]+", " ", text)
    # Strip trailing/leading spaces on each line
    text = re.sub(r" *\n *", "\n", text)
    return text.strip()


def chunk_text(
    text: str | None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[TextChunk]:
    """Split text into fixed-size windows that overlap by ``overlap`` chars.

    The window start advances by ``chunk_size - overlap`` until a window
    reaches the end of the text; the final chunk may be shorter. Offsets are
    into ``text`` as given (no normalization), so chunk boundaries are stable
    for the same input.

    Args:
        text: The input text to chunk.
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared by consecutive chunks.

    Returns:
        List of TextChunk objects in document order.

    Raises:
        ValueError: If chunk_size is not positive or overlap doesn't leave
            room for the window to advance.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")

    if not text:
        return []

    step = chunk_size - overlap
    length = len(text)
    chunks: list[TextChunk] = []
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        chunks.append(TextChunk(index=len(chunks), content=text[start:end], start=start, end=end))
        if end == length:
            break
        start += step

    return chunks
