"""
Text Chunking

Split long text into bounded segments for embedding.

Design decisions:
- Single greedy pass with a cursor; deterministic for identical input
- Prefer cutting after a sentence end, newline or space
- A boundary is only accepted if it keeps at least 80% of the window
- Chunks are stripped; blank chunks are dropped
"""

import re

from lufykms.core.exceptions import InvalidOptionsError
from lufykms.core.types import Chunk

DEFAULT_MAX_CHARS = 8000

# Fraction of the window a natural boundary must preserve
BOUNDARY_RATIO = 0.8

_BOUNDARY_CHARS = (".", "\n", " ")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT = "\n\n"


def _windows(text: str, max_chars: int):
    """Yield raw (start, end) windows covering ``text``."""
    if max_chars < 1:
        raise InvalidOptionsError(
            "max_chars must be at least 1",
            context={"max_chars": max_chars},
        )

    cursor = 0
    length = len(text)

    while cursor < length:
        end = min(cursor + max_chars, length)

        if end < length:
            # Boundary search stays inside the window so end <= cursor + max_chars
            best = max(text.rfind(ch, cursor, end) for ch in _BOUNDARY_CHARS)
            if best > cursor + max_chars * BOUNDARY_RATIO:
                end = best + 1

        yield cursor, end
        cursor = end


def split_into_chunks(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """
    Split text into stripped chunks of at most ``max_chars`` characters.

    Args:
        text: Text to split
        max_chars: Upper bound on chunk length

    Returns:
        Ordered, non-empty chunks. Empty input gives an empty list.
    """
    chunks = []
    for start, end in _windows(text, max_chars):
        content = text[start:end].strip()
        if content:
            chunks.append(content)
    return chunks


def split_into_detailed_chunks(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[Chunk]:
    """
    Same split as split_into_chunks, with position data.

    ``start_offset``/``end_offset`` are the raw window bounds before
    stripping. ``index`` counts emitted chunks only.
    """
    chunks: list[Chunk] = []
    for start, end in _windows(text, max_chars):
        content = text[start:end].strip()
        if content:
            chunks.append(
                Chunk(
                    content=content,
                    index=len(chunks),
                    start_offset=start,
                    end_offset=end,
                )
            )
    return chunks


def estimate_optimal_chunk_size(text: str) -> int:
    """
    Heuristic chunk size for ``text``.

    Technical prose (long sentences) gets larger chunks and
    conversational text (short sentences) smaller ones. Long
    paragraphs add headroom. The result never exceeds 12000.
    """
    avg_sentence_length = _average_sentence_length(text)

    optimal = 8000
    if avg_sentence_length > 200:
        optimal = 10000
    elif avg_sentence_length < 50:
        optimal = 6000

    if _has_long_paragraphs(text):
        optimal += 2000

    return min(optimal, 12000)


def _average_sentence_length(text: str) -> float:
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    if not sentences:
        return 0.0
    return sum(len(s) for s in sentences) / len(sentences)


def _has_long_paragraphs(text: str, threshold: int = 1000) -> bool:
    paragraphs = [p for p in text.split(_PARAGRAPH_SPLIT) if p.strip()]
    return any(len(p) > threshold for p in paragraphs)
