from __future__ import annotations

from typing import List

from ragchat.rag.types import TextChunk


def split_text(
    text: str,
    chunk_size: int = 1000,
    overlap: int = 100,
) -> List[TextChunk]:
    """Slide a fixed-size window over ``text``.

    Windows span ``[start, min(start + chunk_size, len(text)))`` and the next
    window starts ``overlap`` characters before the previous end. Spans are
    offsets into the untrimmed input; the chunk text is trimmed and windows
    that trim to nothing are dropped.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    if overlap < 0:
        raise ValueError("overlap must be >= 0")
    if overlap >= chunk_size:
        raise ValueError("overlap must be < chunk_size")

    text = text or ""
    n = len(text)
    out: List[TextChunk] = []

    start = 0
    while start < n:
        end = min(n, start + chunk_size)
        chunk_str = text[start:end].strip()
        if chunk_str:
            out.append(TextChunk(text=chunk_str, start=start, end=end))

        if end >= n:
            break
        start = end - overlap

    return out
