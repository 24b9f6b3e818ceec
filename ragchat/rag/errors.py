from __future__ import annotations


class RagError(Exception):
    """Base class for knowledge-base errors."""


class EmbeddingServiceError(RagError):
    """Embedding API unreachable, rejected the request or timed out."""


class EmbeddingQuotaError(EmbeddingServiceError):
    """Embedding API quota is exhausted."""


class RetrievalError(RagError):
    """The query could not be embedded; callers treat this as "no context"."""


class ExtractionError(RagError):
    """An upload could not be turned into text."""


class ScrapeError(RagError):
    """A web page could not be fetched or yielded no text."""


class InvalidStatusTransition(RagError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Illegal document status transition: {current} -> {target}")
        self.current = current
        self.target = target


class GenerationError(RagError):
    """Chat completion failed after retries."""
