from __future__ import annotations

from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from ragchat.rag.errors import EmbeddingServiceError
from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.pipeline import EmbeddingPipeline
from ragchat.rag.retriever import RetrievalService
from ragchat.rag.store import VectorStore
from ragchat.rag.types import DocumentStatus, VectorChunk


class FakeEmbedder:
    """Vector chosen by the first keyword found in the text."""

    def __init__(
        self,
        mapping: Optional[Dict[str, List[float]]] = None,
        default: Optional[List[float]] = None,
        fail_on: tuple = (),
    ):
        self.mapping = mapping or {}
        self.default = default if default is not None else [0.0, 0.0, 1.0]
        self.fail_on = fail_on
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingServiceError(f"boom: {text[:10]}")
        for key, vec in self.mapping.items():
            if key in text:
                return list(vec)
        return list(self.default)


class FailingEmbedder:
    async def embed(self, text: str) -> List[float]:
        raise EmbeddingServiceError("embedding API unreachable")


def make_settings(**overrides):
    base = dict(
        CHUNK_SIZE_CHARS=1000,
        OVERLAP_CHARS=100,
        EMBED_BATCH_SIZE=5,
        EMBED_BATCH_DELAY_S=0.0,
        TOP_K=5,
        MIN_SCORE=None,
        MAX_UPLOAD_BYTES=10 * 1024 * 1024,
        SEARCH_RESULTS=3,
        SYSTEM_PROMPT="You are a test assistant.",
        HISTORY_WINDOW=10,
        PRICE_LLM_INPUT=0.0,
        PRICE_LLM_OUTPUT=0.0,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


@pytest.fixture
def store() -> VectorStore:
    return VectorStore()


@pytest.fixture
def registry(store) -> DocumentRegistry:
    return DocumentRegistry(store)


def add_processed_doc(registry: DocumentRegistry, filename: str, **kw):
    doc = registry.create(
        filename=filename,
        content=kw.pop("content", f"content of {filename}"),
        file_type=kw.pop("file_type", "text"),
        size=kw.pop("size", 10),
        **kw,
    )
    registry.mark_processed(doc.id, chunk_count=1, embedded_count=1)
    assert doc.status is DocumentStatus.PROCESSED
    return doc


def add_chunk(store: VectorStore, document_id: str, content: str, embedding: List[float]) -> VectorChunk:
    return store.insert(
        VectorChunk(
            document_id=document_id,
            content=content,
            embedding=embedding,
            start_index=0,
            end_index=max(1, len(content)),
        )
    )


@pytest.fixture
def make_pipeline(store, registry):
    def _make(embedder, **kw) -> EmbeddingPipeline:
        kw.setdefault("batch_delay_s", 0.0)
        return EmbeddingPipeline(embedder=embedder, store=store, registry=registry, **kw)

    return _make


@pytest.fixture
def make_retrieval(store, registry):
    def _make(embedder, **kw) -> RetrievalService:
        return RetrievalService(embedder=embedder, store=store, registry=registry, **kw)

    return _make
