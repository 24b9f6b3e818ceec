from __future__ import annotations

from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ragchat.rag.types import VectorChunk


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    # empty, mismatched or zero vectors rank as 0 instead of raising
    if len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype="float64")
    vb = np.asarray(b, dtype="float64")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class VectorStore:
    """In-memory chunk store with a brute-force cosine scan.

    Every search is O(n * d) over all stored chunks; there is no index. That is
    the first thing to replace when the corpus outgrows a single process.
    """

    def __init__(self) -> None:
        # dicts keep insertion order, which is the tie-break for equal scores
        self._chunks: dict[str, VectorChunk] = {}
        self._vectors: dict[str, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    def __contains__(self, chunk_id: object) -> bool:
        return chunk_id in self._chunks

    def insert(self, chunk: VectorChunk) -> VectorChunk:
        if chunk.id in self._chunks:
            raise ValueError(f"Duplicate chunk id: {chunk.id}")
        self._chunks[chunk.id] = chunk
        self._vectors[chunk.id] = np.asarray(chunk.embedding, dtype="float64")
        return chunk

    def get(self, chunk_id: str) -> Optional[VectorChunk]:
        return self._chunks.get(chunk_id)

    def all(self) -> List[VectorChunk]:
        return list(self._chunks.values())

    def by_document(self, document_id: str) -> List[VectorChunk]:
        return [c for c in self._chunks.values() if c.document_id == document_id]

    def delete_by_document(self, document_id: str) -> int:
        ids = [cid for cid, c in self._chunks.items() if c.document_id == document_id]
        for cid in ids:
            del self._chunks[cid]
            del self._vectors[cid]
        return len(ids)

    def _scores(self, query: np.ndarray) -> Iterator[Tuple[VectorChunk, float]]:
        for cid, chunk in self._chunks.items():
            yield chunk, cosine_similarity(query, self._vectors[cid])

    def search(self, query_embedding: Sequence[float], limit: int = 5) -> List[Tuple[VectorChunk, float]]:
        if limit <= 0:
            return []
        q = np.asarray(query_embedding, dtype="float64").reshape(-1)
        scored = list(self._scores(q))
        # sorted() is stable, so equal scores keep insertion order
        scored = sorted(scored, key=lambda x: x[1], reverse=True)
        return scored[:limit]
