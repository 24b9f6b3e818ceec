from __future__ import annotations

import argparse
import asyncio
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ragchat.rag.errors import EmbeddingServiceError, RetrievalError
from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.store import VectorStore
from ragchat.rag.types import DocumentStatus, SearchResult, SourceRef
from ragchat.utils.logging import get_logger


def _snippet(text: str, n: int = 360) -> str:
    t = " ".join((text or "").split())
    return t if len(t) <= n else t[:n].rstrip() + "…"


def relevance(similarity: float) -> int:
    # half-up, so 0.125 -> 13 rather than banker's 12
    return int(math.floor(similarity * 100 + 0.5))


@dataclass
class RetrieveMetrics:
    embed_latency_ms: int
    search_latency_ms: int
    total_latency_ms: int
    candidates: int
    returned: int
    top_score: float | None


class RetrievalService:
    def __init__(
        self,
        *,
        embedder,
        store: VectorStore,
        registry: DocumentRegistry,
        top_k: int = 5,
        min_score: float | None = None,
        logger=None,
    ):
        self.embedder = embedder
        self.store = store
        self.registry = registry
        self.top_k = int(top_k)
        self.min_score = float(min_score) if min_score is not None else None
        self.log = logger or get_logger()
        self.last_metrics: RetrieveMetrics | None = None

    async def retrieve(self, query: str, limit: int | None = None) -> List[SearchResult]:
        """Best chunk per source document, most similar first.

        Raises RetrievalError when the query cannot be embedded.
        """
        k = int(limit) if limit is not None else self.top_k
        if k <= 0:
            return []

        t0 = time.perf_counter()

        # 1) embed query
        try:
            q_vec = await self.embedder.embed(query or "")
        except EmbeddingServiceError as e:
            raise RetrievalError(f"Failed to embed query: {e}") from e
        if not q_vec:
            raise RetrievalError("Query embedding is empty")
        embed_latency_ms = int((time.perf_counter() - t0) * 1000)

        # 2) over-fetch to leave room for per-document dedup
        srch_t0 = time.perf_counter()
        candidates = self.store.search(q_vec, limit=k * 2)
        search_latency_ms = int((time.perf_counter() - srch_t0) * 1000)

        # 3) resolve documents, dedup by document, stop at k
        results: List[SearchResult] = []
        seen: set[str] = set()
        for chunk, score in candidates:
            if chunk.document_id in seen:
                continue
            if self.min_score is not None and score < self.min_score:
                continue
            doc = self.registry.get(chunk.document_id)
            # deleted or still mid-pipeline
            if doc is None or doc.status is not DocumentStatus.PROCESSED:
                continue

            results.append(SearchResult(chunk=chunk, document=doc, similarity=score))
            seen.add(chunk.document_id)
            if len(results) >= k:
                break

        self.last_metrics = RetrieveMetrics(
            embed_latency_ms=embed_latency_ms,
            search_latency_ms=search_latency_ms,
            total_latency_ms=int((time.perf_counter() - t0) * 1000),
            candidates=len(candidates),
            returned=len(results),
            top_score=results[0].similarity if results else None,
        )
        return results

    async def search(self, query: str, limit: int | None = None) -> List[SearchResult]:
        """Like retrieve(), but a retrieval failure yields no results."""
        try:
            return await self.retrieve(query, limit)
        except RetrievalError as e:
            self.log.warning("RETRIEVE err | q_len=%s | err=%s | continuing without context", len(query or ""), e)
            return []


def format_context(results: List[SearchResult]) -> str:
    if not results:
        return ""

    blocks: List[str] = ["Relevant information from knowledge base:\n"]
    for i, r in enumerate(results, start=1):
        blocks.append(f'[{i}] From "{r.document.filename}":\n{r.chunk.content}\n')
    return "\n".join(blocks)


def extract_sources(results: List[SearchResult]) -> List[SourceRef]:
    return [
        SourceRef(
            document_id=r.document.id,
            filename=r.document.filename,
            relevance=relevance(r.similarity),
            file_type=r.document.file_type,
            url=r.document.url,
        )
        for r in results
    ]


async def _query_once(ctx, query: str, limit: int | None) -> List[SearchResult]:
    try:
        return await ctx.retrieval.retrieve(query, limit)
    finally:
        await ctx.aclose()


def main(argv: list[str] | None = None) -> int:
    from ragchat.config import settings
    from ragchat.rag.context import build_context
    from ragchat.rag import snapshot

    parser = argparse.ArgumentParser(description="Retriever: query -> best chunk per document")
    parser.add_argument("query", type=str, help="Query string")
    parser.add_argument("--top_k", type=int, default=None, help="Override TOP_K from env")
    parser.add_argument("--snapshot", type=str, default=settings.SNAPSHOT_DIR, help="Snapshot directory")
    args = parser.parse_args(argv)

    ctx = build_context(settings)
    snap_dir = Path(args.snapshot)
    if not snapshot.exists(snap_dir):
        print(f"ERROR: no snapshot in {snap_dir}")
        return 2
    snapshot.load(snap_dir, ctx.registry, ctx.store)

    try:
        results = asyncio.run(_query_once(ctx, args.query, args.top_k))
    except RetrievalError as e:
        print(f"ERROR: {type(e).__name__}: {e}")
        return 2

    print(f"\nQUERY: {args.query.strip()}")
    print(f"TOP_K: {args.top_k if args.top_k is not None else settings.TOP_K}\n")

    if not results:
        print("NOT FOUND: no processed documents matched.\n")
    for rank, r in enumerate(results, start=1):
        print(f"[{rank}] similarity={r.similarity:.4f}  relevance={relevance(r.similarity)}")
        print(f"    source: {r.document.url or r.document.filename}")
        print(f"    doc_id: {r.document.id}")
        print(f"    span: {r.chunk.start_index}-{r.chunk.end_index}")
        print(f"    snippet: {_snippet(r.chunk.content)}")
        print()

    m = ctx.retrieval.last_metrics
    if m is not None:
        print(
            "METRICS:"
            f" embed_latency_ms={m.embed_latency_ms}"
            f" search_latency_ms={m.search_latency_ms}"
            f" total_latency_ms={m.total_latency_ms}"
            f" candidates={m.candidates}"
            f" returned={m.returned}"
            f" top_score={(f'{m.top_score:.4f}' if m.top_score is not None else 'None')}"
        )
    print("\nOK\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
