from __future__ import annotations

import asyncio
import time
from typing import List

from ragchat.rag.chunking import split_text
from ragchat.rag.errors import EmbeddingServiceError
from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.store import VectorStore
from ragchat.rag.types import DocumentStatus, PipelineReport, TextChunk, VectorChunk
from ragchat.utils.logging import get_logger


class EmbeddingPipeline:
    """Chunk -> embed -> store for one document at a time.

    Batches run one after another with a short pause in between so a
    rate-limited embedding API is not flooded; calls inside a batch run
    concurrently and fail independently. Chunks become searchable as soon as
    their own embedding returns.
    """

    def __init__(
        self,
        *,
        embedder,
        store: VectorStore,
        registry: DocumentRegistry,
        chunk_size: int = 1000,
        overlap: int = 100,
        batch_size: int = 5,
        batch_delay_s: float = 0.1,
        logger=None,
    ):
        if overlap >= chunk_size:
            raise ValueError("overlap must be < chunk_size")
        self.embedder = embedder
        self.store = store
        self.registry = registry
        self.chunk_size = int(chunk_size)
        self.overlap = int(overlap)
        self.batch_size = max(1, int(batch_size))
        self.batch_delay_s = max(0.0, float(batch_delay_s))
        self.log = logger or get_logger()

    def _batches(self, chunks: List[TextChunk]) -> List[List[TextChunk]]:
        return [chunks[i : i + self.batch_size] for i in range(0, len(chunks), self.batch_size)]

    async def _embed_one(self, document_id: str, idx: int, chunk: TextChunk, report: PipelineReport) -> None:
        try:
            vec = await self.embedder.embed(chunk.text)
        except EmbeddingServiceError as e:
            report.failed += 1
            self.log.warning(
                "PIPE chunk err | doc=%s | chunk=%s | span=%s-%s | err=%s",
                document_id, idx, chunk.start, chunk.end, e,
            )
            return

        # document deleted while this call was in flight: drop the chunk
        if self.registry.get(document_id) is None:
            report.skipped_deleted += 1
            return

        self.store.insert(
            VectorChunk(
                document_id=document_id,
                content=chunk.text,
                embedding=vec,
                start_index=chunk.start,
                end_index=chunk.end,
            )
        )
        if vec:
            report.embedded += 1
        else:
            report.unembeddable += 1
            self.log.warning("PIPE chunk unembeddable | doc=%s | chunk=%s | reason=empty_vector", document_id, idx)

    async def process(self, document_id: str, content: str) -> PipelineReport:
        report = PipelineReport(document_id=document_id)
        t0 = time.perf_counter()

        try:
            chunks = split_text(content, self.chunk_size, self.overlap)
            report.chunks = len(chunks)
            batches = self._batches(chunks)

            for b, batch in enumerate(batches):
                if self.registry.get(document_id) is None:
                    self.log.info("PIPE abort | doc=%s | reason=deleted | batch=%s/%s", document_id, b + 1, len(batches))
                    return report

                if b > 0 and self.batch_delay_s:
                    await asyncio.sleep(self.batch_delay_s)

                base = b * self.batch_size
                # let the whole batch settle before surfacing a crash
                outcomes = await asyncio.gather(
                    *(self._embed_one(document_id, base + i, c, report) for i, c in enumerate(batch)),
                    return_exceptions=True,
                )
                for out in outcomes:
                    if isinstance(out, BaseException):
                        raise out
                report.batches += 1
                self.log.debug(
                    "PIPE batch | doc=%s | batch=%s/%s | embedded=%s | failed=%s",
                    document_id, b + 1, len(batches), report.embedded, report.failed,
                )
        except Exception as e:
            self.log.exception("PIPE crash | doc=%s | err=%s", document_id, f"{type(e).__name__}: {e}")
            self._finish_failed(document_id, f"{type(e).__name__}: {e}")
            return report

        doc = self.registry.get(document_id)
        if doc is None:
            return report
        if doc.status is not DocumentStatus.PROCESSING:
            self.log.warning("PIPE done on terminal doc | doc=%s | status=%s", document_id, doc.status.value)
            return report

        self.registry.mark_processed(document_id, chunk_count=report.chunks, embedded_count=report.embedded)

        latency_ms = int((time.perf_counter() - t0) * 1000)
        if report.chunks and not report.embedded:
            self.log.warning(
                "PIPE done ungrounded | doc=%s | chunks=%s | failed=%s | unembeddable=%s | latency_ms=%s",
                document_id, report.chunks, report.failed, report.unembeddable, latency_ms,
            )
        else:
            self.log.info(
                "PIPE done | doc=%s | chunks=%s | embedded=%s | unembeddable=%s | failed=%s | batches=%s | latency_ms=%s",
                document_id, report.chunks, report.embedded, report.unembeddable, report.failed, report.batches, latency_ms,
            )
        return report

    def _finish_failed(self, document_id: str, error: str) -> None:
        # a failed document keeps no chunks
        purged = self.store.delete_by_document(document_id)
        if purged:
            self.log.info("PIPE purge | doc=%s | chunks=%s", document_id, purged)
        doc = self.registry.get(document_id)
        if doc is not None and doc.status is DocumentStatus.PROCESSING:
            self.registry.mark_failed(document_id, error)
