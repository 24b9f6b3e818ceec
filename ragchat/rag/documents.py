from __future__ import annotations

import asyncio
from typing import List, Optional, Set

from ragchat.rag.errors import ExtractionError, ScrapeError
from ragchat.rag.ingest import extract_text
from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.pipeline import EmbeddingPipeline
from ragchat.rag.types import Document, DocumentStatus
from ragchat.rag.web import WebClient
from ragchat.utils.logging import get_logger


class DocumentService:
    """Entry points that create documents and hand them to the pipeline.

    Processing happens in background tasks; callers get the ``processing``
    document back immediately and follow its status through the registry.
    """

    def __init__(
        self,
        *,
        registry: DocumentRegistry,
        pipeline: EmbeddingPipeline,
        web: Optional[WebClient] = None,
        max_upload_bytes: int = 10 * 1024 * 1024,
        search_results: int = 3,
        logger=None,
    ):
        self.registry = registry
        self.pipeline = pipeline
        self.web = web
        self.max_upload_bytes = int(max_upload_bytes)
        self.search_results = int(search_results)
        self.log = logger or get_logger()
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every scheduled document has finished processing."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def process_upload(self, filename: str, data: bytes, mime_type: str) -> Document:
        if len(data) > self.max_upload_bytes:
            raise ExtractionError(f"File too large: {len(data)} bytes (limit {self.max_upload_bytes})")

        file_type, text = extract_text(filename, data, mime_type)

        doc = self.registry.create(
            filename=filename,
            content=text,
            file_type=file_type,
            size=len(data),
            source="upload",
        )
        self.schedule(self.pipeline.process(doc.id, text))
        return doc

    async def process_web(self, url: str, title: str) -> Document:
        doc = self.registry.create(
            filename=title or url,
            content="",
            file_type="web",
            size=0,
            source="web_search",
            url=url,
        )
        self.schedule(self._scrape_and_process(doc.id, url))
        return doc

    async def _scrape_and_process(self, document_id: str, url: str) -> None:
        if self.web is None:
            self.registry.mark_failed(document_id, "Web acquisition is not configured")
            return

        try:
            content = await self.web.scrape(url)
        except ScrapeError as e:
            doc = self.registry.get(document_id)
            if doc is not None and doc.status is DocumentStatus.PROCESSING:
                self.registry.mark_failed(document_id, str(e))
            return

        if self.registry.get(document_id) is None:
            return
        self.registry.update_content(document_id, content)
        await self.pipeline.process(document_id, content)

    async def auto_acquire(self, query: str) -> List[Document]:
        if self.web is None:
            return []

        hits = await self.web.search(query, self.search_results)
        docs: List[Document] = []
        for hit in hits:
            docs.append(await self.process_web(hit.url, hit.title))
        return docs

    def delete(self, document_id: str) -> bool:
        return self.registry.delete(document_id)
