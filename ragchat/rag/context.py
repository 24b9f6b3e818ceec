from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx
from openai import AsyncOpenAI

from ragchat.rag.chat import ChatService
from ragchat.rag.documents import DocumentService
from ragchat.rag.embedder import build_embedder
from ragchat.rag.generator import build_generator
from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.pipeline import EmbeddingPipeline
from ragchat.rag.retriever import RetrievalService
from ragchat.rag.store import VectorStore
from ragchat.rag.web import WebClient
from ragchat.utils.logging import get_logger


@dataclass
class RagContext:
    """Everything one process shares: stores plus the services wired over them.

    Passed around explicitly instead of living in module globals, so tests
    can build an isolated one.
    """

    store: VectorStore
    registry: DocumentRegistry
    embedder: object
    pipeline: EmbeddingPipeline
    retrieval: RetrievalService
    documents: DocumentService
    chat: Optional[ChatService] = None
    http: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    async def aclose(self) -> None:
        await self.documents.drain()
        if self.http is not None:
            await self.http.aclose()


def build_core(
    settings,
    *,
    embedder,
    generator=None,
    web: Optional[WebClient] = None,
    logger=None,
) -> RagContext:
    """Wire the components around an already-built embedder (and generator)."""
    log = logger or get_logger()

    store = VectorStore()
    registry = DocumentRegistry(store, logger=log)
    pipeline = EmbeddingPipeline(
        embedder=embedder,
        store=store,
        registry=registry,
        chunk_size=settings.CHUNK_SIZE_CHARS,
        overlap=settings.OVERLAP_CHARS,
        batch_size=settings.EMBED_BATCH_SIZE,
        batch_delay_s=settings.EMBED_BATCH_DELAY_S,
        logger=log,
    )
    retrieval = RetrievalService(
        embedder=embedder,
        store=store,
        registry=registry,
        top_k=settings.TOP_K,
        min_score=settings.MIN_SCORE,
        logger=log,
    )
    documents = DocumentService(
        registry=registry,
        pipeline=pipeline,
        web=web,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        search_results=settings.SEARCH_RESULTS,
        logger=log,
    )
    chat = None
    if generator is not None:
        chat = ChatService(
            retrieval=retrieval,
            generator=generator,
            system_prompt=settings.SYSTEM_PROMPT,
            history_window=settings.HISTORY_WINDOW,
            top_k=settings.TOP_K,
            price_input_per_1m=settings.PRICE_LLM_INPUT,
            price_output_per_1m=settings.PRICE_LLM_OUTPUT,
            logger=log,
        )

    return RagContext(
        store=store,
        registry=registry,
        embedder=embedder,
        pipeline=pipeline,
        retrieval=retrieval,
        documents=documents,
        chat=chat,
    )


def build_context(settings, logger=None) -> RagContext:
    """Production wiring: OpenAI for embeddings and chat, httpx for the web."""
    client = AsyncOpenAI(
        api_key=settings.require("OPENAI_API_KEY"),
        base_url=settings.OPENAI_BASE_URL,
    )
    http = httpx.AsyncClient(timeout=settings.SCRAPE_TIMEOUT_S)
    web = WebClient(
        http=http,
        search_url=settings.SEARCH_URL,
        api_key=settings.SERPER_API_KEY,
        max_chars=settings.SCRAPE_MAX_CHARS,
        logger=logger,
    )

    ctx = build_core(
        settings,
        embedder=build_embedder(settings, client, logger=logger),
        generator=build_generator(settings, client, logger=logger),
        web=web,
        logger=logger,
    )
    ctx.http = http
    return ctx
