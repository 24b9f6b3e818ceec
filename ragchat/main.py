from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ragchat.config import settings
from ragchat.rag import snapshot
from ragchat.rag.context import RagContext, build_context
from ragchat.rag.errors import ExtractionError, GenerationError
from ragchat.rag.retriever import relevance, extract_sources
from ragchat.schemas import (
    AutoAcquireRequest,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    SearchHitOut,
    SearchRequest,
    SearchResponse,
)
from ragchat.utils.logging import setup_logging


log = setup_logging(settings.LOG_LEVEL)


def _error(status_code: int, msg: str, request_id: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=msg, request_id=request_id).model_dump(),
    )


def create_app(ctx: RagContext | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.ctx is None:
            app.state.ctx = build_context(settings, logger=log)
            snap_dir = Path(settings.SNAPSHOT_DIR)
            if snapshot.exists(snap_dir):
                n_docs, n_chunks = snapshot.load(snap_dir, app.state.ctx.registry, app.state.ctx.store)
                log.info("SNAPSHOT loaded | dir=%s | documents=%s | chunks=%s", snap_dir, n_docs, n_chunks)
        yield
        await app.state.ctx.aclose()

    app = FastAPI(title="Knowledge-base chat", version="1.0", lifespan=lifespan)
    app.state.ctx = ctx

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_, exc: RequestValidationError):
        return _error(422, "Invalid request body", str(uuid.uuid4()))

    def _ctx(request: Request) -> RagContext:
        return request.app.state.ctx

    @app.get("/")
    def root():
        return {"ok": True}

    @app.get("/api/documents")
    def list_documents(request: Request):
        return [d.model_dump(mode="json") for d in _ctx(request).registry.list()]

    @app.post("/api/documents/upload")
    async def upload_document(request: Request, file: UploadFile = File(...)):
        data = await file.read()
        try:
            doc = await _ctx(request).documents.process_upload(
                file.filename or "upload",
                data,
                file.content_type or "",
            )
        except ExtractionError as e:
            code = 413 if len(data) > _ctx(request).documents.max_upload_bytes else 400
            log.info("RES /api/documents/upload | status=%s | file=%s | err=%s", code, file.filename, e)
            return _error(code, str(e))
        return doc.model_dump(mode="json")

    @app.post("/api/documents/auto-acquire")
    async def auto_acquire(req: AutoAcquireRequest, request: Request):
        docs = await _ctx(request).documents.auto_acquire(req.query.strip())
        return [d.model_dump(mode="json") for d in docs]

    @app.delete("/api/documents/{document_id}")
    def delete_document(document_id: str, request: Request):
        if _ctx(request).documents.delete(document_id):
            return {"ok": True}
        return _error(404, "Document not found")

    @app.post("/api/search", response_model=SearchResponse)
    async def search(req: SearchRequest, request: Request):
        results = await _ctx(request).retrieval.search(req.query.strip(), req.limit)
        return SearchResponse(
            results=[
                SearchHitOut(
                    document_id=r.document.id,
                    filename=r.document.filename,
                    chunk_id=r.chunk.id,
                    content=r.chunk.content,
                    start_index=r.chunk.start_index,
                    end_index=r.chunk.end_index,
                    similarity=r.similarity,
                    relevance=relevance(r.similarity),
                )
                for r in results
            ],
            sources=extract_sources(results),
        )

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(req: ChatRequest, request: Request):
        request_id = str(uuid.uuid4())
        t0 = time.perf_counter()
        q = req.message.strip()

        if not q:
            return _error(422, "Empty message", request_id)

        chat_service = _ctx(request).chat
        if chat_service is None:
            return _error(503, "Chat model is not configured", request_id)

        log.info("REQ /api/chat | request_id=%s | q_len=%s | history=%s", request_id, len(q), len(req.history))

        try:
            res = await chat_service.answer(q, req.history)
        except GenerationError as e:
            latency_ms = int((time.perf_counter() - t0) * 1000)
            log.exception(
                "RES /api/chat | request_id=%s | status=error | latency_ms=%s | err=%s",
                request_id, latency_ms, f"{type(e).__name__}: {e}",
            )
            return _error(500, "Chat generation failed", request_id)

        res.request_id = request_id
        res.latency_ms = int((time.perf_counter() - t0) * 1000)
        tokens = (res.usage.total_tokens if res.usage else None)
        log.info(
            "RES /api/chat | request_id=%s | status=%s | latency_ms=%s | sources=%s | tokens=%s | cost_usd=%.6f",
            request_id, "ok", res.latency_ms, len(res.sources), tokens, float(res.cost_usd or 0.0)
        )
        return res

    @app.get("/api/stats")
    def stats(request: Request):
        return {**_ctx(request).registry.stats(), "status": "active"}

    return app


app = create_app()
