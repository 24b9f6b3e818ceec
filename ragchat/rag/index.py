from __future__ import annotations

import argparse
import asyncio
import json
import time
from pathlib import Path

from ragchat.config import settings
from ragchat.rag import snapshot
from ragchat.rag.context import RagContext, build_context
from ragchat.rag.errors import ExtractionError
from ragchat.rag.ingest import iter_documents
from ragchat.rag.types import DocumentStatus
from ragchat.utils.logging import setup_logging


async def index_folder(ctx: RagContext, docs_dir: Path, log=None) -> dict:
    """Push every supported file in ``docs_dir`` through upload + pipeline."""
    seen = 0
    rejected = 0

    for path, mime, data in iter_documents(docs_dir):
        seen += 1
        try:
            await ctx.documents.process_upload(path.name, data, mime)
        except ExtractionError as e:
            rejected += 1
            if log:
                log.warning("INDEX skip | file=%s | err=%s", path, e)

    await ctx.documents.drain()

    docs = ctx.registry.list()
    return {
        "files": seen,
        "rejected": rejected,
        "documents": len(docs),
        "processed": sum(1 for d in docs if d.status is DocumentStatus.PROCESSED),
        "failed": sum(1 for d in docs if d.status is DocumentStatus.FAILED),
        "ungrounded": sum(1 for d in docs if d.status is DocumentStatus.PROCESSED and not d.grounded),
        "chunks": len(ctx.store),
    }


async def _run(docs_dir: Path, out_dir: Path) -> dict:
    log = setup_logging(settings.LOG_LEVEL)
    t0 = time.perf_counter()

    ctx = build_context(settings, logger=log)
    try:
        counts = await index_folder(ctx, docs_dir, log=log)
    finally:
        await ctx.aclose()

    if not counts["chunks"]:
        raise RuntimeError("No chunks produced (all docs empty or embedding failed?)")

    snapshot.save(out_dir, ctx.registry, ctx.store)

    inner = getattr(ctx.embedder, "inner", ctx.embedder)
    stats = {
        **counts,
        "build_time_sec": round(time.perf_counter() - t0, 3),
        "chunk_size_chars": settings.CHUNK_SIZE_CHARS,
        "overlap_chars": settings.OVERLAP_CHARS,
        "embed_batch_size": settings.EMBED_BATCH_SIZE,
        "embed_model": settings.EMBEDDING_MODEL,
        "embed_dimension": getattr(inner, "dimension", None),
        "embed_input_tokens": getattr(inner, "input_tokens", 0),
        "embed_cost_usd": inner.cost_usd() if hasattr(inner, "cost_usd") else 0.0,
        "snapshot_dir": str(out_dir),
    }
    (out_dir / "stats.json").write_text(json.dumps(stats, ensure_ascii=False, indent=2), encoding="utf-8")
    return stats


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Index a folder of documents into a snapshot")
    parser.add_argument("--docs", type=str, default=settings.DOCS_DIR, help="Folder with .txt/.md/.pdf/.docx")
    parser.add_argument("--out", type=str, default=settings.SNAPSHOT_DIR, help="Snapshot output folder")
    args = parser.parse_args(argv)

    docs_dir = Path(args.docs)
    if not docs_dir.exists():
        raise RuntimeError(f"Missing folder: {docs_dir.resolve()}")

    stats = asyncio.run(_run(docs_dir, Path(args.out)))

    print("OK")
    print(json.dumps(stats, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
