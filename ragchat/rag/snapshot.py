from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.store import VectorStore
from ragchat.rag.types import Document, VectorChunk

DOCUMENTS_JSONL = "documents.jsonl"
CHUNKS_JSONL = "chunks.jsonl"


def write_jsonl(path: Path, rows: Iterable[dict]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    n = 0
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
            n += 1
    return n


def read_jsonl(path: Path) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rows.append(json.loads(line))
    return rows


def exists(root: Path) -> bool:
    return (root / DOCUMENTS_JSONL).exists() and (root / CHUNKS_JSONL).exists()


def save(root: Path, registry: DocumentRegistry, store: VectorStore) -> tuple[int, int]:
    """Write finished documents and their chunks. Returns ``(documents, chunks)``."""
    docs = [d for d in registry.list() if d.status.terminal]
    keep = {d.id for d in docs}

    n_docs = write_jsonl(root / DOCUMENTS_JSONL, (d.model_dump(mode="json", exclude={"grounded"}) for d in docs))
    n_chunks = write_jsonl(
        root / CHUNKS_JSONL,
        (c.model_dump(mode="json") for c in store.all() if c.document_id in keep),
    )
    return n_docs, n_chunks


def load(root: Path, registry: DocumentRegistry, store: VectorStore) -> tuple[int, int]:
    docs = [Document.model_validate(row) for row in read_jsonl(root / DOCUMENTS_JSONL)]
    for d in docs:
        registry.add(d)

    n_chunks = 0
    for row in read_jsonl(root / CHUNKS_JSONL):
        chunk = VectorChunk.model_validate(row)
        if registry.get(chunk.document_id) is None or chunk.id in store:
            continue
        store.insert(chunk)
        n_chunks += 1
    return len(docs), n_chunks
