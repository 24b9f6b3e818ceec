from __future__ import annotations

from typing import Any, Dict, List, Optional

from ragchat.rag.store import VectorStore
from ragchat.rag.types import Document, DocumentStatus, utcnow
from ragchat.utils.logging import get_logger


class DocumentRegistry:
    """Owns documents and their status.

    Single event loop, no locks: every method here is synchronous, so a
    read-modify-write of a document cannot be interleaved with another task.
    """

    def __init__(self, store: VectorStore, logger=None):
        self.store = store
        self.log = logger or get_logger()
        self._docs: Dict[str, Document] = {}

    def __len__(self) -> int:
        return len(self._docs)

    def create(
        self,
        *,
        filename: str,
        content: str,
        file_type: str,
        size: int,
        source: str = "upload",
        url: Optional[str] = None,
    ) -> Document:
        doc = Document(
            filename=filename,
            content=content,
            file_type=file_type,
            size=size,
            source=source,
            url=url,
        )
        self._docs[doc.id] = doc
        self.log.info(
            "DOC created | id=%s | file=%s | type=%s | source=%s | size=%s",
            doc.id, filename, file_type, source, size,
        )
        return doc

    def add(self, doc: Document) -> Document:
        """Register an existing document as-is (snapshot restore)."""
        self._docs[doc.id] = doc
        return doc

    def get(self, document_id: str) -> Optional[Document]:
        return self._docs.get(document_id)

    def list(self) -> List[Document]:
        return sorted(self._docs.values(), key=lambda d: d.created_at, reverse=True)

    def _require(self, document_id: str) -> Document:
        doc = self._docs.get(document_id)
        if doc is None:
            raise KeyError(f"Unknown document: {document_id}")
        return doc

    def update_content(self, document_id: str, content: str) -> Document:
        doc = self._require(document_id)
        doc.content = content
        doc.size = len(content.encode("utf-8"))
        return doc

    def mark_processed(self, document_id: str, *, chunk_count: int, embedded_count: int) -> Document:
        doc = self._require(document_id)
        doc.status = doc.status.transition(DocumentStatus.PROCESSED)
        doc.processed_at = utcnow()
        doc.chunk_count = chunk_count
        doc.embedded_count = embedded_count
        return doc

    def mark_failed(self, document_id: str, error: str) -> Document:
        doc = self._require(document_id)
        doc.status = doc.status.transition(DocumentStatus.FAILED)
        doc.last_error = error
        self.log.warning("DOC failed | id=%s | err=%s", document_id, error)
        return doc

    def delete(self, document_id: str) -> bool:
        doc = self._docs.pop(document_id, None)
        if doc is None:
            return False
        purged = self.store.delete_by_document(document_id)
        self.log.info("DOC deleted | id=%s | chunks_purged=%s", document_id, purged)
        return True

    def stats(self) -> Dict[str, Any]:
        docs = list(self._docs.values())
        total_size = sum(d.size for d in docs)
        return {
            "documents_count": len(docs),
            "processed_count": sum(1 for d in docs if d.status is DocumentStatus.PROCESSED),
            "failed_count": sum(1 for d in docs if d.status is DocumentStatus.FAILED),
            "ungrounded_count": sum(
                1 for d in docs if d.status is DocumentStatus.PROCESSED and not d.grounded
            ),
            "chunks_count": len(self.store),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 1),
        }
