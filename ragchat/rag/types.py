from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Literal, List

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ragchat.rag.errors import InvalidStatusTransition


FileType = Literal["text", "pdf", "docx", "web"]
DocumentSource = Literal["upload", "web_search"]


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING

    def transition(self, target: "DocumentStatus") -> "DocumentStatus":
        if target not in _TRANSITIONS[self]:
            raise InvalidStatusTransition(self.value, DocumentStatus(target).value)
        return DocumentStatus(target)


_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.PROCESSED, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSED: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


class Document(BaseModel):
    id: str = Field(default_factory=_new_id)
    filename: str
    content: str = ""
    file_type: FileType = "text"
    size: int = Field(default=0, ge=0)
    status: DocumentStatus = DocumentStatus.PROCESSING
    source: DocumentSource = "upload"
    url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: Optional[datetime] = None

    # pipeline outcome; lets callers tell "processed" from "processed but ungrounded"
    chunk_count: int = Field(default=0, ge=0)
    embedded_count: int = Field(default=0, ge=0)
    last_error: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def grounded(self) -> bool:
        return self.embedded_count > 0


class TextChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class VectorChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    document_id: str = Field(min_length=1)
    content: str
    embedding: List[float] = Field(default_factory=list)
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)


class SearchResult(BaseModel):
    chunk: VectorChunk
    document: Document
    similarity: float


class SourceRef(BaseModel):
    document_id: str
    filename: str
    relevance: int
    file_type: FileType
    url: Optional[str] = None


class PipelineReport(BaseModel):
    document_id: str
    chunks: int = 0
    embedded: int = 0
    failed: int = 0
    batches: int = 0
    skipped_deleted: int = 0
    # stored with an empty vector (quota exhausted): present but never ranked
    unembeddable: int = 0
