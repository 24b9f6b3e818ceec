from __future__ import annotations

from typing import Optional, List, Literal
from pydantic import BaseModel, Field

from ragchat.rag.types import SourceRef


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    history: List[ChatMessage] = Field(default_factory=list)


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    ok: bool = True
    answer: str
    sources: List[SourceRef] = Field(default_factory=list)
    latency_ms: int = 0
    usage: Optional[Usage] = None
    cost_usd: float = 0.0
    request_id: Optional[str] = None


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=50)


class SearchHitOut(BaseModel):
    document_id: str
    filename: str
    chunk_id: str
    content: str
    start_index: int
    end_index: int
    similarity: float
    relevance: int


class SearchResponse(BaseModel):
    ok: bool = True
    results: List[SearchHitOut] = Field(default_factory=list)
    sources: List[SourceRef] = Field(default_factory=list)


class AutoAcquireRequest(BaseModel):
    query: str = Field(min_length=1)


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    request_id: Optional[str] = None
