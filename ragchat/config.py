from __future__ import annotations

import os
from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # --- Auth ---
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL") or None

    # --- Chunking ---
    CHUNK_SIZE_CHARS: int = int(os.getenv("CHUNK_SIZE_CHARS", "1000"))
    OVERLAP_CHARS: int = int(os.getenv("OVERLAP_CHARS", "100"))

    # --- Embeddings ---
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBED_BATCH_SIZE: int = int(os.getenv("EMBED_BATCH_SIZE", "5"))
    EMBED_BATCH_DELAY_S: float = float(os.getenv("EMBED_BATCH_DELAY_S", "0.1"))
    EMBED_TIMEOUT_S: float = float(os.getenv("EMBED_TIMEOUT_S", "30"))
    EMBED_RETRIES: int = int(os.getenv("EMBED_RETRIES", "2"))
    EMBED_RETRY_BASE_S: float = float(os.getenv("EMBED_RETRY_BASE_S", "0.5"))
    EMBED_RETRY_MAX_S: float = float(os.getenv("EMBED_RETRY_MAX_S", "8"))
    EMBED_QUOTA_AS_EMPTY: bool = _bool("EMBED_QUOTA_AS_EMPTY", "true")
    PRICE_EMBED_INPUT: float = float(os.getenv("PRICE_EMBED_INPUT", "0"))

    # --- Retrieval ---
    TOP_K: int = int(os.getenv("TOP_K", "5"))
    # unset: no similarity floor, every processed document can be returned
    MIN_SCORE: float | None = float(os.environ["MIN_SCORE"]) if os.getenv("MIN_SCORE") else None

    # --- LLM generation (chat answer) ---
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_MAX_OUTPUT_TOKENS: int = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "2000"))
    LLM_TIMEOUT_S: float = float(os.getenv("LLM_TIMEOUT_S", "60"))
    LLM_RETRIES: int = int(os.getenv("LLM_RETRIES", "2"))
    HISTORY_WINDOW: int = int(os.getenv("HISTORY_WINDOW", "10"))

    # --- Pricing ---
    PRICE_LLM_INPUT: float = float(os.getenv("PRICE_LLM_INPUT", "0"))
    PRICE_LLM_OUTPUT: float = float(os.getenv("PRICE_LLM_OUTPUT", "0"))

    SYSTEM_PROMPT: str = os.getenv(
        "SYSTEM_PROMPT",
        "You are a helpful personal assistant powered by retrieval-augmented generation. "
        "You have access to a knowledge base of documents and web pages. "
        "Provide accurate, helpful answers based on the available information, "
        "and mention the sources you rely on."
    )

    # --- Web acquisition ---
    SERPER_API_KEY: str = os.getenv("SERPER_API_KEY", "")
    SEARCH_URL: str = os.getenv("SEARCH_URL", "https://google.serper.dev/search")
    SEARCH_RESULTS: int = int(os.getenv("SEARCH_RESULTS", "3"))
    SCRAPE_TIMEOUT_S: float = float(os.getenv("SCRAPE_TIMEOUT_S", "20"))
    SCRAPE_MAX_CHARS: int = int(os.getenv("SCRAPE_MAX_CHARS", "10000"))

    # --- Uploads / storage ---
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    SNAPSHOT_DIR: str = os.getenv("SNAPSHOT_DIR", "data/artifacts/index")
    DOCS_DIR: str = os.getenv("DOCS_DIR", "data/docs")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def require(self, name: str) -> str:
        v = getattr(self, name, None) or os.getenv(name)
        if not v:
            raise RuntimeError(f"{name} is not set")
        return v


settings = Settings()
