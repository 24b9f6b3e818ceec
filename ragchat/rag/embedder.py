from __future__ import annotations

import asyncio
import time
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from ragchat.rag.errors import EmbeddingQuotaError, EmbeddingServiceError
from ragchat.utils.logging import get_logger


def _is_quota_error(e: Exception) -> bool:
    if not isinstance(e, openai.RateLimitError):
        return False
    code = getattr(e, "code", None)
    return code == "insufficient_quota" or "quota" in str(e).lower()


class Embedder:
    """One text in, one vector out. No batching, no retries."""

    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        model: str,
        timeout_s: float = 30.0,
        quota_as_empty: bool = True,
        logger=None,
        price_input_per_1m: float = 0.0,
    ):
        self.client = client
        self.model = model
        self.timeout_s = float(timeout_s)
        self.quota_as_empty = bool(quota_as_empty)
        self.log = logger or get_logger()
        self.price_input_per_1m = float(price_input_per_1m or 0.0)

        self.dimension: Optional[int] = None
        self.input_tokens = 0
        self.calls = 0

    def cost_usd(self) -> float:
        if self.price_input_per_1m <= 0:
            return 0.0
        return round((self.input_tokens / 1_000_000) * self.price_input_per_1m, 6)

    async def embed(self, text: str) -> List[float]:
        s = (text or "").strip() or " "
        t0 = time.perf_counter()

        try:
            resp = await asyncio.wait_for(
                self.client.embeddings.create(model=self.model, input=s),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingServiceError(f"Embedding timed out after {self.timeout_s}s") from e
        except openai.OpenAIError as e:
            if _is_quota_error(e):
                if self.quota_as_empty:
                    self.log.warning("EMBED quota exceeded | model=%s | returning empty vector", self.model)
                    return []
                raise EmbeddingQuotaError(f"Embedding quota exceeded: {e}") from e
            raise EmbeddingServiceError(f"Embedding error: {type(e).__name__}: {e}") from e

        if not resp.data:
            raise EmbeddingServiceError("Embedding response contained no vectors")

        vec = list(resp.data[0].embedding)
        self.calls += 1

        usage_obj = getattr(resp, "usage", None)
        if usage_obj is not None:
            self.input_tokens += int(getattr(usage_obj, "prompt_tokens", 0) or 0)

        if vec:
            if self.dimension is None:
                self.dimension = len(vec)
            elif len(vec) != self.dimension:
                self.log.warning(
                    "EMBED dim mismatch | model=%s | expected=%s | got=%s",
                    self.model, self.dimension, len(vec),
                )

        self.log.debug(
            "EMBED ok | model=%s | chars=%s | dim=%s | latency_ms=%s",
            self.model, len(s), len(vec), int((time.perf_counter() - t0) * 1000),
        )
        return vec


class RetryingEmbedder:
    """Wraps an embedder with bounded retries and exponential backoff.

    Quota errors are not retried: waiting a few seconds does not refill a quota.
    """

    def __init__(
        self,
        inner,
        *,
        retries: int = 2,
        base_delay_s: float = 0.5,
        max_delay_s: float = 8.0,
        logger=None,
    ):
        self.inner = inner
        self.retries = max(0, int(retries))
        self.base_delay_s = float(base_delay_s)
        self.max_delay_s = float(max_delay_s)
        self.log = logger or get_logger()

    def _delay(self, attempt: int) -> float:
        return min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))

    async def embed(self, text: str) -> List[float]:
        last_err: Optional[EmbeddingServiceError] = None

        for attempt in range(1, self.retries + 2):
            try:
                return await self.inner.embed(text)
            except EmbeddingQuotaError:
                raise
            except EmbeddingServiceError as e:
                last_err = e
                self.log.info("EMBED err | attempt=%s/%s | err=%s", attempt, self.retries + 1, e)
                if attempt <= self.retries:
                    await asyncio.sleep(self._delay(attempt))
                    continue

        raise last_err  # type: ignore[misc]


def build_embedder(settings, client: AsyncOpenAI, logger=None) -> RetryingEmbedder:
    inner = Embedder(
        client=client,
        model=settings.EMBEDDING_MODEL,
        timeout_s=settings.EMBED_TIMEOUT_S,
        quota_as_empty=settings.EMBED_QUOTA_AS_EMPTY,
        logger=logger,
        price_input_per_1m=settings.PRICE_EMBED_INPUT,
    )
    return RetryingEmbedder(
        inner,
        retries=settings.EMBED_RETRIES,
        base_delay_s=settings.EMBED_RETRY_BASE_S,
        max_delay_s=settings.EMBED_RETRY_MAX_S,
        logger=logger,
    )
