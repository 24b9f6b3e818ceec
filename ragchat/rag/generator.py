from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from ragchat.rag.errors import GenerationError
from ragchat.utils.logging import get_logger


@dataclass(frozen=True)
class GenerateResult:
    content: str
    model: str
    latency_ms: int
    usage: Optional[Dict[str, int]]


class Generator:
    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
        timeout_s: float = 60.0,
        retries: int = 2,
        sleep_base_s: float = 0.5,
        logger=None,
    ):
        self.client = client
        self.model = model
        self.temperature = float(temperature)
        self.max_output_tokens = int(max_output_tokens)
        self.timeout_s = float(timeout_s)
        self.retries = max(0, int(retries))
        self.sleep_base_s = float(sleep_base_s)
        self.log = logger or get_logger()

    def _extract_text(self, resp: Any) -> str:
        choices = getattr(resp, "choices", None) or []
        if not choices:
            return ""
        msg = getattr(choices[0], "message", None)
        return str(getattr(msg, "content", "") or "").strip()

    def _extract_usage(self, resp: Any) -> Optional[Dict[str, int]]:
        u = getattr(resp, "usage", None)
        if u is None:
            return None

        input_tokens = int(getattr(u, "prompt_tokens", 0) or 0)
        output_tokens = int(getattr(u, "completion_tokens", 0) or 0)
        total_tokens = int(getattr(u, "total_tokens", 0) or (input_tokens + output_tokens))

        if input_tokens == 0 and output_tokens == 0 and total_tokens == 0:
            return None

        return {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total_tokens,
        }

    async def generate(self, messages: List[Dict[str, Any]]) -> GenerateResult:
        t0 = time.perf_counter()
        last_err: Optional[Exception] = None

        for attempt in range(1, self.retries + 2):
            try:
                resp = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_output_tokens,
                    timeout=self.timeout_s,
                )

                content = self._extract_text(resp)
                latency_ms = int((time.perf_counter() - t0) * 1000)
                usage = self._extract_usage(resp)

                self.log.info(
                    "GEN ok | model=%s | attempt=%s | latency_ms=%s | usage=%s",
                    self.model, attempt, latency_ms, usage
                )

                return GenerateResult(
                    content=content,
                    model=self.model,
                    latency_ms=latency_ms,
                    usage=usage,
                )

            except Exception as e:
                last_err = e
                self.log.info(
                    "GEN error | attempt=%s | err=%s",
                    attempt, f"{type(e).__name__}: {e}"
                )
                if attempt <= self.retries:
                    await asyncio.sleep(self.sleep_base_s * attempt)
                    continue
                break

        raise GenerationError(f"LLM generation failed after retries: {last_err}") from last_err


def build_generator(settings, client: AsyncOpenAI, logger=None) -> Generator:
    return Generator(
        client=client,
        model=settings.LLM_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
        timeout_s=settings.LLM_TIMEOUT_S,
        retries=settings.LLM_RETRIES,
        logger=logger,
    )
