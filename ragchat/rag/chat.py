from __future__ import annotations

import time
import uuid
from typing import Sequence

from ragchat.rag.generator import Generator
from ragchat.rag.prompt import build as build_prompt
from ragchat.rag.retriever import RetrievalService, extract_sources, format_context
from ragchat.schemas import ChatMessage, ChatResponse, Usage
from ragchat.utils.logging import get_logger


class ChatService:
    """Answers a chat turn, grounded in the knowledge base when it can be.

    Retrieval problems never fail the turn: the model is simply called
    without context.
    """

    def __init__(
        self,
        *,
        retrieval: RetrievalService,
        generator: Generator,
        system_prompt: str,
        history_window: int = 10,
        top_k: int = 5,
        price_input_per_1m: float = 0.0,
        price_output_per_1m: float = 0.0,
        logger=None,
    ):
        self.retrieval = retrieval
        self.generator = generator
        self.system_prompt = system_prompt
        self.history_window = int(history_window)
        self.top_k = int(top_k)
        self.price_input_per_1m = float(price_input_per_1m or 0.0)
        self.price_output_per_1m = float(price_output_per_1m or 0.0)
        self.log = logger or get_logger()

    def _cost_usd(self, usage: dict | None) -> float:
        if not usage:
            return 0.0
        inp = int(usage.get("input_tokens", 0) or 0)
        out = int(usage.get("output_tokens", 0) or 0)
        cost = (inp / 1_000_000) * self.price_input_per_1m + (out / 1_000_000) * self.price_output_per_1m
        return round(cost, 6)

    async def answer(self, message: str, history: Sequence[ChatMessage] = ()) -> ChatResponse:
        t0 = time.perf_counter()
        q = (message or "").strip()

        results = await self.retrieval.search(q, self.top_k)
        context = format_context(results)
        sources = extract_sources(results)

        messages = build_prompt(
            q,
            history,
            context,
            system_prompt=self.system_prompt,
            history_window=self.history_window,
        )

        # GenerationError propagates: without a model answer there is nothing to return
        gen_res = await self.generator.generate(messages)

        return ChatResponse(
            ok=True,
            answer=gen_res.content,
            sources=sources,
            latency_ms=int((time.perf_counter() - t0) * 1000),
            usage=Usage(**gen_res.usage) if gen_res.usage else None,
            cost_usd=self._cost_usd(gen_res.usage),
            request_id=str(uuid.uuid4()),
        )
