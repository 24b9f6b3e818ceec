from __future__ import annotations

from typing import List, Dict, Sequence

from ragchat.schemas import ChatMessage

CONTEXT_HEADER = "Here is relevant context from the knowledge base:"


def system_instruction(base: str, context: str) -> str:
    base = (base or "").strip() or "You are a helpful personal assistant."
    if not context:
        return base
    return f"{base}\n\n{CONTEXT_HEADER}\n\n{context}"


def build(
    message: str,
    history: Sequence[ChatMessage],
    context: str,
    *,
    system_prompt: str,
    history_window: int = 10,
) -> List[Dict[str, str]]:
    """System instruction, the tail of the conversation, then the new user turn."""
    turns = [m for m in history if m.role != "system"]
    if history_window > 0:
        turns = turns[-history_window:]
    else:
        turns = []

    messages: List[Dict[str, str]] = [
        {"role": "system", "content": system_instruction(system_prompt, context)}
    ]
    messages.extend({"role": m.role, "content": m.content} for m in turns)
    messages.append({"role": "user", "content": (message or "").strip()})
    return messages
