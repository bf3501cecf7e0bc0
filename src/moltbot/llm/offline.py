# src/moltbot/llm/offline.py

from __future__ import annotations

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Deterministic client used when no LLM API key is configured.

    Echoes the last user message back, which is what the bot did before it had an LLM.
    """

    async def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> str:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break
        return f"You said: {user_text}"
