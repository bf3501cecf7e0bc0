# src/moltbot/llm/client.py

from __future__ import annotations

import logging

import httpx
import openai
from openai import AsyncOpenAI

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)


def friendly_llm_error_message(err: Exception) -> str:
    if isinstance(err, openai.AuthenticationError):
        return "LLM authentication failed. Check MOLTBOT_OPENAI_API_KEY."
    if isinstance(err, openai.RateLimitError):
        return "LLM is rate-limited. Try again later."
    if isinstance(err, (openai.APIConnectionError, openai.APITimeoutError)):
        return "LLM network/timeout error. Try again later."
    return "Sorry, I could not get an answer right now."


class OpenAIChatClient:
    """
    Non-streaming chat completion over an OpenAI-compatible API.

    Retries are disabled: a chat reply that fails is reported to the user instead.
    """

    def __init__(self, settings) -> None:
        api_key = getattr(settings, "openai_api_key", None)
        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set MOLTBOT_OPENAI_API_KEY in your .env.")

        self._model = str(getattr(settings, "llm_model", "") or "gpt-4o-mini")
        self._client = AsyncOpenAI(
            api_key=str(api_key),
            base_url=getattr(settings, "openai_base_url", None) or None,
            timeout=httpx.Timeout(connect=5.0, read=60.0, write=10.0, pool=5.0),
            max_retries=0,
        )

    async def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> str:
        logger.debug("LLM: model=%s messages=%d", self._model, len(messages))
        resp = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "system", "content": system_prompt}, *messages],  # type: ignore[list-item]
        )
        content = resp.choices[0].message.content if resp.choices else None
        return (content or "").strip()
