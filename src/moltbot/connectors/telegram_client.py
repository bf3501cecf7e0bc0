# src/moltbot/connectors/telegram_client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class TelegramError(RuntimeError):
    """Telegram Bot API answered with ok=false or a non-2xx status."""


class TelegramMessenger:
    """
    OutboundMessenger over the Telegram Bot API (sendMessage).

    Without a bot token the messenger is disabled: messages are logged and dropped.
    A shared httpx.AsyncClient may be injected (tests pass one with a MockTransport).
    """

    def __init__(
        self,
        token: str | None,
        *,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = (token or "").strip()
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self._token)

    def _method_url(self, method: str) -> str:
        return f"{self._api_base}/bot{self._token}/{method}"

    async def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = self._method_url(method)
        if self._client is not None:
            resp = await self._client.post(url, json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=payload)

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code >= 400 or not data.get("ok", False):
            # Never log the URL: it contains the bot token.
            desc = data.get("description") or resp.reason_phrase
            raise TelegramError(f"{method} failed: HTTP {resp.status_code} {desc}")
        return data

    async def send_text(self, *, chat_id: int, text: str) -> None:
        if not self.enabled:
            logger.warning("Telegram token not configured; dropping message to chat_id=%s", chat_id)
            return
        await self._post("sendMessage", {"chat_id": chat_id, "text": text})
        logger.debug("sendMessage ok chat_id=%s chars=%d", chat_id, len(text))


def parse_message_update(update: Any) -> tuple[int, str] | None:
    """
    Extract (chat_id, text) from a Telegram update.

    Returns None for updates without a text message (edits, callbacks, joins...).
    """
    if not isinstance(update, dict):
        return None
    message = update.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    chat = message.get("chat")
    if not isinstance(text, str) or not isinstance(chat, dict):
        return None
    chat_id = chat.get("id")
    if isinstance(chat_id, bool) or not isinstance(chat_id, int):
        return None
    return chat_id, text
