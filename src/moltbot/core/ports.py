# src/moltbot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the chat transport, storage and LLM providers swappable and makes testing easier.
"""

from typing import Any, Awaitable, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Chat completion client (OpenAI-compatible)."""
    def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> Awaitable[str]: ...


class OutboundMessenger(Protocol):
    """
    Transport-side port: how services (notifier, webhook replies) send text to a chat.

    Implementations may raise on delivery failure; TaskNotifier is the layer
    that turns such failures into log lines.
    """

    def send_text(self, *, chat_id: int, text: str) -> Awaitable[None]: ...


class TaskRepo(Protocol):
    # Chat commands
    def enqueue(self, chat_id: int, input_text: str, *, kind: str = ...) -> int: ...
    def list_recent(self, chat_id: int, limit: int = 10) -> list[Any]: ...
    def get(self, task_id: int, chat_id: int) -> Any | None: ...

    # Dispatcher
    def claim_next_queued(self) -> Any | None: ...

    # Callback receiver
    def complete(self, task_id: int, result_text: str) -> Any | None: ...
    def fail(self, task_id: int, error_text: str) -> Any | None: ...
    def update_progress(self, task_id: int, result_text: str | None) -> Any | None: ...

    # Stale sweep
    def list_stale_running(self, *, older_than_ts: float, limit: int = 32) -> list[Any]: ...

    # Health
    def counts_by_status(self) -> dict[str, int]: ...
