# src/moltbot/web/app.py

"""
HTTP surface.

- GET  /               liveness
- GET  /health/ready   store reachability
- POST /telegram       Telegram webhook (commands + chat replies)
- POST /tasks/callback external worker reports (shared-secret header)

The task poller runs as a background asyncio task for the app's lifetime.
"""

from __future__ import annotations

import contextlib
import logging
import secrets
import sqlite3
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import anyio.to_thread as to_thread
from fastapi import FastAPI, HTTPException, Request, status

from ..cli.commands import registry as command_registry
from ..connectors.telegram_client import parse_message_update
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message
from ..tasks.task_callbacks import CALLBACK_SECRET_HEADER, CallbackError

logger = logging.getLogger(__name__)

TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


async def _reply_to_text(state: AppState, chat_id: int, text: str) -> str:
    reply = await to_thread.run_sync(command_registry.handle, state, text, chat_id)
    if reply is not None:
        return reply

    try:
        return await state.llm.complete_chat(
            [{"role": "user", "content": text}],
            str(getattr(state.settings, "llm_system_prompt", "")),
        )
    except Exception as e:
        logger.exception("LLM reply failed chat_id=%s", chat_id)
        return friendly_llm_error_message(e)


def create_app(state: AppState, *, start_poller: bool = True) -> FastAPI:
    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        poller = state.poller if start_poller else None
        if poller is not None:
            poller.start()
        try:
            yield
        finally:
            if poller is not None:
                await poller.stop()

    app = FastAPI(title=str(getattr(state.settings, "app_name", "moltbot")), lifespan=lifespan)
    app.state.moltbot = state

    @app.get("/")
    async def health_live() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": str(getattr(state.settings, "app_name", "moltbot")),
            "time": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health/ready")
    async def health_ready() -> dict[str, Any]:
        try:
            counts = await to_thread.run_sync(state.task_store.counts_by_status)
        except sqlite3.Error:
            logger.exception("Task store unreachable")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task store unreachable"
            )
        return {
            "status": "ready",
            "poller": bool(state.poller is not None and state.poller.running),
            "tasks": counts,
        }

    @app.post("/telegram")
    async def telegram_webhook(request: Request) -> dict[str, str]:
        expected = (getattr(state.settings, "telegram_webhook_secret", None) or "").strip()
        if expected:
            presented = request.headers.get(TELEGRAM_SECRET_HEADER) or ""
            if not secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
                logger.warning("Telegram webhook rejected: bad secret token")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized webhook source")

        try:
            update = await request.json()
        except ValueError:
            logger.warning("Telegram webhook: malformed JSON body")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bad Request")

        parsed = parse_message_update(update)
        if parsed is None:
            return {"status": "ignored"}

        chat_id, text = parsed
        logger.info("Telegram message chat_id=%s chars=%d", chat_id, len(text))

        try:
            reply = await _reply_to_text(state, chat_id, text)
        except sqlite3.Error:
            logger.exception("Task store error while handling chat_id=%s", chat_id)
            reply = "Sorry, the task queue is unavailable right now. Please try again later."
        except ValueError as e:
            reply = str(e)
        except Exception:
            # Telegram redelivers on 5xx; a bad message must not loop.
            logger.exception("Unhandled error while handling chat_id=%s", chat_id)
            reply = "Sorry, something went wrong handling that message."

        if reply:
            await state.notifier.notify(chat_id, reply)
        return {"status": "ok"}

    @app.post("/tasks/callback")
    async def task_callback(request: Request) -> dict[str, Any]:
        try:
            body: Any = await request.json()
        except ValueError:
            # Rejected after the secret check inside handle(), never before it.
            body = None

        try:
            result = await state.callbacks.handle(
                body, presented_secret=request.headers.get(CALLBACK_SECRET_HEADER)
            )
        except CallbackError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e))
        except sqlite3.Error:
            logger.exception("Task store error while applying callback")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task store unavailable"
            )

        return result.to_dict()

    return app
