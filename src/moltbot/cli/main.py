# src/moltbot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then serves the FastAPI app with uvicorn.
The task poller starts and stops with the app (see web.app lifespan).
"""

from __future__ import annotations

import logging

import uvicorn

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..logging_setup import setup_logging
from ..web.app import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s on %s:%s...", settings.app_name, settings.host, settings.port)
    logger.info(
        "Telegram token loaded: %s, LLM key loaded: %s, worker URL set: %s",
        bool(settings.telegram_bot_token),
        bool(settings.openai_api_key),
        bool(settings.external_dispatch_url),
    )

    state = create_initial_state(settings=settings)
    app = create_app(state)

    try:
        # log_config=None keeps the handlers installed by setup_logging().
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    finally:
        close = getattr(state.task_store, "close", None)
        if callable(close):
            close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
