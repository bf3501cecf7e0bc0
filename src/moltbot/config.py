# src/moltbot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Bare legacy names (TELEGRAM_BOT_TOKEN, OPENAI_API_KEY, PORT) are accepted as fallbacks.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "MOLTBOT"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- HTTP server ----
    host: str
    port: int

    # ---- Telegram ----
    telegram_bot_token: Optional[str]
    telegram_api_base: str
    telegram_webhook_secret: Optional[str]

    # ---- LLM (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: Optional[str]
    llm_model: str
    llm_system_prompt: str

    # ---- External worker ----
    external_dispatch_url: Optional[str]
    external_timeout_seconds: float
    callback_secret: Optional[str]
    public_base_url: str

    # ---- Task queue tuning ----
    poll_interval_seconds: float
    running_timeout_seconds: float
    recent_tasks_limit: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    @property
    def callback_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/tasks/callback"

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "moltbot")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        host = _env(_k("HOST"), "0.0.0.0")
        port = _env_int(_k("PORT"), _env_int("PORT", 8080))

        telegram_bot_token = _first_env(_k("TELEGRAM_BOT_TOKEN"), "TELEGRAM_BOT_TOKEN", default=None)
        telegram_api_base = _env(_k("TELEGRAM_API_BASE"), "https://api.telegram.org")
        telegram_webhook_secret = _first_env(_k("TELEGRAM_WEBHOOK_SECRET"), default=None)

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _first_env(_k("OPENAI_BASE_URL"), "OPENAI_BASE_URL", default=None)
        llm_model = _env(_k("LLM_MODEL"), "gpt-4o-mini")
        llm_system_prompt = _env(
            _k("LLM_SYSTEM_PROMPT"),
            "You are Moltbot, a concise and friendly Telegram assistant.",
        )

        external_dispatch_url = _first_env(
            _k("EXTERNAL_DISPATCH_URL"), "N8N_WEBHOOK_URL", default=None
        )
        external_timeout_seconds = _env_float(_k("EXTERNAL_TIMEOUT_SECONDS"), 15.0)
        callback_secret = _first_env(_k("CALLBACK_SECRET"), "N8N_CALLBACK_SECRET", default=None)
        public_base_url = (
            _first_env(_k("PUBLIC_BASE_URL"), "PUBLIC_URL", default=None) or f"http://localhost:{port}"
        ).strip()

        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 5.0)
        running_timeout_seconds = _env_float(_k("RUNNING_TIMEOUT_SECONDS"), 0.0)
        recent_tasks_limit = _env_int(_k("RECENT_TASKS_LIMIT"), 10)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/moltbot"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            host=host,
            port=port,
            telegram_bot_token=telegram_bot_token,
            telegram_api_base=telegram_api_base,
            telegram_webhook_secret=telegram_webhook_secret,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_model=llm_model,
            llm_system_prompt=llm_system_prompt,
            external_dispatch_url=external_dispatch_url,
            external_timeout_seconds=external_timeout_seconds,
            callback_secret=callback_secret,
            public_base_url=public_base_url,
            poll_interval_seconds=poll_interval_seconds,
            running_timeout_seconds=running_timeout_seconds,
            recent_tasks_limit=recent_tasks_limit,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
