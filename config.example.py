# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "MOLTBOT_APP_NAME": "App display name (default: moltbot).",
    "MOLTBOT_LOG_LEVEL": "Console logging level (default: INFO).",
    # HTTP server
    "MOLTBOT_HOST": "Bind address (default: 0.0.0.0).",
    "MOLTBOT_PORT": "Listen port (fallback: PORT, default: 8080).",
    # Telegram
    "MOLTBOT_TELEGRAM_BOT_TOKEN": "Bot token (fallback: TELEGRAM_BOT_TOKEN). Empty => replies are dropped.",
    "MOLTBOT_TELEGRAM_API_BASE": "Bot API base URL (default: https://api.telegram.org).",
    "MOLTBOT_TELEGRAM_WEBHOOK_SECRET": "If set, /telegram requires X-Telegram-Bot-Api-Secret-Token.",
    # LLM
    "MOLTBOT_OPENAI_API_KEY": "OpenAI-compatible key (fallback: OPENAI_API_KEY). Empty => echo replies.",
    "MOLTBOT_OPENAI_BASE_URL": "Optional OpenAI-compatible base URL.",
    "MOLTBOT_LLM_MODEL": "Chat model name (default: gpt-4o-mini).",
    "MOLTBOT_LLM_SYSTEM_PROMPT": "System prompt for chat replies.",
    # External worker
    "MOLTBOT_EXTERNAL_DISPATCH_URL": "Worker endpoint tasks are POSTed to (fallback: N8N_WEBHOOK_URL). "
    "Empty => poller disabled.",
    "MOLTBOT_EXTERNAL_TIMEOUT_SECONDS": "Timeout for the worker POST (default: 15).",
    "MOLTBOT_CALLBACK_SECRET": "Shared secret expected in X-Callback-Secret (fallback: N8N_CALLBACK_SECRET).",
    "MOLTBOT_PUBLIC_BASE_URL": "Public URL of this service; callback_url = <base>/tasks/callback.",
    # Task queue tuning
    "MOLTBOT_POLL_INTERVAL_SECONDS": "Poller interval (default: 5).",
    "MOLTBOT_RUNNING_TIMEOUT_SECONDS": "Fail running tasks without callback after N seconds (default: 0 = never).",
    "MOLTBOT_RECENT_TASKS_LIMIT": "How many tasks /tasks shows (default: 10).",
    # Paths (gitignored)
    "MOLTBOT_DATA_DIR": "Local data directory (default: .local/moltbot).",
    "MOLTBOT_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
}
