# src/moltbot/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.state import AppState
from ..tasks.task_models import Task, TaskStatus, is_valid_task_id, parse_task_id
from ..tasks.task_notifier import format_queued

CommandHandler = Callable[[AppState, list[str], int, str], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the Telegram webhook (/help, /task, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, chat_id: int) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        line = line.strip()
        if not line.startswith("/"):
            return None

        head, _, rest = line[1:].partition(" ")
        # Group chats address commands as /task@BotName.
        name = head.split("@", 1)[0].lower()
        if not name:
            return "Empty command. Use /help to list available commands."

        rest = rest.strip()
        args = rest.split()

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, args, chat_id, rest)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _describe(task: Task) -> str:
    line = f"#{task.id} [{task.status.value}] {task.input_text}"
    if task.status == TaskStatus.DONE and task.result_text:
        line += f"\n    result: {task.result_text}"
    elif task.status == TaskStatus.FAILED and task.error_text:
        line += f"\n    error: {task.error_text}"
    return line


def cmd_help(state: AppState, args: list[str], chat_id: int, rest: str) -> str:
    return registry.build_help()


def cmd_task(state: AppState, args: list[str], chat_id: int, rest: str) -> str:
    """
    /task <text>  -> queue a task for the external worker
    """
    if not rest:
        return "Usage: /task <what should be done>"

    task_id = state.task_store.enqueue(chat_id, rest)
    logger.info("Task %s queued by chat_id=%s", task_id, chat_id)
    if state.poller is None:
        return format_queued(task_id) + "\n(No worker is configured yet; it will wait in the queue.)"
    return format_queued(task_id)


def cmd_tasks(state: AppState, args: list[str], chat_id: int, rest: str) -> str:
    limit = int(getattr(state.settings, "recent_tasks_limit", 10) or 10)
    tasks = state.task_store.list_recent(chat_id, limit)
    if not tasks:
        return "No tasks yet. Create one with /task <text>."
    lines = [f"Your last {len(tasks)} task(s):"]
    lines.extend(_describe(t) for t in tasks)
    return "\n".join(lines)


def cmd_status(state: AppState, args: list[str], chat_id: int, rest: str) -> str:
    """
    /status <id>  -> show one of this chat's tasks
    """
    if not args:
        return "Usage: /status <task id>"
    raw = args[0].lstrip("#")
    try:
        task_id = parse_task_id(raw)
    except ValueError:
        return f"Not a task id: {args[0]}"

    if not is_valid_task_id(task_id):
        return f"Task #{task_id} not found."
    task = state.task_store.get(task_id, chat_id)
    if task is None:
        return f"Task #{task_id} not found."
    return _describe(task)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["start", "h"])
registry.register("task", cmd_task, help_text="Queue a task for the worker: /task <text>.")
registry.register("tasks", cmd_tasks, help_text="List your recent tasks.")
registry.register("status", cmd_status, help_text="Show one task: /status <id>.")
