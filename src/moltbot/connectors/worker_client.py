# src/moltbot/connectors/worker_client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class WorkerDispatchError(RuntimeError):
    """The external automation endpoint could not accept a task."""


class WorkerClient:
    """
    Posts task payloads to the external automation service (e.g. an n8n webhook).

    Any transport error or non-2xx answer is raised as WorkerDispatchError.
    """

    def __init__(
        self,
        endpoint_url: str | None,
        *,
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = (endpoint_url or "").strip()
        self._timeout = timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._url)

    async def post_task(self, payload: dict[str, Any]) -> None:
        if not self._url:
            raise WorkerDispatchError("external dispatch URL is not configured")

        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise WorkerDispatchError(f"{e.__class__.__name__}: {e}") from e

        if not resp.is_success:
            raise WorkerDispatchError(f"HTTP {resp.status_code}")

        logger.debug("Worker accepted task_id=%s status=%s", payload.get("task_id"), resp.status_code)
