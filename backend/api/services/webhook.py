"""Best-effort outbound webhook delivery.

Messages are posted in Discord webhook format. Delivery runs in a background
task; failures are logged and never reach the request that triggered them.
"""

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)


class WebhookNotifier:
    def __init__(self, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        # Shared HTTP client, reused across deliveries
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._tasks: set[asyncio.Task] = set()

    async def send(self, url: str, message: str) -> bool:
        """Post *message* to *url*. Returns False instead of raising."""
        try:
            response = await self._http.post(url, json={"content": f"```\n{message}\n```"})
            if response.status_code >= 400:
                logger.warning(f"Webhook delivery rejected: HTTP {response.status_code}")
                return False
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Webhook delivery failed: {type(e).__name__}: {e}")
            return False

    def dispatch(self, url: str, message: str) -> None:
        """Schedule delivery without waiting for it."""
        task = asyncio.create_task(self.send(url, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait (bounded) for in-flight deliveries. Call on app shutdown."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Dropped {len(pending)} webhook deliveries on shutdown")

    async def close(self) -> None:
        await self._http.aclose()
