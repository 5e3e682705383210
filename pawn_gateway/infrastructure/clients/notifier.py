"""Notifier webhook client with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Dict, Any
from pawn_gateway.config import settings
from pawn_gateway.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


def is_retryable(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.RequestError)


class NotifierClient:
    """Client for delivering recorded ledger facts to the notification service"""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        self.webhook_url = webhook_url or settings.notifier_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> None:
        with webhook_latency_histogram.time():
            response = await client.post(self.webhook_url, json=payload)
        response.raise_for_status()

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Post one event to the notifier.

        5xx responses and network failures are retried with exponential
        backoff (base * 2^(attempt-1)); 4xx responses fail immediately.
        The last error is re-raised once retries are exhausted.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    await self._post(client, payload)
                    return
                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    webhook_failure_counter.inc()
                    if attempt >= self.max_retries or not is_retryable(e):
                        raise
                    await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))
