"""Change notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from obligations_gateway.config import settings
from obligations_gateway.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)

OBLIGATIONS_CHANGED = "obligations_changed"
CARDS_CHANGED = "cards_changed"

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Tells dependent read models (invoices, patrimony views) to refresh"""

    def __init__(self, webhook_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.change_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.transport = transport

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        """
        Post a change signal; runs after the response as a background task.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on HTTP error responses and network failures
        - Tracks latency histogram and failure counter

        Args:
            event: OBLIGATIONS_CHANGED or CARDS_CHANGED
            payload: Event details (user, affected ids)
        """
        if not self.webhook_url:
            logger.debug("No change webhook configured", extra={"event": event})
            return

        body = {"event": event, **payload}
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=body,
                            timeout=settings.http_timeout_seconds,
                        )
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Change notification failed after {attempt} attempts: {e}",
                            extra={"event": event},
                        )
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
