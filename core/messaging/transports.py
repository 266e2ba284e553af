"""
Inbound transports: how a user message reaches the worker tier.

Both return an HTTP-style status for the client's ack and raise
PublishFailed when the message could not be handed over at all.
"""

from typing import Optional, Protocol

import httpx

from core.errors import PublishFailed
from core.messaging.envelopes import InboundEnvelope
from monitoring import get_logger
from utils.http import HTTPClient, HTTPClientConfig

logger = get_logger(__name__)

STATUS_ACCEPTED = 200


class InboundTransport(Protocol):
    async def send(self, envelope: InboundEnvelope) -> int:
        ...


class Enqueuer(Protocol):
    async def enqueue(self, key: str, payload: str) -> int:
        ...


class BusTransport:
    """Pushes the envelope onto a Redis list named after the message."""

    def __init__(self, bus: Enqueuer, queue_template: str = "chat:message:{message_id}"):
        self.bus = bus
        self.queue_template = queue_template

    async def send(self, envelope: InboundEnvelope) -> int:
        key = self.queue_template.format(
            message_id=envelope.message_id,
            user_id=envelope.user_id,
        )
        await self.bus.enqueue(key, envelope.to_json())
        return STATUS_ACCEPTED


class HttpTransport:
    """
    POSTs the envelope to the chat REST backend and relays its status.

    A POST is sent once. A timed-out request may already have reached the
    backend, so it is reported as PublishFailed and never re-sent.
    """

    def __init__(
        self,
        url: str,
        http_client: Optional[HTTPClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self._http = http_client or HTTPClient(
            HTTPClientConfig(max_retries=1),
            transport=transport,
        )

    async def send(self, envelope: InboundEnvelope) -> int:
        try:
            response = await self._http.post(self.url, json=envelope.to_payload())
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Chat backend answered {e.response.status_code} for {envelope.message_id}"
            )
            return e.response.status_code
        except httpx.HTTPError as e:
            raise PublishFailed(f"POST {self.url} failed: {e}") from e
        return response.status_code

    async def close(self) -> None:
        await self._http.close()
