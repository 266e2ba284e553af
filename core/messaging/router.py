"""
Inbound Message Router

@.architecture
Incoming: ws/handlers.py --- {SessionContext, str content}
Processing: handle_input() --- {3 jobs: identity_check, envelope_creation, publishing}
Outgoing: core/messaging/transports.py, ws/handlers.py --- {InboundEnvelope to the worker tier, DeliveryResult for the ack}

The router never waits for the worker's answer: responses come back
asynchronously through the fan-out bridge.
"""

from dataclasses import dataclass
from typing import Any, Optional

from core.errors import PublishFailed, Unauthenticated
from core.messaging.envelopes import InboundEnvelope
from core.messaging.transports import InboundTransport
from monitoring import get_logger

logger = get_logger(__name__)

STATUS_PUBLISH_FAILED = 502


@dataclass(frozen=True)
class DeliveryResult:
    """Synchronous outcome of handing one message to the worker tier."""
    message_id: str
    status: int

    @property
    def accepted(self) -> bool:
        return 200 <= self.status < 300


class InboundMessageRouter:
    """Wraps user input in an envelope and hands it to the configured transport."""

    def __init__(self, transport: InboundTransport):
        self.transport = transport

    async def handle_input(self, session: Optional[Any], content: str) -> DeliveryResult:
        """
        Publish ``content`` on behalf of the session's identity.

        Raises:
            Unauthenticated: the session carries no resolved identity
        """
        user_id = getattr(session, "user_id", None)
        if not user_id:
            raise Unauthenticated("Connection has no resolved identity")

        envelope = InboundEnvelope.create(user_id, content)
        try:
            status = await self.transport.send(envelope)
        except PublishFailed as e:
            logger.error(f"Failed to publish message {envelope.message_id}: {e}")
            return DeliveryResult(message_id=envelope.message_id, status=STATUS_PUBLISH_FAILED)

        logger.info(f"Published message {envelope.message_id} (status {status})")
        return DeliveryResult(message_id=envelope.message_id, status=status)
