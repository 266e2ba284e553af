"""
WebSocket Message Handlers

Handles inbound client frames for admitted connections.

@.architecture
Incoming: ws/hub.py (handle_text) --- {Connection, raw JSON text from the client}
Processing: handle_text(), _acknowledge() --- {4 jobs: frame_decoding, message_routing, acknowledgment, echo}
Outgoing: core/messaging/router.py, ws/hub.py --- {handle_input calls, ack/response frames}
"""

from typing import TYPE_CHECKING, Optional

from core.errors import MalformedFrame, Unauthenticated
from core.messaging.router import InboundMessageRouter
from monitoring import get_logger, set_connection_context
from ws.protocols import AckEvent, ResponseEvent, decode_client_frame

if TYPE_CHECKING:
    from ws.hub import Connection, WebSocketHub

logger = get_logger(__name__)

STATUS_UNAUTHENTICATED = 401


class MessageHandler:
    """
    Decodes client frames and hands user input to the router.

    Malformed frames are logged and dropped; the connection stays open.
    Every accepted input gets exactly one ``ack`` frame back.
    """

    def __init__(self, router: InboundMessageRouter, echo_inputs: bool = False):
        self.router = router
        self.echo_inputs = echo_inputs

    async def handle_text(
        self,
        hub: "WebSocketHub",
        connection: "Connection",
        text: str,
    ) -> None:
        try:
            frame = decode_client_frame(text)
        except MalformedFrame as e:
            logger.warning(f"Dropping frame from {connection.id}: {e}")
            return

        logger.info(f"Received message from {connection.id}")

        try:
            result = await self.router.handle_input(connection.session, frame.data)
        except Unauthenticated as e:
            logger.warning(f"Rejected input from {connection.id}: {e}")
            await self._acknowledge(hub, connection, STATUS_UNAUTHENTICATED, frame.id)
            return

        set_connection_context(request_id=result.message_id)
        await self._acknowledge(hub, connection, result.status, result.message_id)

        if self.echo_inputs:
            await hub.send(
                connection,
                ResponseEvent(data=f"Received: {frame.data}", id=result.message_id),
            )

    @staticmethod
    async def _acknowledge(
        hub: "WebSocketHub",
        connection: "Connection",
        status: int,
        message_id: Optional[str],
    ) -> None:
        await hub.send(connection, AckEvent(data=status, id=message_id))
