"""
WebSocket Hub - Connection lifecycle and delivery

Central hub for admitting WebSocket connections, tracking them, and
delivering frames to specific connections.

@.architecture
Incoming: app.py (websocket_endpoint), ws/bridge.py --- {WebSocket connection objects, handshake credentials, text frames, fan-out targets}
Processing: connect(), _admit(), disconnect(), handle_text(), send(), deliver(), cleanup_all() --- {5 jobs: admission, connection_management, delivery, error_handling, message_routing}
Outgoing: security/admission.py, ws/registry.py, ws/handlers.py, Frontend (WebSocket) --- {admission calls, register/unregister calls, JSON frames}

Features:
- Admission raced against client disconnect (abandoned attempts leave no trace)
- Registration in the subscription registry once admitted
- Per-connection send lock and timeout
- Concurrent fan-out with timeout protection
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from fastapi import WebSocket

from monitoring import get_logger, set_connection_context
from security.admission import AdmissionPipeline, AdmissionResult, Rejected, SessionContext
from ws.handlers import MessageHandler
from ws.protocols import (
    BalanceEvent,
    BaseEvent,
    CLOSE_CODE_REJECTED,
    ErrorEvent,
    ResponseEvent,
    WS_FANOUT_TIMEOUT,
    WS_SEND_TIMEOUT,
    encode,
)
from ws.registry import SubscriptionRegistry

logger = get_logger(__name__)


@dataclass
class Connection:
    """
    One physical WebSocket connection.

    Attributes:
        id: Unique connection identifier
        ws: WebSocket connection
        session: Admission outcome, set once admitted
        pending: Text frames received while admission was running
    """
    id: str
    ws: WebSocket
    session: Optional[SessionContext] = None
    pending: List[str] = field(default_factory=list)
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id if self.session else None

    def drain_pending(self) -> List[str]:
        frames, self.pending = self.pending, []
        return frames


class WebSocketHub:
    """
    Owns every live connection and the path from admission to teardown.

    Architecture:
    - AdmissionPipeline decides whether a connection may join
    - SubscriptionRegistry maps identities to connection ids
    - MessageHandler routes inbound frames
    - FanoutBridge calls deliver() for outbound worker responses
    """

    def __init__(
        self,
        pipeline: AdmissionPipeline,
        registry: SubscriptionRegistry,
        message_handler: MessageHandler,
        welcome_message: Optional[str] = None,
        send_timeout: float = WS_SEND_TIMEOUT,
        fanout_timeout: float = WS_FANOUT_TIMEOUT,
    ):
        self.pipeline = pipeline
        self.registry = registry
        self.message_handler = message_handler
        self.welcome_message = welcome_message
        self.send_timeout = send_timeout
        self.fanout_timeout = fanout_timeout
        self.connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def connect(
        self,
        ws: WebSocket,
        credential: Optional[str],
        declared_address: Optional[str] = None,
    ) -> Optional[Connection]:
        """
        Admit an accepted WebSocket.

        Returns:
            The registered Connection, or None if the attempt was rejected
            (client told why, socket closed) or abandoned by the client
        """
        connection = Connection(id=str(uuid4()), ws=ws)
        set_connection_context(connection_id=connection.id)

        result = await self._admit(connection, credential, declared_address)
        if result is None:
            logger.info(f"Client {connection.id} left during admission")
            return None

        if isinstance(result, Rejected):
            await self._reject(connection, result.reason)
            return None

        connection.session = result
        set_connection_context(user_id=result.user_id)

        async with self._lock:
            self.connections[connection.id] = connection
        await self.registry.register(result.user_id, connection.id)

        logger.info(f"Client connected: {connection.id}")
        await self._greet(connection)
        return connection

    async def _admit(
        self,
        connection: Connection,
        credential: Optional[str],
        declared_address: Optional[str],
    ) -> Optional[AdmissionResult]:
        """Run admission while watching the socket; None means the client left."""
        admission = asyncio.create_task(self.pipeline.admit(credential, declared_address))
        try:
            while True:
                receiver = asyncio.create_task(connection.ws.receive())
                done, _ = await asyncio.wait(
                    {admission, receiver},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if receiver not in done:
                    receiver.cancel()
                    await asyncio.gather(receiver, return_exceptions=True)
                    return admission.result()

                try:
                    message = receiver.result()
                except (RuntimeError, ConnectionError):
                    return None

                if message.get("type") == "websocket.disconnect":
                    return None

                if message.get("text"):
                    connection.pending.append(message["text"])

                if admission in done:
                    return admission.result()
        finally:
            if not admission.done():
                admission.cancel()
                await asyncio.gather(admission, return_exceptions=True)

    async def _reject(self, connection: Connection, reason: str) -> None:
        try:
            await self.send(connection, ErrorEvent(data=reason))
            await connection.ws.close(code=CLOSE_CODE_REJECTED, reason="Authentication failed")
        except Exception as e:
            logger.debug(f"Could not deliver rejection to {connection.id}: {e}")

    async def _greet(self, connection: Connection) -> None:
        if self.welcome_message:
            await self.send(connection, ResponseEvent(data=self.welcome_message))
        if connection.session.balance is not None:
            await self.send(connection, BalanceEvent.from_balance(connection.session.balance))

    async def disconnect(self, connection: Connection) -> None:
        """
        Tear down an admitted connection. Safe to call more than once.
        """
        async with self._lock:
            self.connections.pop(connection.id, None)

        if connection.user_id:
            await self.registry.unregister(connection.user_id, connection.id)

        logger.info(f"Client disconnected: {connection.id}")

    async def handle_text(self, connection: Connection, text: str) -> None:
        await self.message_handler.handle_text(self, connection, text)

    async def send(self, connection: Connection, event: BaseEvent) -> bool:
        """
        Send one frame to one connection.

        Returns:
            True if sent, False if the socket failed or timed out
        """
        try:
            async with connection.send_lock:
                await asyncio.wait_for(
                    connection.ws.send_text(encode(event)),
                    timeout=self.send_timeout
                )
            return True
        except Exception as e:
            logger.debug(f"Failed to send to client {connection.id}: {e}")
            return False

    async def deliver(self, connection_ids: Iterable[str], event: BaseEvent) -> int:
        """
        Send ``event`` to each listed connection that is still open.

        Returns:
            Number of connections the frame was written to
        """
        async with self._lock:
            targets = [
                self.connections[connection_id]
                for connection_id in connection_ids
                if connection_id in self.connections
            ]

        if not targets:
            return 0

        sends = [asyncio.ensure_future(self.send(c, event)) for c in targets]
        done, pending = await asyncio.wait(sends, timeout=self.fanout_timeout)

        if pending:
            logger.warning(
                f"Fan-out timeout: {len(pending)}/{len(targets)} send(s) still pending"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        return sum(1 for task in done if task.result())

    def get_connection_count(self) -> int:
        return len(self.connections)

    async def cleanup_all(self) -> None:
        """Unregister every connection (for shutdown)."""
        async with self._lock:
            connections = list(self.connections.values())
            self.connections.clear()

        for connection in connections:
            if connection.user_id:
                await self.registry.unregister(connection.user_id, connection.id)

        logger.info("All connections cleaned up")
