"""
WebSocket Layer - Real-time gateway between clients and the worker tier

Components:
- hub.py: WebSocketHub for admission, connection lifecycle and delivery
- registry.py: SubscriptionRegistry mapping identities to connections
- bridge.py: FanoutBridge relaying worker responses to connections
- handlers.py: MessageHandler for inbound client frames
- protocols.py: Frame definitions and encode/decode

Usage:
    from ws import WebSocketHub

    @app.websocket("/")
    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        connection = await hub.connect(ws, token, address)
        if connection is None:
            return
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
                await hub.handle_text(connection, message.get("text"))
        finally:
            await hub.disconnect(connection)
"""

from .hub import WebSocketHub, Connection
from .registry import SubscriptionRegistry
from .bridge import FanoutBridge
from .handlers import MessageHandler
from .protocols import (
    EventName,
    InputEvent,
    ResponseEvent,
    BalanceEvent,
    AckEvent,
    ErrorEvent,
    encode,
    decode_client_frame,
)

__all__ = [
    # Connection Management
    "WebSocketHub",
    "Connection",
    "SubscriptionRegistry",

    # Message Processing
    "FanoutBridge",
    "MessageHandler",

    # Protocols
    "EventName",
    "InputEvent",
    "ResponseEvent",
    "BalanceEvent",
    "AckEvent",
    "ErrorEvent",
    "encode",
    "decode_client_frame",
]
