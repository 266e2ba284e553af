"""
WebSocket Protocol Definitions

Defines the client-facing frames of the gateway. Every frame is a JSON
object tagged by its ``event`` name; the names are a compatibility surface
shared with existing clients and must not change.

@.architecture
Incoming: ws/handlers.py, ws/hub.py, ws/bridge.py --- {raw JSON text from clients, event models to send}
Processing: decode_client_frame(), encode(), Pydantic model validation --- {3 jobs: data_validation, message_parsing, serialization}
Outgoing: ws/handlers.py, ws/hub.py, Frontend (WebSocket) --- {InputEvent, JSON text frames}

Frames:
    client -> server
        {"event": "input", "data": "Hello"}
    server -> client
        {"event": "response", "data": "...", "id": "<message id>"}
        {"event": "balance", "data": "123456789"}
        {"event": "ack", "data": 200, "id": "<message id>"}
        {"event": "error", "data": "Authentication failed: Missing auth token"}
"""

import json
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from core.errors import MalformedFrame


class EventName(str, Enum):
    """Event names on the wire"""
    INPUT = "input"
    RESPONSE = "response"
    BALANCE = "balance"
    ACK = "ack"
    ERROR = "error"


class BaseEvent(BaseModel):
    """Base frame schema"""
    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    id: Optional[str] = None


class InputEvent(BaseEvent):
    """User input from client to server."""
    event: Literal["input"] = "input"
    data: str

    @field_validator('data')
    @classmethod
    def data_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Input cannot be empty')
        if len(v) > MAX_INPUT_LENGTH:
            raise ValueError(f'Input exceeds {MAX_INPUT_LENGTH} characters')
        return v


class ResponseEvent(BaseEvent):
    """Worker response or server notice delivered to a connection."""
    event: Literal["response"] = "response"
    data: str


class BalanceEvent(BaseEvent):
    """Balance snapshot in base units, as a decimal string."""
    event: Literal["balance"] = "balance"
    data: str

    @classmethod
    def from_balance(cls, balance: int) -> "BalanceEvent":
        return cls(data=str(balance))


class AckEvent(BaseEvent):
    """Synchronous acknowledgment of an input (HTTP-style status)."""
    event: Literal["ack"] = "ack"
    data: int


class ErrorEvent(BaseEvent):
    """Rejection reason, sent once before the socket is closed."""
    event: Literal["error"] = "error"
    data: str


def encode(event: BaseEvent) -> str:
    """Serialize a frame to JSON text."""
    return event.model_dump_json(exclude_none=True)


def decode_client_frame(text: str) -> InputEvent:
    """
    Parse a client frame.

    Raises:
        MalformedFrame: not JSON, not an object, unknown event or invalid data
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedFrame(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedFrame("Frame must be a JSON object")

    event = payload.get("event")
    if event != EventName.INPUT.value:
        raise MalformedFrame(f"Unsupported client event: {event!r}")

    try:
        return InputEvent(**payload)
    except ValidationError as e:
        raise MalformedFrame(f"Invalid input frame: {e.errors()[0].get('msg')}") from e


# Protocol constants
MAX_INPUT_LENGTH = 10000
WS_SEND_TIMEOUT = 3.0  # Timeout for sending to a single connection
WS_FANOUT_TIMEOUT = 5.0  # Timeout for delivering one event to all of an identity's connections
CLOSE_CODE_REJECTED = 4401  # Admission rejected
CLOSE_CODE_POLICY = 1008  # Origin not allowed
