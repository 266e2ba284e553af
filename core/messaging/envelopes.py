"""
Bus envelopes exchanged with the worker tier.

Inbound envelopes keep the camelCase keys the workers already read
(``userId``, ``message``). Outbound response events are accepted in either
camelCase or snake_case.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.errors import MalformedEvent


class InboundEnvelope(BaseModel):
    """A user message on its way to the worker tier."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(alias="userId")
    message_id: str = Field(alias="messageId")
    content: str = Field(alias="message")
    sender: Literal["user"] = "user"
    created_at: str = Field(
        alias="createdAt",
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )

    @classmethod
    def create(cls, user_id: str, content: str) -> "InboundEnvelope":
        return cls(user_id=user_id, message_id=str(uuid4()), content=content)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class OutboundResponseEvent(BaseModel):
    """A worker response addressed to one identity."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"), min_length=1)
    message_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("message_id", "messageId")
    )
    content: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("content", "response", "message")
    )

    @model_validator(mode="after")
    def require_body(self) -> "OutboundResponseEvent":
        if self.message_id is None and self.content is None:
            raise ValueError("event carries neither message id nor content")
        return self

    @property
    def text(self) -> str:
        """What the client sees: the content, or the message id when there is none."""
        return self.content if self.content is not None else self.message_id

    @classmethod
    def parse(cls, payload: Any) -> "OutboundResponseEvent":
        """
        Parse a raw bus payload.

        Raises:
            MalformedEvent: not JSON, not an object, or missing fields
        """
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedEvent("Payload is not UTF-8") from e

        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise MalformedEvent(f"Payload is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedEvent("Payload is not a JSON object")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedEvent(f"Invalid response event: {e.errors()[0].get('msg')}") from e
