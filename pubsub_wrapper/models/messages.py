"""
Message models for publishing to and pulling from Pub/Sub.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


def _normalize_json_data(data: Any) -> Any:
    """Convert a pydantic model to a JSON-serializable value (or pass through)."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return data


class PubSubMessage(BaseModel):
    """A message to publish: raw payload plus string attributes."""

    data: Union[bytes, str]
    attributes: Dict[str, str] = Field(default_factory=dict)
    ordering_key: Optional[str] = None

    def to_bytes(self) -> bytes:
        if isinstance(self.data, bytes):
            return self.data
        return self.data.encode("utf-8")


class JsonMessage(BaseModel):
    """A message whose payload is JSON-encoded before publishing."""

    data: Any
    attributes: Dict[str, str] = Field(default_factory=dict)
    ordering_key: Optional[str] = None

    def to_pubsub_message(self) -> PubSubMessage:
        return PubSubMessage(
            data=json.dumps(_normalize_json_data(self.data)).encode("utf-8"),
            attributes=self.attributes,
            ordering_key=self.ordering_key,
        )


class Envelope(BaseModel):
    """A pulled message together with the ack id needed to acknowledge it."""

    ack_id: str
    message_id: str = ""
    data: bytes = b""
    attributes: Dict[str, str] = Field(default_factory=dict)
    publish_time: Optional[datetime] = None
    ordering_key: str = ""
    delivery_attempt: int = 0

    @classmethod
    def from_received_message(cls, received: Any) -> "Envelope":
        """Build an Envelope from a google.pubsub_v1 ReceivedMessage."""
        message = received.message
        return cls(
            ack_id=received.ack_id,
            message_id=message.message_id,
            data=bytes(message.data),
            attributes=dict(message.attributes),
            publish_time=message.publish_time or None,
            ordering_key=message.ordering_key or "",
            delivery_attempt=received.delivery_attempt or 0,
        )
