import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from pydantic import BaseModel, ValidationError

from pubsub_wrapper.models import Envelope, JsonMessage, PubSubMessage


class Order(BaseModel):
    order_id: int
    placed_at: datetime


def test_pubsub_message_to_bytes():
    assert PubSubMessage(data="héllo").to_bytes() == "héllo".encode("utf-8")
    assert PubSubMessage(data=b"\x00\x01").to_bytes() == b"\x00\x01"


def test_pubsub_message_attributes_must_be_strings():
    with pytest.raises(ValidationError):
        PubSubMessage(data=b"x", attributes={"count": object()})


def test_json_message_encodes_pydantic_models():
    order = Order(order_id=7, placed_at=datetime(2024, 1, 2, tzinfo=timezone.utc))
    message = JsonMessage(data=order, attributes={"kind": "order"}).to_pubsub_message()

    assert json.loads(message.to_bytes()) == {
        "order_id": 7,
        "placed_at": "2024-01-02T00:00:00Z",
    }
    assert message.attributes == {"kind": "order"}


def test_envelope_from_received_message():
    published = datetime(2024, 1, 2, tzinfo=timezone.utc)
    received = SimpleNamespace(
        ack_id="ack-1",
        delivery_attempt=0,
        message=SimpleNamespace(
            data=b"payload",
            attributes={"today": "friday"},
            message_id="42",
            publish_time=published,
            ordering_key="customer-9",
        ),
    )

    envelope = Envelope.from_received_message(received)

    assert envelope.ack_id == "ack-1"
    assert envelope.message_id == "42"
    assert envelope.data == b"payload"
    assert envelope.attributes == {"today": "friday"}
    assert envelope.publish_time == published
    assert envelope.ordering_key == "customer-9"
    assert envelope.delivery_attempt == 0
