"""
Utilities for decoding Pub/Sub message payloads, pulled or pushed.
"""

import base64
import binascii
import json
from typing import Any, Dict

from pubsub_wrapper.logging import get_logger
from pubsub_wrapper.result import failable

logger = get_logger(__name__)


@failable
def jsonify_message_data(message: Any) -> Any:
    """
    Decode the JSON payload of a message.

    Args:
        message: An Envelope, a google.pubsub_v1 PubsubMessage (anything with
                 a ``data`` attribute), or raw bytes/str data

    Returns:
        Success(decoded JSON value)
    """
    data = message if isinstance(message, (bytes, str)) else message.data
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data)


@failable
def parse_push_message(request_data: Dict[str, Any]) -> Any:
    """
    Parse a Pub/Sub push subscription request body.

    Expected format:
       {
           "message": {
               "data": "base64-encoded-json-string",
               "messageId": "message-id",
               "publishTime": "2023-01-01T00:00:00.000Z",
               "attributes": {...}
           },
           "subscription": "projects/.../subscriptions/..."
       }

    Returns:
        Success(parsed payload) or Failure when the body is malformed
    """
    message = request_data.get("message") if isinstance(request_data, dict) else None
    if not message or not isinstance(message, dict):
        raise ValueError("Missing 'message' field in Pub/Sub push request")

    encoded_data = message.get("data")
    if not encoded_data:
        raise ValueError("Missing 'data' field in Pub/Sub message")

    try:
        decoded_bytes = base64.b64decode(encoded_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 data: {e}")

    try:
        payload = json.loads(decoded_bytes.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"Failed to parse JSON from message data: {e}")

    logger.debug(
        f"Parsed Pub/Sub message: message_id={message.get('messageId')}, "
        f"publish_time={message.get('publishTime')}, "
        f"attributes={message.get('attributes', {})}"
    )
    return payload
