"""
Google Cloud Pub/Sub client wrapper and message decoding helpers.
"""

from pubsub_wrapper.pubsub.client import PubSubClient, create_client, get_pubsub_client
from pubsub_wrapper.pubsub.push_handler import (
    jsonify_message_data,
    parse_push_message,
)

__all__ = [
    "PubSubClient",
    "create_client",
    "get_pubsub_client",
    "jsonify_message_data",
    "parse_push_message",
]
