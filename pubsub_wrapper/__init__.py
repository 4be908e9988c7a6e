"""
Thin Result-returning wrapper around Google Cloud Pub/Sub.
"""

from pubsub_wrapper.models import Envelope, JsonMessage, PubSubMessage
from pubsub_wrapper.pubsub import (
    PubSubClient,
    create_client,
    get_pubsub_client,
    jsonify_message_data,
    parse_push_message,
)
from pubsub_wrapper.result import (
    Failure,
    Result,
    Success,
    failable,
    failure,
    first_failure,
    is_failure,
    is_success,
    payload,
    success,
)

__all__ = [
    "Envelope",
    "JsonMessage",
    "PubSubMessage",
    "PubSubClient",
    "create_client",
    "get_pubsub_client",
    "jsonify_message_data",
    "parse_push_message",
    "Failure",
    "Result",
    "Success",
    "failable",
    "failure",
    "first_failure",
    "is_failure",
    "is_success",
    "payload",
    "success",
]
