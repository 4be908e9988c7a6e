"""
Data models for messages crossing the wrapper.
"""

from .messages import PubSubMessage, JsonMessage, Envelope

__all__ = [
    "PubSubMessage",
    "JsonMessage",
    "Envelope",
]
