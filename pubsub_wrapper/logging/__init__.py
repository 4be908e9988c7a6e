"""
Logging utilities for the Pub/Sub wrapper.
"""

from .logger import (
    CloudLoggingJSONFormatter,
    ElasticsearchHandler,
    setup_logger,
    get_logger,
    get_structured_logger,
    StructuredLogger,
    log_info,
    log_warning,
    log_error,
    log_debug,
)

__all__ = [
    "CloudLoggingJSONFormatter",
    "ElasticsearchHandler",
    "setup_logger",
    "get_logger",
    "get_structured_logger",
    "StructuredLogger",
    "log_info",
    "log_warning",
    "log_error",
    "log_debug",
]
