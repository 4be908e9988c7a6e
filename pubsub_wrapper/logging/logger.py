"""
Logging configuration and utilities.
"""

import inspect
import json
import logging
import os
import socket
import sys
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from elasticsearch import Elasticsearch

from pubsub_wrapper.config import Config


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CloudLoggingJSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON for Cloud Logging when the message carries structured data.
    Cloud Logging parses JSON from stdout if the line starts with '{'.
    """

    def format(self, record):
        message = record.getMessage()
        if message.strip().startswith("{"):
            try:
                parsed = json.loads(message)
                log_entry = {
                    "severity": record.levelname,
                    "message": parsed.get("message", str(message)),
                    "timestamp": _utc_timestamp(),
                    "service": record.name,
                }
                for key, value in parsed.items():
                    if key != "message":
                        log_entry[key] = value
                return json.dumps(log_entry)
            except (json.JSONDecodeError, ValueError, TypeError, AttributeError):
                pass

        return super().format(record)


class ElasticsearchHandler(logging.Handler):
    """Handler that indexes log records into Elasticsearch."""

    def __init__(self, es_client, index_pattern="logs-{date}"):
        super().__init__()
        self.es_client = es_client
        self.index_pattern = index_pattern
        self.hostname = socket.gethostname()
        self._processing = False  # Guards against recursion through the ES client's own logging

    def build_document(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Build the Elasticsearch document for a record.

        Structured (JSON) messages keep all of their fields at the top level.
        """
        raw_message = record.getMessage()
        parsed_json = None
        if raw_message.strip().startswith("{"):
            try:
                parsed_json = json.loads(raw_message)
            except (json.JSONDecodeError, ValueError, TypeError):
                parsed_json = None

        if isinstance(parsed_json, dict):
            doc = dict(parsed_json)
        else:
            doc = {"message": self.format(record)}

        if not doc.get("timestamp"):
            doc["timestamp"] = _utc_timestamp()
        doc.setdefault("level", record.levelname)
        doc.setdefault("severity", record.levelname)
        if not doc.get("service"):
            doc["service"] = record.name
        doc["hostname"] = self.hostname
        return doc

    def emit(self, record):
        """Emit a log record to Elasticsearch."""
        if self._processing:
            return

        self._processing = True
        try:
            date_str = datetime.now(timezone.utc).strftime("%Y.%m.%d")
            index_name = self.index_pattern.format(date=date_str)
            self.es_client.index(index=index_name, document=self.build_document(record))
        except Exception as e:
            # Print rather than log to avoid recursing into this handler
            print(f"[ELASTICSEARCH_HANDLER] Error indexing log: {e}", file=sys.stderr)
        finally:
            self._processing = False


def _should_skip_elasticsearch() -> bool:
    return (
        not Config.ELASTICSEARCH_HOST
        or Config.DISABLE_ELASTICSEARCH
        or os.getenv("K_SERVICE") is not None  # Cloud Run ships stdout to Cloud Logging
    )


def setup_logger(
    service_name: Optional[str] = None, log_level: Optional[str] = None
) -> logging.Logger:
    """Setup and configure the root logger, returning a named logger."""

    name = service_name or Config.SERVICE_NAME
    level = getattr(logging, (log_level or Config.LOG_LEVEL).upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = CloudLoggingJSONFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Host applications (uvicorn, pytest) may already own a console handler
    has_console_handler = any(
        isinstance(h, logging.StreamHandler) for h in root_logger.handlers
    )
    if not has_console_handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    has_elasticsearch_handler = any(
        isinstance(h, ElasticsearchHandler) for h in root_logger.handlers
    )
    if not _should_skip_elasticsearch() and not has_elasticsearch_handler:
        try:
            es_client = Elasticsearch(
                [Config.get_elasticsearch_url()],
                verify_certs=False,
                ssl_show_warn=False,
                request_timeout=2,
                max_retries=0,
            )
            # Only attach the handler when the cluster answers
            if es_client.ping(request_timeout=1):
                es_handler = ElasticsearchHandler(es_client)
                es_handler.setLevel(level)
                es_handler.setFormatter(formatter)
                root_logger.addHandler(es_handler)
            else:
                print("[ELASTICSEARCH] Ping failed, handler not added", file=sys.stderr)
        except Exception as e:
            print(f"[ELASTICSEARCH] Logging not available: {e}", file=sys.stderr)

    return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name, configuring the root logger on first use."""
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        setup_logger()
    return logger


class StructuredLogger:
    """
    Wrapper around logger that adds structured fields for Google Cloud Logging.
    This allows filtering by fields like topic or subscription in Cloud Logging Explorer.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _format_structured_message(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        **kwargs,
    ) -> str:
        """
        Format message with structured fields for Cloud Logging.

        Without structured fields the message is returned as-is. Otherwise the
        result is a JSON object that CloudLoggingJSONFormatter expands into a
        Cloud Logging entry; correlation_id is also prepended to the readable message.
        """
        formatted_message = message
        if correlation_id:
            formatted_message = f"[{correlation_id}] {message}"

        fields = {key: value for key, value in kwargs.items() if value is not None}
        if correlation_id or fields:
            structured_data: Dict[str, Any] = {"message": formatted_message}
            if correlation_id:
                structured_data["correlation_id"] = correlation_id
            structured_data.update(fields)
            return json.dumps(structured_data, default=str)
        return formatted_message

    def debug(self, message: str, correlation_id: Optional[str] = None, **kwargs):
        """Log debug message with optional structured fields."""
        self.logger.debug(
            self._format_structured_message(message, correlation_id, **kwargs)
        )

    def info(self, message: str, correlation_id: Optional[str] = None, **kwargs):
        """Log info message with optional structured fields."""
        self.logger.info(
            self._format_structured_message(message, correlation_id, **kwargs)
        )

    def warning(self, message: str, correlation_id: Optional[str] = None, **kwargs):
        """Log warning message with optional structured fields."""
        self.logger.warning(
            self._format_structured_message(message, correlation_id, **kwargs)
        )

    def error(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        exc_info: bool = False,
        **kwargs,
    ):
        """Log error message with optional structured fields."""
        self.logger.error(
            self._format_structured_message(message, correlation_id, **kwargs),
            exc_info=exc_info,
        )

    def __getattr__(self, name: str):
        """Delegate other attributes to the underlying logger."""
        return getattr(self.logger, name)


def get_structured_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Usage:
        logger = get_structured_logger(__name__)
        logger.info("Published message", topic="orders")

    In Cloud Logging Explorer, you can then filter by:
        jsonPayload.topic="orders"
    """
    return StructuredLogger(get_logger(name))


def _caller_module(logger_name: Optional[str]) -> str:
    if logger_name is not None:
        return logger_name
    frame = inspect.currentframe()
    try:
        # Skip this helper and the log_* function that called it
        caller_frame = frame.f_back.f_back
        return caller_frame.f_globals.get("__name__", "root")
    finally:
        del frame


def log_debug(
    message: str, correlation_id: str = "", logger_name: Optional[str] = None, **kwargs
):
    """Log a debug message with structured fields (see log_info)."""
    get_structured_logger(_caller_module(logger_name)).debug(
        message, correlation_id=correlation_id, **kwargs
    )


def log_info(
    message: str, correlation_id: str = "", logger_name: Optional[str] = None, **kwargs
):
    """
    Log an info message with structured fields.

    Args:
        message: The log message (resource names go in kwargs, not in the string)
        correlation_id: Correlation id for request tracing (can be empty string)
        logger_name: Optional logger name (defaults to caller's module name)
        **kwargs: Additional structured fields to include in the log (e.g., topic)
    """
    get_structured_logger(_caller_module(logger_name)).info(
        message, correlation_id=correlation_id, **kwargs
    )


def log_warning(
    message: str, correlation_id: str = "", logger_name: Optional[str] = None, **kwargs
):
    """Log a warning message with structured fields (see log_info)."""
    get_structured_logger(_caller_module(logger_name)).warning(
        message, correlation_id=correlation_id, **kwargs
    )


def log_error(
    message: str,
    correlation_id: str = "",
    logger_name: Optional[str] = None,
    exc_info: bool = False,
    **kwargs,
):
    """Log an error message with structured fields (see log_info)."""
    get_structured_logger(_caller_module(logger_name)).error(
        message, correlation_id=correlation_id, exc_info=exc_info, **kwargs
    )
