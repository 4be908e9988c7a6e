"""
Configuration management for the Pub/Sub wrapper.
"""

import os
from typing import Optional


class Config:
    """Configuration class for wrapper settings."""

    # Google Cloud Pub/Sub Configuration
    # Read once at import; get_project_id reads its env fallbacks at call time
    GCP_PROJECT_ID: str = os.getenv("GCP_PROJECT_ID", "")
    PUBSUB_EMULATOR_HOST: Optional[str] = os.getenv("PUBSUB_EMULATOR_HOST")
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = os.getenv(
        "GOOGLE_APPLICATION_CREDENTIALS"
    )

    # Seconds to wait on a publish future / pull RPC
    PUBLISH_TIMEOUT: float = float(os.getenv("PUBLISH_TIMEOUT", "30"))
    PULL_TIMEOUT: float = float(os.getenv("PULL_TIMEOUT", "30"))

    # Service Configuration
    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "pubsub_wrapper")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Elasticsearch Configuration (log shipping, opt-in)
    ELASTICSEARCH_HOST: Optional[str] = os.getenv("ELASTICSEARCH_HOST")
    ELASTICSEARCH_PORT: int = int(os.getenv("ELASTICSEARCH_PORT", "9200"))
    DISABLE_ELASTICSEARCH: bool = (
        os.getenv("DISABLE_ELASTICSEARCH", "false").lower() == "true"
    )

    @classmethod
    def get_project_id(cls) -> str:
        """Resolve the GCP project id.

        Order: GCP_PROJECT_ID, then GOOGLE_CLOUD_PROJECT, then GCP_PROJECT.
        Returns an empty string when none is set.
        """
        return (
            cls.GCP_PROJECT_ID
            or os.getenv("GOOGLE_CLOUD_PROJECT")
            or os.getenv("GCP_PROJECT")
            or ""
        )

    @classmethod
    def get_elasticsearch_url(cls) -> Optional[str]:
        """Get Elasticsearch URL, or None when log shipping is not configured."""
        if not cls.ELASTICSEARCH_HOST:
            return None
        return f"http://{cls.ELASTICSEARCH_HOST}:{cls.ELASTICSEARCH_PORT}"
