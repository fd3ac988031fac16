"""
Centralized configuration using Pydantic Settings.

All environment variables are loaded and validated here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from content_pipeline.core.models import Component


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Outbound HTTP
    user_agent: str = "Content-Pipeline/1.0"
    publish_timeout: float = 30.0
    probe_timeout: float = 10.0
    discovery_timeout: float = 5.0

    # Publish recovery chain (seconds between identical retries)
    backoff_delays: list[float] = [1.0, 3.0, 5.0]

    # Publish history kept for inspection (most recent results)
    publish_history_limit: int = 1000

    # Per-destination fan-out
    max_workers: int = 4

    # Error coordination
    error_log_limit: int = 1000
    threshold_classifier: int = 10
    threshold_connection: int = 5
    threshold_transform: int = 8
    threshold_publish: int = 7
    threshold_coordinator: int = 3
    threshold_orchestrator: int = 10

    @property
    def thresholds(self) -> dict[Component, int]:
        """Failure-count threshold for each pipeline component."""
        return {
            Component.CLASSIFIER: self.threshold_classifier,
            Component.CONNECTION: self.threshold_connection,
            Component.TRANSFORM: self.threshold_transform,
            Component.PUBLISH: self.threshold_publish,
            Component.COORDINATOR: self.threshold_coordinator,
            Component.ORCHESTRATOR: self.threshold_orchestrator,
        }


# Global settings instance
settings = Settings()
