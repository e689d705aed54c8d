"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Upstream AI processing service
    python_api_base_url: str = "http://localhost:5001"
    python_api_health_attempts: int = 3
    python_api_health_interval_ms: int = 2000
    python_api_health_timeout_ms: int = 15000
    python_api_video_timeout_ms: int = 300000
    python_api_qa_timeout_ms: int = 60000
    python_api_memory_timeout_ms: int = 5000

    # Job queue
    queue_max_concurrent_videos: int = 2
    queue_max_concurrent_qa: int = 10
    queue_job_timeout_ms: int = 300000
    queue_retry_attempts: int = 3
    queue_backoff_delay_ms: int = Field(
        default=5000,
        validation_alias=AliasChoices("queue_backoff_delay_ms", "queue_backoff_delay"),
    )
    queue_poll_interval_ms: int = 1000
    queue_video_start_delay_ms: int = 0
    queue_video_priority: int = 2
    queue_qa_priority: int = 1
    queue_job_history_limit: int = 1000

    # Service
    port: int = 8000
    log_level: str = "INFO"
    log_format: str = "text"  # "json" or "text"
    memory_threshold_mb: int = 3000
    cors_origins: str = "http://localhost:3000"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
