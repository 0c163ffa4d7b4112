"""
Shared configuration management for the CRM HTTP access layer.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    api_env: str = Field(default="local")
    api_log_level: Literal["debug", "info", "warning", "error", "critical"] = Field(default="info")

    @field_validator("api_log_level", mode="before")
    @classmethod
    def _lower_log_level(cls, value):
        return value.lower() if isinstance(value, str) else value


class ApiSettings(BaseConfig):
    """Options recognized by the request layer, read from the environment."""

    # Endpoints
    api_base_url: str = Field(default="")
    api_base_url_fallback: str = Field(default="")

    # Retry policy
    api_max_retries: int = Field(default=0, ge=0)
    api_retry_backoff: Literal["none", "fixed", "linear", "exponential"] = Field(default="none")
    api_retry_base_delay: float = Field(default=0.5, ge=0.0)
    api_retry_max_delay: float = Field(default=10.0, ge=0.0)
    api_retry_jitter: bool = Field(default=False)
    api_retry_unauthorized: bool = Field(default=False)

    # Transport
    api_transport_timeout: float = Field(default=30.0, gt=0.0)

    # Incident simulation
    api_bypass_mode: bool = Field(default=False)

    # Session handling
    api_login_path: str = Field(default="/login")
    api_storage_path: Optional[str] = Field(default=None)

    # Telemetry
    api_telemetry_queue_size: int = Field(default=1000, gt=0)

    def resolved_base_url(self) -> str:
        """Primary base URL, else the fallback, without a trailing slash."""
        base = self.api_base_url or self.api_base_url_fallback
        return base.rstrip("/")

    def build_url(self, path: str) -> str:
        """Prefix the base URL onto a path, normalizing the leading slash."""
        clean_path = path if path.startswith("/") else f"/{path}"
        base = self.resolved_base_url()
        if not base:
            return clean_path
        return f"{base}{clean_path}"


@lru_cache(maxsize=1)
def get_settings() -> ApiSettings:
    """Get the process-wide request layer configuration."""
    return ApiSettings()
