"""
Configuration management for callguard.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CallControlSettings(BaseSettings):
    """Defaults applied when a policy decorator omits an argument."""

    model_config = SettingsConfigDict(
        env_prefix="CALLGUARD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Temporal policies (seconds)
    debounce_delay: float = Field(default=0.3, ge=0)
    throttle_delay: float = Field(default=0.3, ge=0)
    superseded_policy: str = Field(default="reject")

    # Resilience
    retry_attempts: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=0.5, ge=0)

    # Result cache
    cache_failures: bool = Field(default=False)

    # Observability
    metrics_enabled: bool = Field(default=True)


def get_settings(**overrides) -> CallControlSettings:
    """Get callguard settings, reading the environment on every call."""
    return CallControlSettings(**overrides)
