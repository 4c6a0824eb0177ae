"""Engine configuration.

Settings come from environment variables prefixed ``CONSOLE_`` with optional
``.env`` file support. The engine never reads them implicitly: a settings
instance is passed to ConversationCoordinator, and ``get_settings()`` is only
used by the HTTP adapter to build the application's coordinator.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["EngineSettings", "get_settings"]


class EngineSettings(BaseSettings):
    """Tunable engine behavior."""

    model_config = SettingsConfigDict(
        env_prefix="CONSOLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Identity of the operator this engine instance acts for
    user_id: str = "me"
    user_name: str = "You"

    temp_id_prefix: str = "temp-"
    sequential_gap_seconds: float = Field(default=60.0, gt=0)

    # Minimum age before an unconfirmed send may expire
    send_grace_period_seconds: float = Field(default=30.0, ge=0)
    disappearing_enabled: bool = False
    disappearing_timeout_hours: float = Field(default=24.0, gt=0)
    sweep_interval_seconds: float = Field(default=60.0, gt=0)

    reconciler_poll_seconds: float = Field(default=0.05, gt=0)
    log_level: str = "INFO"


@lru_cache
def get_settings() -> EngineSettings:
    """Settings loaded once from the environment."""
    return EngineSettings()
