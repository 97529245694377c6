"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
Settings are read once at process start; nothing reloads them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .enums import BusBackend, LogFormat, ServiceRole


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class HttpConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3001


class BusConfig(BaseModel):
    backend: BusBackend = BusBackend.REDIS
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    channel_prefix: str = "events:"
    socket_timeout: float = 5.0

    @property
    def redis_url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class SecurityConfig(BaseModel):
    bcrypt_rounds: int = 12
    token_bytes: int = 32
    min_password_length: int = 6


class GatewayConfig(BaseModel):
    identity_url: str = "http://localhost:3001"
    profile_url: str = "http://localhost:3002"
    timeout_seconds: float = 10.0


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.JSON


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level service settings.

    Loaded from TOML config files, overridden by environment variables
    (``USERSYNC_HTTP__PORT=3005``).
    """

    service: ServiceRole = ServiceRole.IDENTITY

    http: HttpConfig = Field(default_factory=HttpConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "USERSYNC_", "env_nested_delimiter": "__"}

    def validate_security(self) -> None:
        """Reject settings that would make credential handling unusable."""
        from .errors import ConfigError

        if not 4 <= self.security.bcrypt_rounds <= 31:
            raise ConfigError(
                f"security.bcrypt_rounds must be in [4, 31], "
                f"got {self.security.bcrypt_rounds}"
            )
        if self.security.token_bytes < 16:
            raise ConfigError("security.token_bytes must be at least 16")


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.  Nested sections
            are merged key by key rather than replaced.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value

    return Settings(**data)
