"""
Relay configuration

Loaded once at startup, highest priority first:
  1. command line options (passed to ``load_settings`` as overrides)
  2. environment variables
  3. a ``.env`` file in the working directory
  4. the defaults below

The values never change after startup; ``Settings.transport()`` hands the
connector an immutable ``TransportConfig`` instead of having it read the
environment itself.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_SIZE = 100 * 1024 * 1024


@dataclass(frozen=True)
class TransportConfig:
    """How upstream connections are dialed."""

    use_proxy_tunnel: bool = False
    proxy_address: str = "http://127.0.0.1:8080"
    proxy_ca_file: Optional[str] = None
    open_timeout: float = 10.0
    max_size: Optional[int] = DEFAULT_MAX_MESSAGE_SIZE


class Settings(BaseSettings):
    # ── listener ──
    HOST: str = "0.0.0.0"
    PORT: int = 9000

    # ── intercepting proxy ──
    USE_BURP: bool = False
    BURP_PROXY: str = "http://127.0.0.1:8080"
    BURP_CA_FILE: Optional[str] = None

    # ── upstream ──
    OPEN_TIMEOUT: float = 10.0
    MAX_MESSAGE_SIZE: int = DEFAULT_MAX_MESSAGE_SIZE

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("BURP_PROXY")
    @classmethod
    def _check_proxy_scheme(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("BURP_PROXY must be an http:// or https:// URL")
        return value

    @field_validator("PORT")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError("PORT must be between 0 and 65535")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    def transport(self) -> TransportConfig:
        return TransportConfig(
            use_proxy_tunnel=self.USE_BURP,
            proxy_address=self.BURP_PROXY,
            proxy_ca_file=self.BURP_CA_FILE,
            open_timeout=self.OPEN_TIMEOUT,
            max_size=self.MAX_MESSAGE_SIZE or None,
        )


def load_settings(**overrides) -> Settings:
    """Read the settings, letting non-None ``overrides`` win over the environment."""
    values = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**values)
