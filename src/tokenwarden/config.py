"""Settings for tokenwarden.

Values come from ``TOKENWARDEN_*`` environment variables (or a ``.env`` file).
The three signing secrets have no defaults: a missing, short or shared secret
raises :class:`ConfigError` when settings are first loaded, so the server
refuses to boot instead of running with a weak key.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

MIN_SECRET_BYTES = 32

LOG_LEVEL = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigError(ValueError):
    """Raised when the process must not start with the current configuration."""


class ClientConfig(BaseModel):
    """A registered public client as declared in configuration."""

    client_id: str
    client_name: str = ""
    redirect_uris: list[str] = Field(default_factory=list)
    allowed_scopes: list[str] = Field(default_factory=lambda: ["openid", "profile", "email"])
    default_scopes: list[str] = Field(default_factory=lambda: ["profile"])


class Settings(BaseSettings):
    """tokenwarden settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOKENWARDEN_",
        env_file=".env",
        extra="ignore",
    )

    environment: Literal["development", "production"] = "development"
    issuer: str = "http://localhost:8000"

    # Signing keys. Access and refresh tokens use separate keys so a leaked
    # access key cannot forge refresh tokens.
    access_token_secret: SecretStr
    refresh_token_secret: SecretStr
    session_secret: SecretStr
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"

    # Lifetimes, in seconds
    access_token_ttl: int = Field(default=3600, ge=60)
    refresh_token_ttl: int = Field(default=30 * 24 * 3600, ge=300)
    pkce_session_ttl: int = Field(default=300, ge=30, le=3600)
    authorization_code_ttl: int = Field(default=300, ge=30, le=3600)
    login_session_ttl: int = Field(default=8 * 3600, ge=60)

    # memory:// (or unset) for the embedded store, redis:// for production
    store_url: str | None = None

    clients: list[ClientConfig] = Field(default_factory=list)
    allowed_origins: list[str] = Field(default_factory=list)

    rate_limit_enabled: bool = True

    log_level: LOG_LEVEL = "INFO"
    log_json: bool | None = None
    audit_log_path: str | None = None

    @model_validator(mode="after")
    def _check_secrets(self) -> Settings:
        secrets = {
            "access_token_secret": self.access_token_secret.get_secret_value(),
            "refresh_token_secret": self.refresh_token_secret.get_secret_value(),
            "session_secret": self.session_secret.get_secret_value(),
        }
        for name, value in secrets.items():
            if len(value.encode()) < MIN_SECRET_BYTES:
                raise ValueError(f"{name} must be at least {MIN_SECRET_BYTES} bytes")
        if len(set(secrets.values())) != len(secrets):
            raise ValueError("signing secrets must be distinct from each other")
        if self.environment == "production" and not self.issuer.startswith("https://"):
            raise ValueError("issuer must use HTTPS in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def json_logs(self) -> bool:
        if self.log_json is None:
            return self.is_production
        return self.log_json

    @classmethod
    def load(cls) -> Settings:
        """Load settings from the environment, wrapping validation failures."""
        try:
            return cls()  # type: ignore[call-arg]
        except ValidationError as exc:
            raise ConfigError(f"Invalid tokenwarden configuration: {exc}") from exc


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
        logger.debug("Loaded settings for %s environment", _settings.environment)
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
