"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with ORDERHUB_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: the settings object is frozen. It is built once at process start and
handed to the app factories; request handlers read it from app.state and
never mutate it.
"""

from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEVELOPMENT_SIGNING_KEY = "OrderHub-Super-Secret-Key-For-Development-Only-32Chars!"
MIN_SIGNING_KEY_LENGTH = 32


class Settings(BaseSettings):
    """All app configuration. Set via ORDERHUB_* env vars."""

    model_config = SettingsConfigDict(env_prefix="ORDERHUB_", frozen=True)

    # Server
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 7071
    hub_host: str = "0.0.0.0"
    hub_port: int = 5000

    # Database
    database_url: str = "sqlite+aiosqlite:///./orderhub.db"
    seed_demo_data: bool = True

    # Auth
    jwt_signing_key: str = Field(default=DEVELOPMENT_SIGNING_KEY, repr=False)
    jwt_issuer: str = "OrderHub"
    jwt_audience: str = "OrderHub-API"
    jwt_algorithm: str = "HS256"
    token_lifetime_minutes: int = 60
    skip_jwt_validation: bool = False  # trust an upstream gateway that already validated
    bcrypt_rounds: int = 12
    authorization_policy: Literal["admin_delete", "owner_or_admin", "authenticated"] = (
        "admin_delete"
    )

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5001",
        "http://localhost:8080",
    ]

    # Security headers
    assume_https: bool = False  # behind a TLS-terminating proxy; always send HSTS

    # Notifications (API → hub)
    notification_mode: Literal["http", "disabled"] = "http"
    hub_url: str = "http://localhost:5000"
    internal_api_key: Optional[str] = Field(default=None, repr=False)
    broadcast_retries: int = 3
    broadcast_backoff_seconds: float = 2.0  # delay before retry n is base ** n
    broadcast_timeout_seconds: float = 10.0
    broadcast_in_background: bool = True

    # Hub
    hub_require_auth: bool = False
    hub_send_timeout_seconds: float = 5.0  # per-socket; a stalled client is skipped

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @model_validator(mode="after")
    def validate_auth_settings(self):
        """Refuse to start with an unusable token configuration."""
        if len(self.jwt_signing_key) < MIN_SIGNING_KEY_LENGTH:
            raise ValueError(
                f"ORDERHUB_JWT_SIGNING_KEY must be at least {MIN_SIGNING_KEY_LENGTH} "
                "characters for HMAC signatures."
            )
        if not self.jwt_issuer.strip() or not self.jwt_audience.strip():
            raise ValueError(
                "ORDERHUB_JWT_ISSUER and ORDERHUB_JWT_AUDIENCE must be configured."
            )
        if not self.is_development and self.jwt_signing_key == DEVELOPMENT_SIGNING_KEY:
            raise ValueError(
                "ORDERHUB_JWT_SIGNING_KEY must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        if self.token_lifetime_minutes <= 0:
            raise ValueError("ORDERHUB_TOKEN_LIFETIME_MINUTES must be positive.")
        return self


# Singleton used by the default app instances and the CLI
settings = Settings()
