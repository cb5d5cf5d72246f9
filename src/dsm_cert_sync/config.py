"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app), all prefixed DSM_
  - Fall back to .env file
  - Validate types and constraints at startup
  - Keep the DSM password out of argv and out of logs (SecretStr)

    DSM_URL=https://nas.local:5001
    DSM_USER=certbot
    DSM_PASSWORD=...
    DSM_DESC=nas.example.com

All configuration errors are raised when AppSettings() is constructed,
before anything touches the network.
"""

from __future__ import annotations

from pathlib import Path

import httpx
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dsm_cert_sync.domain.models import Credentials, SyncTarget

# .env lives at the repository root (src/dsm_cert_sync/config.py -> ../../.env),
# independent of the working directory.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values

    At least one of `id` / `desc` selects the DSM certificate to manage;
    when both are set the id wins.
    """

    model_config = SettingsConfigDict(
        env_prefix="DSM_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(description="URL used to reach the DSM, e.g. https://nas:5001")
    user: str = Field(description="DSM account allowed to import certificates")
    password: SecretStr = Field(description="Password of that account")

    cert: str = Field(default="/cert/tls.crt", description="Certificate file (PEM, leaf first)")
    key: str = Field(default="/cert/tls.key", description="Private key file (PEM)")
    freq_seconds: int = Field(default=3600, ge=1, description="How often to recheck")

    id: str | None = Field(default=None, description="Certificate id on the DSM")
    desc: str | None = Field(default=None, description="Certificate description on the DSM")

    http_timeout_seconds: int = Field(default=60, ge=1)
    verify_tls: bool = Field(default=False, description="Verify the DSM's TLS certificate")
    log_level: str = Field(default="INFO")

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Reject anything that is not an absolute http(s) URL."""
        try:
            url = httpx.URL(value.strip())
        except httpx.InvalidURL as e:
            raise ValueError(f"must be an absolute http(s) URL, got {value!r}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"must be an absolute http(s) URL, got {value!r}")
        return value.strip()

    @field_validator("user")
    @classmethod
    def validate_user(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("id", "desc")
    @classmethod
    def blank_is_unset(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @model_validator(mode="after")
    def require_selector(self) -> AppSettings:
        """Raise at startup unless DSM_ID or DSM_DESC is provided."""
        if self.id is None and self.desc is None:
            raise ValueError("Set DSM_ID or DSM_DESC to select the certificate to manage")
        return self

    def sync_target(self) -> SyncTarget:
        return SyncTarget(
            cert_path=self.cert,
            key_path=self.key,
            certificate_id=self.id,
            description=self.desc,
        )

    def credentials(self) -> Credentials:
        return Credentials(account=self.user, password=self.password.get_secret_value())
