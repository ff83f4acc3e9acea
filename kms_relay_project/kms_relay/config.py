"""
Runtime configuration for the relay.

Values are read from the process environment (and an optional ``.env``
file) once, when the application is created.  The resulting
``Settings`` object is frozen and handed to every component that needs
it, so nothing below the route layer touches ``os.environ``.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Credentials.  Left empty when unset so the app still boots; the
    # IAM endpoint then rejects the exchange and callers get a 502.
    ibm_api_key: str = Field(default="", repr=False)
    key_protect_instance: str = ""

    iam_token_url: str = "https://iam.cloud.ibm.com/identity/token"
    kms_endpoint: str = "https://us-south.kms.cloud.ibm.com"
    # Seconds.  ``None`` waits forever on IAM and Key Protect.
    kms_http_timeout: Optional[float] = None

    log_level: str = "INFO"
    log_json: bool = True

    host: str = "0.0.0.0"
    port: int = 3000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("kms_http_timeout", mode="before")
    @classmethod
    def _blank_timeout_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def kms_base_url(self) -> str:
        return self.kms_endpoint.rstrip("/")

    def missing_credentials(self) -> list:
        """Return the env var names of credentials that are not set."""
        missing = []
        if not self.ibm_api_key:
            missing.append("IBM_API_KEY")
        if not self.key_protect_instance:
            missing.append("KEY_PROTECT_INSTANCE")
        return missing


def get_settings() -> Settings:
    return Settings()
