"""Application settings and configuration.

This module defines all configuration options for the WeCom relay.
Settings are loaded from environment variables (or an ``.env`` file) with
sensible defaults; every upstream credential is optional so the process can
start with only the routes it is configured for.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Relay settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Routes that need a missing value raise ``ConfigError`` at request time.
    """

    # Application metadata
    app_name: str = Field(default="WeCom Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server bootstrap
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    max_body_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_BODY_BYTES")

    # Bearer secret protecting the internal (backend -> relay) routes
    proxy_shared_secret: str | None = Field(default=None, alias="PROXY_SHARED_SECRET")

    # Backend function host
    supabase_inbound_forward_url: str | None = Field(
        default=None,
        alias="SUPABASE_INBOUND_FORWARD_URL",
    )
    supabase_functions_url: str | None = Field(default=None, alias="SUPABASE_FUNCTIONS_URL")

    # WeCom credentials
    wecom_api_base_url: str = Field(
        default="https://qyapi.weixin.qq.com",
        alias="WECOM_API_BASE_URL",
    )
    wecom_corp_id: str | None = Field(default=None, alias="WECOM_CORP_ID")
    wecom_secret: str | None = Field(default=None, alias="WECOM_SECRET")
    wecom_agent_id: str | None = Field(default=None, alias="WECOM_AGENT_ID")
    wecom_kf_secret: str | None = Field(default=None, alias="WECOM_KF_SECRET")

    # Callback verification (token + EncodingAESKey from the WeCom console)
    wecom_token: str | None = Field(default=None, alias="WECOM_TOKEN")
    wecom_encoding_aes_key: str | None = Field(default=None, alias="WECOM_ENCODING_AES_KEY")

    # Token cache safety margins, subtracted from WeCom's expires_in
    access_token_margin_seconds: int = Field(default=60, alias="ACCESS_TOKEN_MARGIN_SECONDS")
    kf_access_token_margin_seconds: int = Field(
        default=300,
        alias="KF_ACCESS_TOKEN_MARGIN_SECONDS",
    )

    http_timeout_seconds: float = Field(default=10.0, alias="HTTP_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def local_handshake_enabled(self) -> bool:
        """Return True when callback verification can be answered locally.

        Without both the token and the EncodingAESKey the relay falls back to
        forwarding the verification request to the backend.
        """
        return bool(self.wecom_token and self.wecom_encoding_aes_key)


settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
