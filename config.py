"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Sub-configs are plain BaseSettings classes so each concern can be
instantiated on its own in tests; AppSettings composes them.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "download-gates"


class SoundCloudSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    soundcloud_client_id: str = ""
    soundcloud_client_secret: str = ""
    soundcloud_redirect_uri: str = ""

    soundcloud_api_base: str = "https://api.soundcloud.com"
    soundcloud_auth_base: str = "https://secure.soundcloud.com"

    @property
    def is_configured(self) -> bool:
        return bool(self.soundcloud_client_id and self.soundcloud_client_secret)


class GateSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    oauth_state_ttl_seconds: int = 900
    download_token_ttl_seconds: int = 86400

    # Upper bound for each best-effort platform call (repost, follow, ...)
    side_effect_timeout_seconds: float = 5.0

    buy_link_title: str = "Download Free Track"

    # Expired oauth-states rows are swept by a TTL index after this window
    oauth_state_retention_seconds: int = 86400


class PixelSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    facebook_graph_api_version: str = "v19.0"
    tiktok_events_url: str = "https://business-api.tiktok.com/open_api/v1.3/event/track/"
    pixel_timeout_seconds: float = 5.0


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "https://thebackstage.app"
    app_name: str = "download-gate"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    soundcloud: Optional[SoundCloudSettings] = None
    gate: Optional[GateSettings] = None
    pixel: Optional[PixelSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        self.app_url = self.app_url.rstrip("/")

        if self.db is None:
            self.db = DatabaseSettings()
        if self.soundcloud is None:
            self.soundcloud = SoundCloudSettings()
        if self.gate is None:
            self.gate = GateSettings()
        if self.pixel is None:
            self.pixel = PixelSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
