"""
Configuration for the quota notifier.

Each concern gets its own pydantic-settings group with a dedicated
environment prefix, aggregated by ``Settings``:

- QUOTA_ALERT_*      threshold, cooldown and throttle scope
- QUOTA_SCHEDULER_*  polling period and startup delay
- QUOTA_MAIL_*       active delivery channel and its transport settings
- QUOTA_CF_*         Cloud Foundry / UAA endpoints and credentials
- QUOTA_STORAGE_*    throttle store backend and location
- QUOTA_LOG_*        log level and HTTP request logging
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


ThrottleScope = Literal["recipient", "organization"]
ChannelName = Literal["smtp", "http"]
StorageBackend = Literal["sqlite", "memory"]


class AlertSettings(BaseSettings):
    """Alert threshold and resend suppression."""

    model_config = SettingsConfigDict(env_prefix="QUOTA_ALERT_", extra="ignore")

    threshold_percent: int = Field(default=80, ge=0, le=1000, description="Inclusive percent-used lower bound")
    cooldown_hours: int = Field(default=24, ge=0, description="Minimum hours between mails to one recipient")
    throttle_scope: ThrottleScope = Field(
        default="recipient",
        description="'recipient' keys cooldowns by email; 'organization' keys them by (org, email)",
    )
    max_concurrency: int = Field(default=4, ge=1, le=64, description="Organizations evaluated in parallel")
    team_name: str = Field(default="The Platform Ops Team", min_length=1)


class SchedulerSettings(BaseSettings):
    """Pass scheduling."""

    model_config = SettingsConfigDict(env_prefix="QUOTA_SCHEDULER_", extra="ignore")

    period_seconds: float = Field(default=3600.0, gt=0)
    initial_delay_seconds: float = Field(default=2.0, ge=0)


class MailSettings(BaseSettings):
    """Delivery channel selection. Exactly one channel is active per deployment."""

    model_config = SettingsConfigDict(env_prefix="QUOTA_MAIL_", extra="ignore")

    channel: ChannelName = "smtp"
    sender: str = Field(default="pcfops@example.com", pattern=r"^[^@\s]+@[^@\s]+$")
    subject: str = Field(default="PCF org about to exceed quota", min_length=1)
    timeout: float = Field(default=10.0, gt=0)

    # SMTP
    smtp_host: str = "localhost"
    smtp_port: int = Field(default=25, ge=1, le=65535)
    smtp_username: str | None = None
    smtp_password: SecretStr | None = None
    smtp_use_tls: bool = False
    smtp_use_ssl: bool = False

    # HTTP email API (SendGrid v3 compatible)
    api_url: str = "https://api.sendgrid.com/v3/mail/send"
    api_key: SecretStr | None = None

    @model_validator(mode="after")
    def _check_channel(self) -> "MailSettings":
        if self.channel == "http" and self.api_key is None:
            raise ValueError("QUOTA_MAIL_API_KEY is required when channel is 'http'")
        if self.smtp_use_tls and self.smtp_use_ssl:
            raise ValueError("smtp_use_tls and smtp_use_ssl are mutually exclusive")
        return self


def _not_paired(first: object, second: object) -> bool:
    return (first is None) != (second is None)


class CloudFoundrySettings(BaseSettings):
    """Tenant API and identity service endpoints plus credentials."""

    model_config = SettingsConfigDict(env_prefix="QUOTA_CF_", extra="ignore")

    api_url: str | None = None
    uaa_url: str | None = None
    organization: str | None = Field(default=None, description="Only evaluate this organization name")

    client_id: str = "cf"
    client_secret: SecretStr | None = None
    username: str | None = None
    password: SecretStr | None = None
    access_token: SecretStr | None = None
    refresh_token: SecretStr | None = None

    skip_ssl_validation: bool = False
    timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_credentials(self) -> "CloudFoundrySettings":
        if (self.username or self.password) and (self.access_token or self.refresh_token):
            raise ValueError("username/password and access_token/refresh_token can not be used together")
        if _not_paired(self.username, self.password):
            raise ValueError("username and password must be provided together")
        if _not_paired(self.access_token, self.refresh_token):
            raise ValueError("access_token and refresh_token must be provided together")
        return self

    @property
    def has_credentials(self) -> bool:
        return (self.username is not None) or (self.refresh_token is not None) or (self.client_secret is not None)


class StorageSettings(BaseSettings):
    """Throttle store backend."""

    model_config = SettingsConfigDict(env_prefix="QUOTA_STORAGE_", extra="ignore")

    backend: StorageBackend = "sqlite"
    base_dir: Path = Field(default_factory=lambda: Path.home() / ".quota-notifier")
    db_filename: str = Field(default="throttle.db", min_length=1)

    @property
    def db_path(self) -> Path:
        return self.base_dir / self.db_filename


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="QUOTA_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    verbose_http: bool = False


class Settings(BaseSettings):
    """All configuration groups."""

    # Bare MAIL or LOG variables must never be parsed as a group
    model_config = SettingsConfigDict(env_prefix="QUOTA_", extra="ignore")

    alert: AlertSettings = Field(default_factory=AlertSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    mail: MailSettings = Field(default_factory=MailSettings)
    cloudfoundry: CloudFoundrySettings = Field(default_factory=CloudFoundrySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    log: LoggingSettings = Field(default_factory=LoggingSettings)

    def check_ready(self) -> None:
        """Verify the settings needed to start scheduling are present.

        Raises:
            ConfigurationError: if the tenant API, identity service or
                credentials are not configured.
        """
        cf = self.cloudfoundry
        if not cf.api_url:
            raise ConfigurationError("QUOTA_CF_API_URL is required")
        if not cf.uaa_url:
            raise ConfigurationError("QUOTA_CF_UAA_URL is required")
        if not cf.has_credentials:
            raise ConfigurationError(
                "No credentials configured: set QUOTA_CF_USERNAME/PASSWORD, "
                "QUOTA_CF_ACCESS_TOKEN/REFRESH_TOKEN or QUOTA_CF_CLIENT_SECRET"
            )


def load_settings() -> Settings:
    """Load settings from the environment, converting validation errors.

    Raises:
        ConfigurationError: if any setting fails validation.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
