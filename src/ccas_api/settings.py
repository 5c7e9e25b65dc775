"""Settings for the CCAS workflow API."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the CCAS workflow API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) is a popular
    framework for organizing, validating, and reading configuration values from a variety of sources
    including environment variables.

    This class automatically reads from:
    1. Environment variables (production - App Service configuration)
    2. .env file (local development)

    Environment variable names are treated case-insensitively, but the canonical
    names used in this project are lowercase (domain_db_connection_string, smtp_host, ...).
    """

    app_name: str = "CCAS Workflow API"
    """Service name used in logs, health responses and the OpenAPI title."""

    log_level: str = "INFO"
    """Minimum log level written to stdout."""

    # Workflow Database
    domain_db_connection_string: Optional[str] = None
    """PostgreSQL connection string for the workflow database. When unset, data endpoints answer 503."""

    db_pool_min_size: int = 2
    """Minimum number of pooled database connections."""

    db_pool_max_size: int = 10
    """Maximum number of pooled database connections."""

    db_command_timeout_seconds: float = 60
    """Statement timeout applied by asyncpg to every query."""

    # Request IDs
    request_id_timezone: str = "Asia/Kolkata"
    """IANA time zone that defines the calendar day embedded in request IDs (N_DDMMYYYY_001)."""

    # Notification Settings (SMTP)
    enable_email_notifications: bool = False
    """Send notification emails over SMTP. When disabled, notifications are recorded but not sent."""

    smtp_host: Optional[str] = None
    """SMTP server hostname for email notifications."""

    smtp_port: int = 587
    """SMTP server port (default: 587 for STARTTLS)."""

    smtp_username: Optional[str] = None
    """SMTP authentication username."""

    smtp_password: Optional[str] = None
    """SMTP authentication password."""

    smtp_use_tls: bool = True
    """Upgrade the SMTP connection with STARTTLS before authenticating."""

    smtp_timeout_seconds: float = 30
    """Socket timeout for the SMTP connection."""

    notification_from_email: str = "ccas-noreply@example.com"
    """From email address for notifications."""

    app_base_url: Optional[str] = None
    """Public URL of the CCAS web application, linked from notification emails."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables not defined in the model
        validate_default=True,
    )

    @property
    def smtp_configured(self) -> bool:
        """True when email sending is enabled and an SMTP host is set."""
        return self.enable_email_notifications and bool(self.smtp_host)
