"""
Application configuration using pydantic-settings.
Loads configuration from environment variables and .env file.

The backup schedule is deliberately not part of these settings: it lives in
the database settings store so operators can change it without a restart.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Supports loading from .env file for local development.
    """

    # Database Configuration
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./billing.db",
        description="Database URL (postgresql:// is rewritten to postgresql+asyncpg://)"
    )

    # Backup storage
    BACKUP_DIR: str = Field(
        default="backups",
        description="Root directory where tenant backup archives are stored"
    )
    BACKUP_EXPORT_DIR: Optional[str] = Field(
        default=None,
        description="Directory receiving copies of archives when export_to_desktop is requested"
    )
    BACKUP_TENANT_TIMEOUT_SECONDS: int = Field(
        default=1800,
        ge=0,
        description="Timeout for a single tenant backup; 0 disables the timeout"
    )

    # Automation / notifications
    AUTOMATION_WEBHOOK_URL: Optional[str] = Field(
        default=None,
        description="Webhook receiving automation events (log-only when unset)"
    )
    AUTOMATION_WEBHOOK_TIMEOUT: float = Field(
        default=10.0,
        description="Webhook request timeout in seconds"
    )

    # Background jobs
    BACKGROUND_JOBS_ENABLED: bool = Field(
        default=True,
        description="Start the backup scheduler and trial expiry check on startup"
    )

    # Security Configuration
    ADMIN_PASSWORD: Optional[str] = Field(
        default=None,
        description="Password for the operator endpoints (X-Admin-Password header)"
    )

    # Environment
    ENVIRONMENT: str = Field(
        default="development",
        description="Application environment: development, staging, production"
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        description="Version recorded in backup manifests"
    )

    # Logging Configuration
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def database_url_sync(self) -> str:
        """Get synchronous database URL for Alembic migrations."""
        return (
            self.DATABASE_URL
            .replace("postgresql+asyncpg://", "postgresql://")
            .replace("sqlite+aiosqlite://", "sqlite://")
        )

    def __repr__(self) -> str:
        """
        Custom repr that masks sensitive values.

        Prevents accidental exposure of credentials in logs.
        """
        sensitive_fields = {
            "DATABASE_URL",
            "ADMIN_PASSWORD",
            "AUTOMATION_WEBHOOK_URL",
        }

        fields = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if field_name in sensitive_fields and value:
                if isinstance(value, str) and len(value) > 8:
                    masked = value[:4] + "***" + value[-4:]
                else:
                    masked = "***"
                fields.append(f"{field_name}={masked!r}")
            else:
                fields.append(f"{field_name}={value!r}")

        return f"Settings({', '.join(fields)})"


# Create singleton settings instance
settings = Settings()
