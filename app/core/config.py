"""
Application configuration using Pydantic Settings.

Environment-based infrastructure switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test", "production"] = "local"
    DEBUG: bool = True
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./projecthub.db"

    # Storage-level retries (OperationalError, locked database, ...)
    PERSISTENCE_RETRIES: int = Field(default=3, ge=1)

    # ===========================================
    # Auth
    # ===========================================
    # Authentication lives outside this service. "mock" treats the bearer
    # token as the user ID.
    AUTH_PROVIDER: Literal["mock"] = "mock"
    AUTH_REQUIRED: bool = False

    # ===========================================
    # Approval workflow
    # ===========================================
    # Read-modify-write attempts when two approvers hit the same document
    APPROVAL_CONFLICT_RETRIES: int = Field(default=3, ge=1)
    APPROVAL_RETRY_BACKOFF_SECONDS: float = Field(default=0.05, ge=0)
    # Roles (besides the submitter) allowed to cancel an approval
    APPROVAL_CANCEL_ROLES: List[str] = Field(default=["admin"])
    # Roles allowed to edit user directory entries. While no active user
    # holds one, any caller may (first-admin bootstrap).
    DIRECTORY_ADMIN_ROLES: List[str] = Field(default=["admin"])

    # ===========================================
    # Notifications
    # ===========================================
    NOTIFICATIONS_ENABLED: bool = True

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
