"""
Application configuration using Pydantic settings
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # Database - PostgreSQL
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Application
    APP_NAME: str = "GitHub App Handshake"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Routes for the app installation handshake
    GITHUB_APP_ROUTE_PREFIX: str = "/.auth/githubapp"
    GITHUB_DEFAULT_BASE_URL: str = "https://github.com"
    # Public URL GitHub and browsers reach this server on; empty uses the request URL
    EXTERNAL_URL: str = ""

    # State tokens
    GITHUB_APP_STATE_TTL_SECONDS: int = 60 * 60  # 1 hour
    GITHUB_APP_STATE_ENTROPY_BYTES: int = 128
    GITHUB_APP_STATE_BACKEND: str = "database"  # "database" or "memory"

    # GitHub needs a few seconds before a freshly created app (or installation)
    # is visible through its API. Both values were determined empirically.
    GITHUB_APP_INSTALL_PAGE_DELAY_SECONDS: float = 3.0
    GITHUB_APP_INSTALLATION_DELAY_SECONDS: float = 3.0

    # Outbound HTTP client
    GITHUB_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Landing pages after the handshake completes
    SITE_ADMIN_GITHUB_APPS_PATH: str = "/site-admin/github-apps"
    SITE_ADMIN_WORKFLOW_AUTOMATION_PATH: str = "/site-admin/workflow-automation"

    # JWT used by the site admin gate
    JWT_SECRET_KEY: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"

    # Super admins (comma-separated emails)
    SUPER_ADMIN_EMAILS: str = ""

    # Encryption key for secrets at rest (Fernet key - 32 url-safe base64-encoded bytes)
    SECRETS_ENCRYPTION_KEY: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def super_admin_emails_list(self) -> List[str]:
        """Parse SUPER_ADMIN_EMAILS into a normalized list of emails"""
        if not self.SUPER_ADMIN_EMAILS:
            return []
        return [e.strip().lower() for e in self.SUPER_ADMIN_EMAILS.split(",") if e.strip()]


settings = Settings()
