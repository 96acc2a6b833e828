"""
Configuration management for Report Desk Backend
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Required settings
    DATABASE_URL: str = Field(..., description="Database URL (PostgreSQL in production, SQLite for local/tests)")
    JWT_SECRET_KEY: str = Field(..., description="JWT secret key for token signing")

    # Optional settings with defaults
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    # Version (can be git SHA or semver)
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Report file storage
    UPLOAD_DIR: str = Field(default="uploads", description="Directory where uploaded report PDFs are stored")
    MAX_UPLOAD_BYTES: int = Field(default=10 * 1024 * 1024, description="Maximum accepted report size in bytes")

    # Persistence calls never hang: pool checkout and driver busy/connect waits are bounded
    DB_TIMEOUT_SECONDS: float = Field(default=10.0, description="Timeout for database connection and lock waits")

    # Notification dispatch is best-effort with bounded retries
    NOTIFICATION_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Attempts before a notification batch is dropped")
    NOTIFICATION_RETRY_BACKOFF_SECONDS: float = Field(
        default=0.2,
        ge=0,
        description="Initial backoff between notification attempts (doubles per attempt)"
    )

    ALLOW_SELF_REGISTRATION: bool = Field(default=True, description="Allow POST /auth/register to create STAFF accounts")

    # What happens to a deleted user's audit history: removed with the user, or kept with the actor cleared
    AUDIT_ON_USER_DELETE: str = Field(default="delete", description="delete or anonymize")

    # Initial admin bootstrap settings
    INITIAL_ADMIN_USERNAME: str = Field(default="admin", description="Username for the bootstrap admin")
    INITIAL_ADMIN_EMAIL: str = Field(
        default="admin@company.com",
        description="Email for initial admin user (used when no admin exists)"
    )
    INITIAL_ADMIN_PASSWORD: str = Field(
        default="Admin@12345",
        description="Password for initial admin user (used when no admin exists)"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("AUDIT_ON_USER_DELETE")
    @classmethod
    def validate_audit_on_user_delete(cls, v: str) -> str:
        allowed = ["delete", "anonymize"]
        if v.lower() not in allowed:
            raise ValueError(f"AUDIT_ON_USER_DELETE must be one of {allowed}")
        return v.lower()

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            # JWT_SECRET_KEY must be at least 32 characters in production
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            # ALLOWED_ORIGINS must not be wildcard in production
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Create settings instance
settings = Settings()

# Validate production settings if in prod
if settings.APP_ENV == "prod":
    settings.validate_production()
