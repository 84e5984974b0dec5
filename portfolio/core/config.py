"""Application configuration using Pydantic settings."""

import logging
import sys
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "change-me-in-production-portfolio-session-secret"

# Variables that must be present before the app is allowed to boot in production
REQUIRED_PRODUCTION_VARIABLES = (
    "DATABASE_URL",
    "SECRET_KEY",
    "UPLOADTHING_SECRET",
    "UPLOADTHING_APP_ID",
    "RESEND_API_KEY",
    "FROM_EMAIL",
    "TO_EMAIL",
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Runtime
    ENVIRONMENT: str = Field(default="development", description="development, production or test")
    APP_NAME: str = Field(default="Portfolio API", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: Optional[str] = Field(default=None, description="Root log level")

    # Database Configuration
    DATABASE_URL: str = Field(default="sqlite:///./portfolio.db", description="Database connection URL")

    # Security Configuration
    SECRET_KEY: str = Field(default=DEFAULT_SECRET_KEY, description="Secret key for session token signing")
    ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, description="Session token lifetime")
    SESSION_COOKIE_NAME: str = Field(default="portfolio_session", description="Cookie carrying the admin session")

    # Admin bootstrap
    ADMIN_EMAIL: Optional[str] = Field(default=None, description="Email of the bootstrap admin account")
    ADMIN_PASSWORD: Optional[str] = Field(default=None, description="Password of the bootstrap admin account")
    ADMIN_NAME: str = Field(default="Admin", description="Display name of the bootstrap admin account")

    # Transactional email (Resend)
    RESEND_API_KEY: Optional[str] = Field(default=None, description="Resend API key")
    RESEND_API_URL: str = Field(default="https://api.resend.com/emails", description="Resend send endpoint")
    FROM_EMAIL: Optional[str] = Field(default=None, description="Sender address for notifications")
    TO_EMAIL: Optional[str] = Field(default=None, description="Inbox that receives contact notifications")

    # Hosted file storage (UploadThing)
    UPLOADTHING_SECRET: Optional[str] = Field(default=None, description="UploadThing API secret")
    UPLOADTHING_APP_ID: Optional[str] = Field(default=None, description="UploadThing application id")
    UPLOADTHING_API_URL: str = Field(default="https://api.uploadthing.com/v6", description="UploadThing REST base URL")

    # CORS Configuration
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("CORS_ORIGINS", "ALLOWED_ORIGINS"),
        description="Comma separated list of allowed CORS origins",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True, description="Allow CORS credentials")

    # Redis Configuration
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: Optional[str] = Field(default=None, description="Redis password")

    # Rate Limiting
    RATE_LIMIT_BACKEND: str = Field(default="memory", description="memory or redis")

    # Analytics
    GEOLOCATION_ENABLED: bool = Field(default=True, description="Look up visitor country/city")
    GEOLOCATION_API_URL: str = Field(default="http://ip-api.com/json/{ip}", description="IP geolocation endpoint")
    CRON_SECRET: Optional[str] = Field(default=None, description="Bearer token for the scheduled cleanup job")

    # Background tasks
    ENABLE_BACKGROUND_TASKS: bool = Field(default=True, description="Run the cleanup scheduler in-process")
    CLEANUP_CHECK_INTERVAL_SECONDS: int = Field(default=3600, description="How often due cleanup schedules are checked")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @validator("DATABASE_URL")
    def validate_database_url(cls, v: str) -> str:
        """Ensure database URL is properly formatted."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg2://", 1)
        return v

    @validator("ENVIRONMENT")
    def validate_environment_name(cls, v: str) -> str:
        """Normalise the environment name."""
        return v.strip().lower()

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def cors_origins(self) -> List[str]:
        """Allowed origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def log_level(self) -> str:
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return "ERROR" if self.is_production else "INFO"

    @property
    def email_configured(self) -> bool:
        return bool(self.RESEND_API_KEY and self.FROM_EMAIL and self.TO_EMAIL)

    @property
    def uploadthing_configured(self) -> bool:
        return bool(self.UPLOADTHING_SECRET)


def collect_configuration_problems(config: Settings) -> List[str]:
    """Return every reason the configuration is unfit for production."""
    problems = []

    for name in REQUIRED_PRODUCTION_VARIABLES:
        if not getattr(config, name, None):
            problems.append(f"Missing required environment variable: {name}")

    if config.SECRET_KEY == DEFAULT_SECRET_KEY:
        problems.append("SECRET_KEY must be changed from its default value")
    elif len(config.SECRET_KEY) < 32:
        problems.append("SECRET_KEY must be at least 32 characters long")

    for origin in config.cors_origins:
        parsed = urlparse(origin)
        if parsed.scheme == "http" and parsed.hostname not in ("localhost", "127.0.0.1"):
            problems.append(f"CORS origin must use https in production: {origin}")

    return problems


def validate_environment(config: Optional[Settings] = None) -> None:
    """Validate configuration at startup; exits the process on production misconfiguration."""
    config = config or settings

    if not config.is_production:
        missing = [
            name for name in ("RESEND_API_KEY", "UPLOADTHING_SECRET", "ADMIN_EMAIL", "ADMIN_PASSWORD")
            if not getattr(config, name, None)
        ]
        if missing:
            logger.info(f"Optional integrations not configured: {', '.join(missing)}")
        return

    problems = collect_configuration_problems(config)
    if problems:
        for problem in problems:
            logger.error(f"❌ {problem}")
        logger.error("Refusing to start with an invalid production configuration")
        sys.exit(1)

    logger.info("✅ Production configuration validated")


# Global settings instance
settings = Settings()
