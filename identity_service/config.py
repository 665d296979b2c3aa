"""Application configuration management"""

import base64
import binascii
import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: repository root
_BASE_DIR = Path(__file__).resolve().parent.parent

# base64("dev-jwt-secret-change-in-production!"), rejected in production.
_DEV_JWT_SECRET = "ZGV2LWp3dC1zZWNyZXQtY2hhbmdlLWluLXByb2R1Y3Rpb24h"


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Identity Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "identity_db"
    POSTGRES_USER: str = "identity"
    POSTGRES_PASSWORD: str = "identity"
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    # Access tokens
    JWT_SECRET: str = _DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MS: int = 15 * 60 * 1000

    # Refresh / reset tokens
    REFRESH_TOKEN_GRACE_DAYS: int = 10
    PASSWORD_RESET_TOKEN_TTL_SECONDS: int = 900

    # Access-token blacklist
    TOKEN_BLACKLIST_TTL_MINUTES: int = 30
    TOKEN_BLACKLIST_MAX_SIZE: int = 10_000
    TOKEN_BLACKLIST_SWEEP_INTERVAL_SECONDS: float = 60.0

    # Service-to-service auth
    INTERNAL_SHARED_SECRET: str = "dev-internal-shared-secret"
    S2S_ALLOWED_CLOCK_SKEW_SECONDS: int = 60

    # Registration / credentials
    ALLOWED_SIGNUP_ROLES: Annotated[List[str], NoDecode] = ["USER", "ORGANIZER"]
    BCRYPT_ROUNDS: int = 12

    # ID generation
    NODE_ID: int = 1

    # Notifications
    FRONTEND_URL: str = "http://localhost:3000"
    NOTIFICATION_WORKERS: int = 2

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Admin bootstrap
    ADMIN_EMAIL: str = "admin@identity.local"
    ADMIN_PASSWORD: str = "admin12345"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", "ALLOWED_SIGNUP_ROLES", mode="before")
    @classmethod
    def _parse_string_list(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated values from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            ALLOWED_SIGNUP_ROLES=USER,ORGANIZER
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]

        return [item.strip() for item in raw.split(",") if item.strip()]

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR / "logs" / "identity.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def get_jwt_secret_bytes(self) -> bytes:
        """Decode the base64 JWT signing secret."""
        try:
            return base64.b64decode(self.JWT_SECRET, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("JWT_SECRET must be valid base64") from exc

    def validate_security_settings(self) -> None:
        """
        Validate runtime security settings.

        Key length and TTL ordering are always enforced; insecure
        defaults are rejected only in production.

        Raises:
            ValueError: If the configuration is unsafe.
        """
        if len(self.get_jwt_secret_bytes()) < 32:
            raise ValueError("JWT_SECRET must decode to at least 256 bits")

        if self.JWT_EXPIRATION_MS < 1000:
            raise ValueError("JWT_EXPIRATION_MS must be at least one second")

        if self.TOKEN_BLACKLIST_TTL_MINUTES * 60 * 1000 <= self.JWT_EXPIRATION_MS:
            raise ValueError(
                "TOKEN_BLACKLIST_TTL_MINUTES must exceed the access token lifetime"
            )

        if not self.INTERNAL_SHARED_SECRET:
            raise ValueError("INTERNAL_SHARED_SECRET must not be empty")

        if self.ENVIRONMENT.lower() != "production":
            return

        if self.JWT_SECRET == _DEV_JWT_SECRET:
            raise ValueError(
                "Insecure JWT_SECRET for production. Use `openssl rand -base64 32`."
            )

        if self.INTERNAL_SHARED_SECRET == "dev-internal-shared-secret" or len(self.INTERNAL_SHARED_SECRET) < 32:
            raise ValueError(
                "Insecure INTERNAL_SHARED_SECRET for production. Use a strong shared secret."
            )

        if self.ADMIN_PASSWORD in {"", "admin12345", "change_this_password_immediately"} or len(self.ADMIN_PASSWORD) < 10:
            raise ValueError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
