"""Application configuration management"""

import hashlib
import hmac
import json
import string
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

# Label mixed into SECRET_KEY when no refresh secret is configured.
_REFRESH_SECRET_LABEL = b"blogauth.refresh-token.v1"

_MIN_SECRET_LENGTH = 32
_DEV_SECRETS = {"", "dev-secret-key-change-in-production-use-openssl-rand-hex-32", "change-me"}
_DEV_ADMIN_PASSWORDS = {"", "admin123"}


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Blog Auth Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production-use-openssl-rand-hex-32"
    REFRESH_SECRET_KEY: str = ""
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Captcha
    CAPTCHA_LENGTH: int = 4
    # No 0/O or 1/I/L, they are unreadable once distorted
    CAPTCHA_CHARSET: str = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
    CAPTCHA_TTL_SECONDS: int = 300
    CAPTCHA_COOKIE_NAME: str = "captcha_session"

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_PER_HOUR: int = 1000
    LOGIN_RATE_LIMIT_PER_MINUTE: int = 10
    LOGIN_RATE_LIMIT_PER_HOUR: int = 50

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:5173"]

    # Admin
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"

    # Client session defaults
    CLIENT_EXPIRY_CHECK_INTERVAL_SECONDS: float = 60.0
    CLIENT_REFRESH_LEAD_MINUTES: int = 15
    CLIENT_LOGOUT_COOLDOWN_SECONDS: float = 3.0

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:5173","http://example.com"]
            CORS_ORIGINS=http://localhost:5173,http://example.com
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
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @field_validator("CAPTCHA_CHARSET")
    @classmethod
    def _check_captcha_charset(cls, value: str) -> str:
        allowed = set(string.ascii_letters + string.digits)
        if not value or not set(value) <= allowed:
            raise ValueError("CAPTCHA_CHARSET must be a non-empty set of ASCII letters/digits")
        return value

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Falls back to a SQLite file next to the backend directory.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{_BASE_DIR.parent / 'blogauth.db'}"

    def get_refresh_secret(self) -> str:
        """
        Secret used to sign refresh tokens.

        An explicit REFRESH_SECRET_KEY wins; otherwise one is derived from
        SECRET_KEY so the two token kinds never share a signing key.
        """
        if self.REFRESH_SECRET_KEY:
            return self.REFRESH_SECRET_KEY
        return hmac.new(
            self.SECRET_KEY.encode("utf-8"), _REFRESH_SECRET_LABEL, hashlib.sha256
        ).hexdigest()

    def validate_security_settings(self) -> None:
        """
        Refuse to start with signing keys or credentials that are unsafe.

        The access and refresh secrets must always differ. In production the
        shipped development defaults are rejected as well, and every problem
        is reported at once.

        Raises:
            ValueError: Listing each offending setting
        """
        if self.get_refresh_secret() == self.SECRET_KEY:
            raise ValueError("REFRESH_SECRET_KEY must differ from SECRET_KEY.")

        if self.ENVIRONMENT.lower() != "production":
            return

        problems = []
        if self.SECRET_KEY in _DEV_SECRETS or len(self.SECRET_KEY) < _MIN_SECRET_LENGTH:
            problems.append(
                f"SECRET_KEY must be a random value of at least {_MIN_SECRET_LENGTH} characters "
                "(e.g. `openssl rand -hex 32`)"
            )
        if self.REFRESH_SECRET_KEY and len(self.REFRESH_SECRET_KEY) < _MIN_SECRET_LENGTH:
            problems.append(f"REFRESH_SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters")
        if self.ADMIN_PASSWORD in _DEV_ADMIN_PASSWORDS or len(self.ADMIN_PASSWORD) < 10:
            problems.append("ADMIN_PASSWORD must be changed from the default and be at least 10 characters")

        if problems:
            raise ValueError("Insecure production settings: " + "; ".join(problems))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
