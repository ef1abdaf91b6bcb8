"""Application configuration using Pydantic Settings."""

from datetime import timedelta
from typing import Dict

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jobboard.utils.helpers import parse_duration


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Job Board API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, production, test

    # Server
    HOST: str = "0.0.0.0"
    SERVICE_HOST: str = "localhost"
    GATEWAY_PORT: int = 5000
    AUTH_SERVICE_PORT: int = 5001
    USER_SERVICE_PORT: int = 5002
    JOB_SERVICE_PORT: int = 5003
    APPLICATION_SERVICE_PORT: int = 5004
    SEARCH_SERVICE_PORT: int = 5005
    NOTIFICATION_SERVICE_PORT: int = 5006
    ADMIN_SERVICE_PORT: int = 5007

    # MongoDB
    MONGO_URI: str = Field(default="mongodb://localhost:27017/jobboard")
    MONGO_DB_NAME: str = ""  # Falls back to the database named in MONGO_URI
    MONGO_USERS_COLLECTION: str = "users"
    MONGO_MAX_POOL_SIZE: int = 20
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    MONGO_SOCKET_TIMEOUT_MS: int = 45000
    MONGO_CONNECT_RETRIES: int = 3

    # JWT
    JWT_SECRET: str = ""
    JWT_EXPIRE: str = "15m"
    JWT_REFRESH_SECRET: str = ""
    JWT_REFRESH_EXPIRE: str = "7d"
    JWT_ALGORITHM: str = "HS256"

    # Credentials
    BCRYPT_ROUNDS: int = 12
    LOGIN_MAX_ATTEMPTS: int = 5
    LOCK_DURATION: str = "2h"
    PASSWORD_RESET_EXPIRE: str = "30m"
    REFRESH_COOKIE_NAME: str = "refreshToken"

    # Frontend origin (CORS + reset links)
    CLIENT_URL: str = "http://localhost:5173"

    # Gateway
    GATEWAY_PROXY_TIMEOUT: float = 30.0
    GATEWAY_HEALTH_TIMEOUT: float = 3.0

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW: str = "15m"
    AUTH_RATE_LIMIT: int = 20
    API_RATE_LIMIT: int = 100
    # Auth service only: key on the hop the gateway appends to X-Forwarded-For
    TRUST_PROXY: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Monitoring
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "production"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    @field_validator(
        "JWT_EXPIRE",
        "JWT_REFRESH_EXPIRE",
        "LOCK_DURATION",
        "PASSWORD_RESET_EXPIRE",
        "RATE_LIMIT_WINDOW",
    )
    @classmethod
    def validate_duration(cls, v: str) -> str:
        """Reject durations that cannot be parsed (e.g. "15m", "7d")."""
        parse_duration(v)
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def check_distinct_secrets(self) -> "Settings":
        """Access and refresh tokens must never share a signing secret."""
        if self.JWT_SECRET and self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def access_token_ttl(self) -> timedelta:
        return parse_duration(self.JWT_EXPIRE)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return parse_duration(self.JWT_REFRESH_EXPIRE)

    @property
    def lock_duration(self) -> timedelta:
        return parse_duration(self.LOCK_DURATION)

    @property
    def password_reset_ttl(self) -> timedelta:
        return parse_duration(self.PASSWORD_RESET_EXPIRE)

    @property
    def rate_limit_window(self) -> timedelta:
        return parse_duration(self.RATE_LIMIT_WINDOW)

    @property
    def service_origins(self) -> Dict[str, str]:
        """Backend origin per gateway path segment (/api/v1/<service>)."""
        ports = {
            "auth": self.AUTH_SERVICE_PORT,
            "users": self.USER_SERVICE_PORT,
            "jobs": self.JOB_SERVICE_PORT,
            "applications": self.APPLICATION_SERVICE_PORT,
            "search": self.SEARCH_SERVICE_PORT,
            "notifications": self.NOTIFICATION_SERVICE_PORT,
            "admin": self.ADMIN_SERVICE_PORT,
        }
        return {name: f"http://{self.SERVICE_HOST}:{port}" for name, port in ports.items()}


# Create global settings instance
settings = Settings()
