"""
Application configuration management
"""

from typing import List, Optional
from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "CineBook"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str  # Must be provided via environment

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        elif v.startswith('sqlite:///'):
            v = v.replace('sqlite:///', 'sqlite+aiosqlite:///', 1)
        return v
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # Showtime locking: "local" (in-process) or "redis" (multi-worker)
    LOCK_BACKEND: str = "local"
    SHOWTIME_LOCK_TTL_SECONDS: int = 30
    SHOWTIME_LOCK_WAIT_SECONDS: float = 10.0

    @field_validator('LOCK_BACKEND')
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("local", "redis"):
            raise ValueError("LOCK_BACKEND must be 'local' or 'redis'")
        return v

    # JWT
    JWT_SECRET_KEY: str = "change-me-in-production-please-32chars"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Email
    SENDGRID_API_KEY: str = ""
    FROM_EMAIL: str = "noreply@cinebook.com"
    FRONTEND_URL: str = "http://localhost:3000"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOG_FILE: Optional[str] = None

    # Booking
    SEAT_HOLD_TTL_MINUTES: int = 15
    CANCELLATION_WINDOW_MINUTES: int = 60
    TAX_RATE: Decimal = Decimal("0.12")
    MAX_SEATS_PER_BOOKING: int = 20
    DEFAULT_SEAT_TYPE: str = "standard"

    # Expired holds are filtered lazily; the sweeper only bounds table growth.
    # 0 disables it.
    HOLD_SWEEP_INTERVAL_SECONDS: int = 0

    @field_validator("CORS_ORIGINS", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV == "testing"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Create global settings instance
settings = Settings()
