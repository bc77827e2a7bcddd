"""Environment-driven settings shared by the users, rooms, bookings and ratings services."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # store
    database_url: str = Field(default="sqlite:///./hotel.db", description="SQLAlchemy URL of the shared hotel database")
    database_isolation_level: Optional[str] = Field(
        default=None,
        description="Engine isolation level such as 'REPEATABLE READ'; the driver default when unset.",
    )
    run_db_migrations: bool = Field(default=False, description="Create missing tables when a service starts")

    # identity
    jwt_secret: str = Field(default="change-me", description="HS256 key for bearer tokens issued at login")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60, ge=1)
    allow_header_identity: bool = Field(
        default=True,
        description="Accept a bare X-User-Id header when no bearer token is sent.",
    )

    # booking policy
    allow_unpriced_manual_rooms: bool = Field(
        default=False,
        description="Price manual bookings on an unknown room number at 0 instead of rejecting them.",
    )
    revenue_window_days: int = Field(default=30, ge=1, description="Days of payments counted as dashboard revenue")
    dashboard_cache_ttl: int = Field(default=30, ge=1, description="Seconds the dashboard stats stay cached")

    # http
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    default_rate_limit: str = "30/minute"
    rate_limiting_enabled: bool = True
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus request metrics on /metrics")
    store_failure_threshold: int = Field(default=5, ge=1, description="Consecutive store failures before reads trip open")
    store_recovery_timeout: int = Field(default=60, ge=1, description="Seconds a tripped read stays open")
    log_dir: str = Field(default="logs", description="Audit log directory, relative to the project root")

    users_service_port: int = 8001
    rooms_service_port: int = 8002
    bookings_service_port: int = 8003
    ratings_service_port: int = 8004

    def service_port(self, service: str) -> int:
        return getattr(self, f"{service}_service_port")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings_cache() -> None:
    """Drop the cached Settings so the next call re-reads the environment."""

    get_settings.cache_clear()
