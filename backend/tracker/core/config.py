"""Tracker configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent.parent

# Later files win: a source checkout reads backend/.env, installed scripts the
# working directory's .env
ENV_FILES = (BACKEND_DIR / ".env", Path(".env"))

TRACKER_SCOPES = [
    "moderator:read:chatters",  # Get Chatters
    "moderator:read:followers",  # Follower totals during enrichment
]

STATIC_SESSION_ID = "static"


class TrackerSettings(BaseSettings):
    """Settings shared by the tracker loop and the dashboard API"""

    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")
    redirect_uri: str = Field(
        default="http://localhost:8787/auth/callback", description="OAuth redirect URI"
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Polling
    poll_interval_seconds: float = Field(default=15.0, gt=0, description="Presence poll period")
    enrich_interval_seconds: float = Field(default=4.0, gt=0, description="Enrichment drain period")
    initial_poll_delay_seconds: float = Field(default=1.5, ge=0, description="Delay before first poll")

    # Session cookie signing
    jwt_secret_key: str = Field(..., description="Secret key for session cookie signing")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    session_expire_days: int = Field(default=30, description="Session cookie lifetime in days")
    oauth_state_ttl_seconds: int = Field(default=600, description="Pending OAuth state lifetime")

    # Externally supplied single-tenant credentials (optional)
    static_access_token: str = Field(default="", description="User access token")
    static_moderator_id: str = Field(default="", description="Moderator user ID")
    static_broadcaster_id: str = Field(default="", description="Broadcaster user ID")
    static_broadcaster_login: str = Field(default="", description="Broadcaster login")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8787, description="Server port")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("static_broadcaster_login")
    @classmethod
    def normalize_login(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def has_static_tenant(self) -> bool:
        """True when a complete externally supplied credential set is configured"""
        return all(
            (
                self.static_access_token,
                self.static_moderator_id,
                self.static_broadcaster_id,
                self.static_broadcaster_login,
            )
        )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> TrackerSettings:
    """Get cached settings instance"""
    return TrackerSettings()  # type: ignore[call-arg]
