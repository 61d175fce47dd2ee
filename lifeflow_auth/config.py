"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from lifeflow_auth.exceptions import MissingSigningKey


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # Database
    database_url: str = "sqlite+aiosqlite:///./lifeflow_auth.db"
    
    # Security (no default key; SigningConfig.from_settings rejects a blank one)
    jwt_secret_key: Optional[str] = None
    jwt_algorithm: str = "HS256"
    
    # Email
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "noreply@lifeflow.example.com"
    smtp_use_tls: bool = True
    
    # One-time passwords
    otp_interval_seconds: int = 300
    otp_digits: int = 6

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    
    # API Settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    project_name: str = "LifeFlow Auth"
    version: str = "1.0.0"


@dataclass(frozen=True)
class SigningConfig:
    """Immutable signing material handed to the token issuer at construction."""

    secret_key: str
    algorithm: str = "HS256"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningConfig":
        """
        Build the signing config, failing fast when no key is configured.

        Raises:
            MissingSigningKey: If JWT_SECRET_KEY is unset or blank
        """
        key = (settings.jwt_secret_key or "").strip()
        if not key:
            raise MissingSigningKey(
                "No token signing secret configured (set JWT_SECRET_KEY)"
            )
        return cls(secret_key=key, algorithm=settings.jwt_algorithm)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
