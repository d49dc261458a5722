"""
Shared configuration management for the access layer.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ACCESS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = "local"
    log_level: str = "info"
    cors_origins: str = "http://localhost:5173"

    # External services
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "ai-digital-friend"
    redis_url: str = "redis://localhost:6379/0"

    # Rate limiting
    rate_limit_backend: str = "memory"  # memory | redis
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900

    # Security
    jwt_secret: str = "change-me-access-secret"
    jwt_refresh_secret: str = "change-me-refresh-secret"
    jwt_algorithm: str = "HS256"
    jwt_access_ttl_seconds: int = 7 * 24 * 3600
    jwt_refresh_ttl_seconds: int = 30 * 24 * 3600
    bcrypt_rounds: int = 12
    max_login_attempts: int = 5
    lockout_seconds: int = 15 * 60

    # Feature flags
    enable_registration: bool = True
    enable_email_verification: bool = False

    # AI provider (OpenAI-compatible chat completions API)
    ai_base_url: str = "https://api.openai.com/v1"
    ai_api_key: Optional[str] = None
    ai_default_model: str = "gpt-4o-mini"
    ai_fallback_model: str = "gpt-3.5-turbo"
    ai_default_temperature: float = 0.7
    ai_max_tokens: int = 2048
    ai_timeout_seconds: float = 30.0

    def cors_list(self) -> List[str]:
        """CORS origins as a list for CORSMiddleware."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
