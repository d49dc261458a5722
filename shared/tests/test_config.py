"""
Tests for shared configuration.
"""

from shared.config import get_config


class TestConfig:
    """Test cases for settings loading."""

    def test_defaults(self):
        config = get_config("access", 8000)

        assert config.service_name == "access"
        assert config.port == 8000
        assert config.rate_limit_backend == "memory"
        assert config.max_login_attempts == 5
        assert config.lockout_seconds == 900
        assert config.jwt_access_ttl_seconds == 7 * 24 * 3600

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ACCESS_RATE_LIMIT_MAX_REQUESTS", "250")
        monkeypatch.setenv("ACCESS_ENABLE_EMAIL_VERIFICATION", "true")
        monkeypatch.setenv("ACCESS_RATE_LIMIT_BACKEND", "redis")

        config = get_config("access", 8000)

        assert config.rate_limit_max_requests == 250
        assert config.enable_email_verification is True
        assert config.rate_limit_backend == "redis"

    def test_cors_list(self):
        config = get_config("access", 8000, cors_origins="https://a.example, https://b.example,")

        assert config.cors_list() == ["https://a.example", "https://b.example"]
