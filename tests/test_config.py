"""
Tests for gateway configuration.
"""

import pytest

BASE_ENV = {
    "JWT_SECRET": "a" * 40,
    "JWT_REFRESH_SECRET": "b" * 40,
    "SETTLEMENT_PRESHARED_KEY": "psk",
}


class TestParseDuration:
    """Tests for lifetime parsing."""

    def test_units(self):
        """Should accept plain seconds and s/m/h/d suffixes."""
        from gateway_core.config import parse_duration

        assert parse_duration("3600") == 3600
        assert parse_duration("30s") == 30
        assert parse_duration("15m") == 900
        assert parse_duration("24h") == 86400
        assert parse_duration("7d") == 604800

    def test_rejects_garbage(self):
        """Should raise ConfigurationError for bad or non-positive values."""
        from gateway_core.config import parse_duration
        from gateway_core.errors import ConfigurationError

        for value in ("", "abc", "10x", "0", "-5m"):
            with pytest.raises(ConfigurationError):
                parse_duration(value)


class TestGatewaySettings:
    """Tests for environment loading."""

    def test_defaults(self):
        """Should apply defaults for everything but the secrets."""
        from gateway_core.config import GatewaySettings

        settings = GatewaySettings.from_env(BASE_ENV)

        assert settings.jwt_issuer == "fcb-zimnat-api"
        assert settings.jwt_audience == "fcb-partners"
        assert settings.access_token_ttl == 24 * 3600
        assert settings.refresh_token_ttl == 7 * 86400
        assert settings.webhook_timeout == 10.0
        assert settings.webhook_max_retries == 3
        assert settings.idempotency_ttl == 3600
        assert settings.redis_url is None
        assert settings.log_json is True

    def test_overrides(self):
        """Should read optional values from the environment."""
        from gateway_core.config import GatewaySettings

        env = dict(
            BASE_ENV,
            ACCESS_TOKEN_TTL="15m",
            WEBHOOK_MAX_RETRIES="5",
            REDIS_URL="redis://localhost:6379/0",
            LOG_JSON="false",
        )
        settings = GatewaySettings.from_env(env)

        assert settings.access_token_ttl == 900
        assert settings.webhook_max_retries == 5
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.log_json is False

    def test_missing_secrets_listed(self):
        """Should name every missing secret in one error."""
        from gateway_core.config import GatewaySettings
        from gateway_core.errors import ConfigurationError

        with pytest.raises(ConfigurationError) as exc_info:
            GatewaySettings.from_env({"JWT_SECRET": "x" * 40})

        message = str(exc_info.value)
        assert "JWT_REFRESH_SECRET" in message
        assert "SETTLEMENT_PRESHARED_KEY" in message
        assert "JWT_SECRET," not in message

    def test_equal_jwt_secrets_rejected(self):
        """Access and refresh secrets must differ."""
        from gateway_core.config import GatewaySettings
        from gateway_core.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            GatewaySettings(
                jwt_secret="same" * 10,
                jwt_refresh_secret="same" * 10,
                settlement_preshared_key="psk",
            )
