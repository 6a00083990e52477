"""
Gateway Configuration
=====================
Settings for the trust layer, read from the environment at startup.

Missing secrets are a startup failure, never a per-request one.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from gateway_core.errors import ConfigurationError

DEFAULT_ISSUER = "fcb-zimnat-api"
DEFAULT_AUDIENCE = "fcb-partners"
DEFAULT_ACCESS_TTL = 24 * 60 * 60       # 24 hours
DEFAULT_REFRESH_TTL = 7 * 24 * 60 * 60  # 7 days

REQUIRED_SECRETS = ("JWT_SECRET", "JWT_REFRESH_SECRET", "SETTLEMENT_PRESHARED_KEY")

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> int:
    """
    Parse a lifetime such as ``"3600"``, ``"15m"``, ``"24h"`` or ``"7d"``.

    Returns:
        Number of seconds

    Raises:
        ConfigurationError: If the value is not a positive duration
    """
    raw = str(value).strip().lower()
    multiplier = 1
    if raw and raw[-1] in _DURATION_UNITS:
        multiplier = _DURATION_UNITS[raw[-1]]
        raw = raw[:-1]
    try:
        seconds = int(raw) * multiplier
    except ValueError:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: {value!r}")
    return seconds


@dataclass(frozen=True)
class GatewaySettings:
    """Configuration for the trust and integrity layer."""
    jwt_secret: str
    jwt_refresh_secret: str
    settlement_preshared_key: str
    jwt_issuer: str = DEFAULT_ISSUER
    jwt_audience: str = DEFAULT_AUDIENCE
    access_token_ttl: int = DEFAULT_ACCESS_TTL
    refresh_token_ttl: int = DEFAULT_REFRESH_TTL
    settlement_api_url: str = "https://api.icecash.co.zw"
    settlement_timeout: float = 30.0
    webhook_timeout: float = 10.0
    webhook_max_retries: int = 3
    webhook_max_concurrency: int = 10
    idempotency_ttl: int = 3600
    redis_url: Optional[str] = None
    service_name: str = "partner-gateway"
    log_level: str = "INFO"
    log_json: bool = True

    def __post_init__(self):
        missing = [
            name for name, value in (
                ("JWT_SECRET", self.jwt_secret),
                ("JWT_REFRESH_SECRET", self.jwt_refresh_secret),
                ("SETTLEMENT_PRESHARED_KEY", self.settlement_preshared_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ConfigurationError(
                "JWT_SECRET and JWT_REFRESH_SECRET must be different"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewaySettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Raises:
            ConfigurationError: If a required secret is absent
        """
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_SECRETS if not env.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

        return cls(
            jwt_secret=env["JWT_SECRET"],
            jwt_refresh_secret=env["JWT_REFRESH_SECRET"],
            settlement_preshared_key=env["SETTLEMENT_PRESHARED_KEY"],
            jwt_issuer=env.get("JWT_ISSUER", DEFAULT_ISSUER),
            jwt_audience=env.get("JWT_AUDIENCE", DEFAULT_AUDIENCE),
            access_token_ttl=parse_duration(env.get("ACCESS_TOKEN_TTL", "24h")),
            refresh_token_ttl=parse_duration(env.get("REFRESH_TOKEN_TTL", "7d")),
            settlement_api_url=env.get("SETTLEMENT_API_URL", "https://api.icecash.co.zw"),
            settlement_timeout=float(env.get("SETTLEMENT_TIMEOUT_SECONDS", "30")),
            webhook_timeout=float(env.get("WEBHOOK_TIMEOUT_SECONDS", "10")),
            webhook_max_retries=int(env.get("WEBHOOK_MAX_RETRIES", "3")),
            webhook_max_concurrency=int(env.get("WEBHOOK_MAX_CONCURRENCY", "10")),
            idempotency_ttl=int(env.get("IDEMPOTENCY_TTL_SECONDS", "3600")),
            redis_url=env.get("REDIS_URL") or None,
            service_name=env.get("SERVICE_NAME", "partner-gateway"),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_json=env.get("LOG_JSON", "true").lower() in ("1", "true", "yes"),
        )
