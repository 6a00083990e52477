from typing import Any, Optional

from gateway_core.errors import GatewayError


class SettlementError(GatewayError):
    """Base exception for settlement-network communication errors."""

    code = "SETTLEMENT_ERROR"
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(f"{message} (Status: {status_code})")
        self.upstream_status = status_code
        self.details = details


class SettlementUnavailableError(SettlementError):
    """Raised when the settlement network is unreachable or returns 5xx."""
    code = "SETTLEMENT_UNAVAILABLE"


class SettlementTimeoutError(SettlementUnavailableError):
    """Raised specifically on timeouts."""
    code = "SETTLEMENT_TIMEOUT"


class SettlementRejectedError(SettlementError):
    """Raised when the settlement network rejects the request (4xx)."""
    code = "SETTLEMENT_REJECTED"


class SettlementAuthError(SettlementRejectedError):
    """Raised when the network refuses our MAC or partner credentials (401/403)."""
    code = "SETTLEMENT_AUTH_REJECTED"
