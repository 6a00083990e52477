import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from gateway_core.auth.store import PrincipalStore
from gateway_core.config import GatewaySettings
from gateway_core.errors import SignatureVerificationFailure

from .envelope import open_envelope, seal
from .exceptions import (
    SettlementAuthError,
    SettlementError,
    SettlementRejectedError,
    SettlementTimeoutError,
    SettlementUnavailableError,
)
from .signature import KeyedHashSigner

logger = logging.getLogger(__name__)

# Busy or throttled: worth another attempt.
RETRYABLE_STATUSES = frozenset({408, 425, 429})


def _reply_detail(response: httpx.Response) -> Any:
    """The network's own error text when the reply carries one."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        arguments = data.get("Arguments")
        source = arguments if isinstance(arguments, dict) else data
        for field in ("Message", "message", "error"):
            if source.get(field):
                return source[field]
    return data


class SettlementClient:
    """
    Async HTTP client for the external settlement network.

    Features:
    - Every request body is a sealed envelope (MAC + Arguments + Mode).
    - Per-partner signing secrets from a PrincipalStore, falling back to the
      configured pre-shared key.
    - Retries on network errors, 5xx and throttling replies only.
    - Enveloped responses are MAC-checked with the key that sealed the request.
    """

    def __init__(
        self,
        base_url: str,
        signer: KeyedHashSigner,
        timeout: float = 30.0,
        verify_responses: bool = True,
        principal_store: Optional[PrincipalStore] = None,
        max_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.base_url = base_url.rstrip("/")
        self.signer = signer
        self.verify_responses = verify_responses
        self.principal_store = principal_store
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "User-Agent": "Partner-Gateway-Settlement-Client",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: GatewaySettings, **kwargs) -> "SettlementClient":
        return cls(
            base_url=settings.settlement_api_url,
            signer=KeyedHashSigner(settings.settlement_preshared_key),
            timeout=settings.settlement_timeout,
            **kwargs,
        )

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "SettlementClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def signer_for(self, partner_code: Optional[str] = None) -> KeyedHashSigner:
        """Signer for ``partner_code``'s own secret, else the shared one."""
        if partner_code is None or self.principal_store is None:
            return self.signer
        secret = await self.principal_store.get_signing_secret(partner_code)
        if not secret:
            logger.debug("No signing secret for partner %s, using the pre-shared key", partner_code)
            return self.signer
        return KeyedHashSigner(secret)

    def _classify(self, exc: httpx.HTTPError, path: str) -> SettlementError:
        """Turn a transport failure or non-2xx reply into a settlement error."""
        if isinstance(exc, httpx.TimeoutException):
            return SettlementTimeoutError(f"No reply from settlement network on {path}")
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            detail = _reply_detail(exc.response)
            if status in (401, 403):
                logger.error("Settlement network refused credentials on %s: %s", path, detail)
                return SettlementAuthError("Settlement network refused the MAC or partner key", status_code=status, details=detail)
            if status >= 500 or status in RETRYABLE_STATUSES:
                return SettlementUnavailableError("Settlement network busy or failing", status_code=status, details=detail)
            return SettlementRejectedError("Settlement network rejected the request", status_code=status, details=detail)
        if isinstance(exc, httpx.TransportError):
            return SettlementUnavailableError(f"Settlement network unreachable: {exc}")
        return SettlementError(f"Settlement request failed: {exc}")

    async def _post_once(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self.client.post(path, json=body)
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            raise self._classify(e, path) from e

    async def _post(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(SettlementUnavailableError),
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post_once(path, body)

    async def send(self, path: str, arguments: Dict[str, Any], partner_code: Optional[str] = None) -> Any:
        """
        Seal ``arguments`` and POST them to ``path``.

        Args:
            path: Network endpoint, relative to ``base_url``
            arguments: Request payload
            partner_code: Sign with this partner's secret when the store has one

        Returns:
            The decoded response; for enveloped responses, its verified
            ``Arguments``

        Raises:
            SettlementError: On transport failure or rejection
            SignatureVerificationFailure: If an enveloped response fails its MAC check
        """
        signer = await self.signer_for(partner_code)
        envelope = seal(arguments, signer)
        logger.info(
            "Settlement request prepared: function=%s reference=%s partner=%s",
            arguments.get("Function", "Unknown"),
            arguments.get("PartnerReference"),
            partner_code or "-",
        )

        response = await self._post(path, envelope.to_wire())
        if response.status_code == 204 or not response.content:
            return None

        try:
            data = response.json()
        except ValueError:
            raise SettlementError("Response is not JSON", status_code=response.status_code)

        if self.verify_responses and isinstance(data, dict) and "MAC" in data:
            try:
                return open_envelope(data, signer)
            except SignatureVerificationFailure as e:
                logger.warning("Settlement response failed MAC check: %s", e.reason)
                raise

        return data
