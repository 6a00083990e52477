"""
Notification Dispatcher
=======================
At-least-once delivery of event payloads to partner callback URLs.

Each delivery is an explicit bounded loop: one POST per attempt with a
timeout, then a backoff sleep before the next retry. Retries of one
delivery are sequential; unrelated deliveries run concurrently under a
semaphore.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

import httpx
import structlog

from gateway_core.config import GatewaySettings
from gateway_core.retry import BackoffPolicy, Sleep, default_sleep

from .events import WebhookEvent, utc_timestamp
from .models import Delivered, DeliveryOutcome, DeliveryResult, Exhausted, WebhookDelivery
from .signing import SIGNATURE_HEADER, canonical_body, sign_body

logger = structlog.get_logger(__name__)

USER_AGENT = "Partner-Gateway-Webhook/1.0"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_CONCURRENCY = 10

Payload = Union[Dict[str, Any], WebhookEvent]
ExhaustedCallback = Callable[[Exhausted], Union[None, Awaitable[None]]]
DeliveryRequest = Tuple[str, Payload, Optional[str]]


class NotificationDispatcher:
    """
    Signs and delivers webhook notifications with bounded retries.

    Example:
        dispatcher = NotificationDispatcher.from_settings(settings)
        result = await dispatcher.deliver_event(url, PaymentEvent(...), secret)
        result.raise_for_outcome()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        backoff: Optional[BackoffPolicy] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        sleep: Sleep = default_sleep,
        clock: Callable[[], float] = time.time,
        on_exhausted: Optional[ExhaustedCallback] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: str = USER_AGENT,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout, transport=transport)
        self.timeout = timeout
        self.backoff = backoff or BackoffPolicy()
        self.user_agent = user_agent
        self.on_exhausted = on_exhausted
        self._sleep = sleep
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: GatewaySettings, **kwargs) -> "NotificationDispatcher":
        kwargs.setdefault("timeout", settings.webhook_timeout)
        kwargs.setdefault("backoff", BackoffPolicy(max_retries=settings.webhook_max_retries))
        kwargs.setdefault("max_concurrency", settings.webhook_max_concurrency)
        return cls(**kwargs)

    @property
    def pending(self) -> int:
        """Background deliveries still in flight."""
        return len(self._tasks)

    # =========================================================================
    # Single delivery
    # =========================================================================

    def _headers(self, body: bytes, secret: Optional[str], event_type: Optional[str], attempt: int) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Webhook-Timestamp": utc_timestamp(),
            "X-Webhook-Attempt": str(attempt),
        }
        if event_type:
            headers["X-Webhook-Event"] = event_type
        if secret:
            headers[SIGNATURE_HEADER] = sign_body(body, secret)
        return headers

    async def _attempt(self, url: str, body: bytes, headers: Dict[str, str]) -> Tuple[Optional[int], Optional[str]]:
        try:
            response = await self.client.post(url, content=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException:
            return None, f"Timed out after {self.timeout}s"
        except httpx.HTTPError as e:
            return None, f"{type(e).__name__}: {e}"

        if 200 <= response.status_code < 300:
            return response.status_code, None
        return response.status_code, f"HTTP {response.status_code}"

    async def deliver(
        self,
        url: str,
        payload: Payload,
        secret: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> DeliveryResult:
        """
        Deliver one payload, retrying on non-2xx and network failures.

        Args:
            url: Partner callback URL
            payload: Event or JSON-serializable envelope
            secret: Signs the body with HMAC-SHA256 when given
            event_type: Overrides the type taken from the payload

        Returns:
            Delivered, or Exhausted carrying the last error and status
        """
        if not isinstance(payload, dict):
            payload = payload.to_payload()
        event_type = event_type or payload.get("eventType")
        event_id = payload.get("eventId")

        if not url:
            logger.warning("webhook_skipped", reason="no_url", event_type=event_type, event_id=event_id)
            return Exhausted(url="", attempts=0, last_error="No webhook URL provided", reason="no_url")

        body = canonical_body(payload)
        history: List[WebhookDelivery] = []
        last_status: Optional[int] = None
        last_error: Optional[str] = None

        for attempt in range(1, self.backoff.max_attempts + 1):
            delivery = WebhookDelivery(
                url=url,
                event_type=event_type,
                event_id=event_id,
                payload=payload,
                attempt=attempt,
            )
            history.append(delivery)

            logger.info("webhook_sending", url=url, event_type=event_type, event_id=event_id, attempt=attempt)
            started = time.perf_counter()
            status_code, error = await self._attempt(url, body, self._headers(body, secret, event_type, attempt))
            delivery.duration_ms = round((time.perf_counter() - started) * 1000, 2)
            delivery.status_code = status_code
            delivery.error = error

            if error is None:
                delivery.outcome = DeliveryOutcome.SUCCESS
                logger.info(
                    "webhook_delivered",
                    url=url,
                    event_type=event_type,
                    event_id=event_id,
                    status_code=status_code,
                    attempt=attempt,
                )
                return Delivered(url=url, attempts=attempt, status_code=status_code, history=tuple(history))

            delivery.outcome = DeliveryOutcome.FAILURE
            last_status, last_error = status_code, error
            logger.warning(
                "webhook_attempt_failed",
                url=url,
                event_type=event_type,
                event_id=event_id,
                attempt=attempt,
                max_attempts=self.backoff.max_attempts,
                status_code=status_code,
                error=error,
            )

            if attempt < self.backoff.max_attempts:
                delay = self.backoff.delay_for(attempt)
                delivery.retry_delay = delay
                delivery.next_retry_at = self._clock() + delay
                await self._sleep(delay)

        result = Exhausted(
            url=url,
            attempts=len(history),
            last_error=last_error,
            last_status=last_status,
            history=tuple(history),
        )
        logger.error(
            "webhook_delivery_exhausted",
            url=url,
            event_type=event_type,
            event_id=event_id,
            attempts=result.attempts,
            last_status=last_status,
            last_error=last_error,
        )
        await self._notify_exhausted(result)
        return result

    async def deliver_event(self, url: str, event: WebhookEvent, secret: Optional[str] = None) -> DeliveryResult:
        return await self.deliver(url, event.to_payload(), secret, event_type=event.event_type.value)

    async def _notify_exhausted(self, result: Exhausted) -> None:
        if self.on_exhausted is None:
            return
        try:
            outcome = self.on_exhausted(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("webhook_exhausted_callback_failed", url=result.url)

    # =========================================================================
    # Concurrent delivery
    # =========================================================================

    async def _bounded(self, url: str, payload: Payload, secret: Optional[str]) -> DeliveryResult:
        async with self._semaphore:
            return await self.deliver(url, payload, secret)

    async def dispatch_many(self, requests: Iterable[DeliveryRequest]) -> List[DeliveryResult]:
        """
        Deliver unrelated notifications concurrently.

        Args:
            requests: (url, payload, secret) triples

        Returns:
            Results in the order of ``requests``
        """
        return list(await asyncio.gather(
            *(self._bounded(url, payload, secret) for url, payload, secret in requests)
        ))

    def dispatch_background(self, url: str, payload: Payload, secret: Optional[str] = None) -> "asyncio.Task[DeliveryResult]":
        """Schedule a delivery without waiting for it; tracked until done."""
        task = asyncio.create_task(self._bounded(url, payload, secret))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("webhook_background_failed", error=str(task.exception()))

    async def aclose(self) -> None:
        """Abandon in-flight background deliveries and release the client."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("webhook_deliveries_cancelled", count=len(tasks))
        if self._owns_client:
            await self.client.aclose()
