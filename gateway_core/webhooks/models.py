"""
Delivery Models
===============
Per-attempt records and the terminal result of a delivery sequence.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from gateway_core.errors import DeliveryExhaustedError


class DeliveryOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class WebhookDelivery:
    """One attempt to deliver one event to one URL."""
    url: str
    event_type: Optional[str]
    event_id: Optional[str]
    payload: Any = field(repr=False)
    attempt: int
    outcome: Optional[DeliveryOutcome] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None
    retry_delay: Optional[float] = None
    next_retry_at: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == DeliveryOutcome.SUCCESS


@dataclass(frozen=True)
class Delivered:
    """The partner accepted the event."""
    url: str
    attempts: int
    status_code: int
    history: Tuple[WebhookDelivery, ...] = ()

    success = True

    def raise_for_outcome(self) -> "Delivered":
        return self


@dataclass(frozen=True)
class Exhausted:
    """Every attempt failed, or there was nowhere to deliver to."""
    url: str
    attempts: int
    last_error: Optional[str] = None
    last_status: Optional[int] = None
    history: Tuple[WebhookDelivery, ...] = ()
    reason: str = "retries_exhausted"

    success = False

    def to_error(self) -> DeliveryExhaustedError:
        return DeliveryExhaustedError(
            f"Webhook delivery to {self.url or '<none>'} failed after {self.attempts} attempts: "
            f"{self.last_error or self.reason}",
            attempts=self.attempts,
            last_error=self.last_error,
            last_status=self.last_status,
        )

    def raise_for_outcome(self) -> "Exhausted":
        raise self.to_error()


DeliveryResult = Union[Delivered, Exhausted]
