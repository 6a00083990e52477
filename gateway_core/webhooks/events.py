"""
Webhook Events
==============
Typed notification payloads for payment, quote and reversal updates.

Every event serializes to the same envelope:

    {"eventType": "payment.completed", "eventId": "...", "timestamp": "...",
     "data": {...}}

``data`` always carries the full field list of its kind, with None for
unknown values, so partners see a stable shape.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_event_id() -> str:
    return str(uuid.uuid4())


class PaymentEventType(str, Enum):
    PENDING = "payment.pending"
    COMPLETED = "payment.completed"
    FAILED = "payment.failed"
    REVERSED = "payment.reversed"


class QuoteEventType(str, Enum):
    CREATED = "quote.created"
    UPDATED = "quote.updated"
    EXPIRED = "quote.expired"
    ACCEPTED = "quote.accepted"


class ReversalEventType(str, Enum):
    REQUESTED = "reversal.requested"
    COMPLETED = "reversal.completed"
    REJECTED = "reversal.rejected"


class _EventPayload:
    """Serialization shared by every event kind."""

    # (attribute, wire name) pairs, in wire order
    DATA_FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = ()
    EVENT_TYPES: ClassVar[type] = Enum

    def __post_init__(self):
        # Accept plain strings but only values of this kind's enum.
        object.__setattr__(self, "event_type", self.EVENT_TYPES(self.event_type))

    @property
    def reference(self) -> Optional[str]:
        """Primary reference used in delivery logs."""
        return getattr(self, self.DATA_FIELDS[0][0])

    def data(self) -> Dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in self.DATA_FIELDS}

    def to_payload(self) -> Dict[str, Any]:
        return {
            "eventType": self.event_type.value,
            "eventId": self.event_id,
            "timestamp": self.timestamp,
            "data": self.data(),
        }

    @classmethod
    def from_record(cls, event_type: Any, record: Mapping[str, Any], **overrides):
        """
        Build an event from a business record.

        Fields are picked by wire name (camelCase) or attribute name;
        anything else in ``record`` is ignored.
        """
        values = {}
        for attr, wire in cls.DATA_FIELDS:
            if wire in record:
                values[attr] = record[wire]
            elif attr in record:
                values[attr] = record[attr]
        values.update(overrides)
        return cls(event_type=event_type, **values)


@dataclass(frozen=True)
class PaymentEvent(_EventPayload):
    """Payment status change."""
    event_type: PaymentEventType
    txn_reference: str
    external_reference: Optional[str] = None
    policy_number: Optional[str] = None
    amount: Any = None
    currency: Optional[str] = None
    status: Optional[str] = None
    receipt_number: Optional[str] = None
    processed_at: Optional[str] = None
    event_id: str = field(default_factory=_new_event_id)
    timestamp: str = field(default_factory=utc_timestamp)

    DATA_FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("txn_reference", "txnReference"),
        ("external_reference", "externalReference"),
        ("policy_number", "policyNumber"),
        ("amount", "amount"),
        ("currency", "currency"),
        ("status", "status"),
        ("receipt_number", "receiptNumber"),
        ("processed_at", "processedAt"),
    )
    EVENT_TYPES: ClassVar[type] = PaymentEventType


@dataclass(frozen=True)
class QuoteEvent(_EventPayload):
    """Quote lifecycle change."""
    event_type: QuoteEventType
    reference_id: str
    external_reference: Optional[str] = None
    vrn: Optional[str] = None
    total_amount: Any = None
    currency: Optional[str] = None
    status: Optional[str] = None
    expires_at: Optional[str] = None
    policy_number: Optional[str] = None
    event_id: str = field(default_factory=_new_event_id)
    timestamp: str = field(default_factory=utc_timestamp)

    DATA_FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("reference_id", "referenceId"),
        ("external_reference", "externalReference"),
        ("vrn", "vrn"),
        ("total_amount", "totalAmount"),
        ("currency", "currency"),
        ("status", "status"),
        ("expires_at", "expiresAt"),
        ("policy_number", "policyNumber"),
    )
    EVENT_TYPES: ClassVar[type] = QuoteEventType


@dataclass(frozen=True)
class ReversalEvent(_EventPayload):
    """Payment reversal progress."""
    event_type: ReversalEventType
    reversal_reference: str
    original_external_reference: Optional[str] = None
    original_txn_reference: Optional[str] = None
    receipt_number: Optional[str] = None
    amount: Any = None
    currency: Optional[str] = None
    reason: Optional[str] = None
    status: Optional[str] = None
    processed_at: Optional[str] = None
    event_id: str = field(default_factory=_new_event_id)
    timestamp: str = field(default_factory=utc_timestamp)

    DATA_FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("reversal_reference", "reversalReference"),
        ("original_external_reference", "originalExternalReference"),
        ("original_txn_reference", "originalTxnReference"),
        ("receipt_number", "receiptNumber"),
        ("amount", "amount"),
        ("currency", "currency"),
        ("reason", "reason"),
        ("status", "status"),
        ("processed_at", "processedAt"),
    )
    EVENT_TYPES: ClassVar[type] = ReversalEventType


WebhookEvent = Union[PaymentEvent, QuoteEvent, ReversalEvent]
