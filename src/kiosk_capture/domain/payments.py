"""Domain models for pricing, payments and download grants."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


@dataclass(frozen=True)
class PricingSettings:
    """Per-tenant price list."""

    free_mode: bool = False
    photo_price: int = 100
    clip_short_price: int = 300
    clip_long_price: int = 500
    currency: str = "jpy"


@dataclass(frozen=True)
class CheckoutLineItem:
    name: str
    amount: int


@dataclass(frozen=True)
class CheckoutRequest:
    """Everything the payment processor needs to host a checkout."""

    session_id: UUID
    device_id: str
    tenant_id: str
    currency: str
    line_items: list[CheckoutLineItem]
    success_url: str
    cancel_url: str
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutSession:
    checkout_id: str
    url: str


@dataclass(frozen=True)
class PaymentEvent:
    """Verified payment processor event reduced to what reconciliation needs."""

    event_id: str
    event_type: str
    session_id: UUID | None
    object_kind: str | None = None
    mode: str | None = None
    payment_status: str | None = None
    checkout_id: str | None = None
    payment_intent: str | None = None
    customer_email: str | None = None
    failure_message: str | None = None


class EventOutcome(StrEnum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of creating a payment for a captured session."""

    free: bool
    total: int
    checkout_url: str | None = None
    download_token: str | None = None


@dataclass(frozen=True)
class DownloadGrant:
    """Time-boxed, count-limited permission to fetch an original artifact."""

    token: str
    session_id: UUID
    expires_at: datetime
    max_uses: int
    use_count: int = 0
    created_at: datetime | None = None
    last_used_at: datetime | None = None

    @property
    def remaining_uses(self) -> int:
        return max(self.max_uses - self.use_count, 0)


@dataclass(frozen=True)
class GrantView:
    """Landing page data for a grant, including a fresh confirmation value."""

    token: str
    expires_at: datetime
    remaining_uses: int
    confirmation: str


@dataclass(frozen=True)
class Redemption:
    url: str
    file_name: str
