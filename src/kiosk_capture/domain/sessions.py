"""Domain models for capture sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class SessionPhase(StrEnum):
    """Primary lifecycle state of a capture session."""

    LIVE = "live"
    CAPTURING = "capturing"
    CAPTURED = "captured"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


TERMINAL_PHASES = frozenset(
    {
        SessionPhase.PAID,
        SessionPhase.PAYMENT_FAILED,
        SessionPhase.EXPIRED,
        SessionPhase.CANCELLED,
        SessionPhase.TIMEOUT,
    }
)


class PaymentPhase(StrEnum):
    """Payment progress mirrored next to the session phase."""

    NONE = "none"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"


class CaptureKind(StrEnum):
    PHOTO = "photo"
    CLIP = "clip"


@dataclass(frozen=True)
class SelectedOverlay:
    """Overlay choice snapshotted onto a session."""

    frame_id: str | None = None
    logo_id: str | None = None
    logo_position: str = "top-left"
    frame_price: int = 0
    logo_price: int = 0


@dataclass(frozen=True)
class PricingSnapshot:
    """Price breakdown recorded when a payment is created."""

    capture_kind: CaptureKind
    clip_duration_seconds: int
    base_price: int
    frame_price: int
    logo_price: int
    total: int
    free_mode: bool


@dataclass(frozen=True)
class CaptureSession:
    """Authoritative record for one claim-to-release capture attempt."""

    session_id: UUID
    session_secret: str
    device_id: str
    tenant_id: str
    phase: SessionPhase
    created_at: datetime
    live_expires_at: datetime
    payment_phase: PaymentPhase = PaymentPhase.NONE
    capture_kind: CaptureKind | None = None
    clip_duration_seconds: int = 0
    selected_overlay: SelectedOverlay | None = None
    captured_at: datetime | None = None
    preview_ref: str | None = None
    original_ref: str | None = None
    legacy_artifact_ref: str | None = None
    preview_url: str | None = None
    delete_after: datetime | None = None
    paid: bool = False
    download_grant_id: str | None = None
    pricing_snapshot: PricingSnapshot | None = None
    checkout_id: str | None = None
    checkout_url: str | None = None
    payment_amount: int | None = None
    end_user_email: str | None = None
    ended_at: datetime | None = None

    @property
    def artifact_refs(self) -> list[str]:
        """Return every stored artifact path, preview first."""
        refs = [self.preview_ref, self.original_ref, self.legacy_artifact_ref]
        return [ref for ref in refs if ref]


@dataclass(frozen=True)
class SessionStatus:
    """Caller-facing view of a session."""

    session_id: UUID
    phase: SessionPhase
    payment_phase: PaymentPhase
    paid: bool
    preview_url: str | None
    capture_kind: CaptureKind | None
    clip_duration_seconds: int
    download_token: str | None


@dataclass(frozen=True)
class ClaimResult:
    """Result of claiming a device."""

    session_id: UUID
    session_secret: str
    tenant_id: str
    live_expires_at: datetime
