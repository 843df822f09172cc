"""Pydantic request and response models for the kiosk API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from kiosk_capture.domain.sessions import CaptureKind, SessionStatus


class ClaimResponse(BaseModel):
    """Returned when a device is claimed."""

    ok: bool = True
    session_id: UUID
    session_secret: str
    tenant_id: str
    live_expires_at: datetime


class PreviewRequest(BaseModel):
    force: bool = False


class PreviewResponse(BaseModel):
    ok: bool = True
    playlist: str
    hls_url: str
    ready: bool


class OverlayRequest(BaseModel):
    frame_id: str | None = None
    logo_id: str | None = None


class OverlayResponse(BaseModel):
    ok: bool = True
    frame_id: str | None
    logo_id: str | None
    logo_position: str
    frame_price: int
    logo_price: int


class CaptureRequest(BaseModel):
    """Capture options; clip durations are snapped to supported values."""

    kind: CaptureKind = CaptureKind.PHOTO
    duration: float | None = Field(default=None, ge=0)
    frame_id: str | None = None
    logo_id: str | None = None


class CaptureResponse(BaseModel):
    ok: bool = True
    session_id: UUID
    capture_kind: CaptureKind
    clip_duration_seconds: int
    preview_url: str


class PaymentRequest(BaseModel):
    email: str | None = None


class PaymentResponse(BaseModel):
    ok: bool = True
    free: bool
    total: int
    checkout_url: str | None = None
    download_token: str | None = None
    download_url: str | None = None


class StatusResponse(BaseModel):
    """Caller-facing session status."""

    ok: bool = True
    session_id: UUID
    phase: str
    payment_phase: str
    paid: bool
    preview_url: str | None = None
    capture_kind: CaptureKind | None = None
    clip_duration_seconds: int = 0
    download_token: str | None = None

    @classmethod
    def from_status(cls, status: SessionStatus) -> "StatusResponse":
        return cls(
            session_id=status.session_id,
            phase=str(status.phase),
            payment_phase=str(status.payment_phase),
            paid=status.paid,
            preview_url=status.preview_url,
            capture_kind=status.capture_kind,
            clip_duration_seconds=status.clip_duration_seconds,
            download_token=status.download_token,
        )


class OverlayItem(BaseModel):
    id: str
    kind: str
    file_name: str | None = None
    is_paid: bool
    price: int
    position: str | None = None
    preview_url: str


class OverlayListResponse(BaseModel):
    ok: bool = True
    overlays: list[OverlayItem]


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str
    state: str
