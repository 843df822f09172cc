"""Visitor-facing kiosk endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, HTTPException, Request, status

from kiosk_capture.api.models import (
    CaptureRequest,
    CaptureResponse,
    ClaimResponse,
    OverlayListResponse,
    OverlayRequest,
    OverlayResponse,
    PaymentRequest,
    PaymentResponse,
    PreviewRequest,
    PreviewResponse,
    StatusResponse,
)
from kiosk_capture.config import sanitize_id

if TYPE_CHECKING:
    from kiosk_capture.containers import AppContainer

router = APIRouter(prefix="/public", tags=["public"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def _device_id(raw: str | None) -> str:
    device_id = sanitize_id(raw)
    if not device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing device_id"
        )
    return device_id


@router.post("/session")
async def claim_session(request: Request, device_id: str | None = None) -> ClaimResponse:
    """Claim a device and open a live session."""
    result = _container(request).kiosk_service.claim(_device_id(device_id))
    return ClaimResponse(
        session_id=result.session_id,
        session_secret=result.session_secret,
        tenant_id=result.tenant_id,
        live_expires_at=result.live_expires_at,
    )


@router.post("/sessions/{session_id}/preview")
async def start_preview(
    session_id: UUID, request: Request, body: PreviewRequest | None = None
) -> PreviewResponse:
    """Start or restart the live preview."""
    force = body.force if body else False
    preview = await _container(request).kiosk_service.start_preview(session_id, force)
    return PreviewResponse(
        playlist=preview.playlist,
        hls_url=f"/hls/{preview.playlist}",
        ready=preview.ready,
    )


@router.post("/sessions/{session_id}/overlay")
async def select_overlay(
    session_id: UUID, body: OverlayRequest, request: Request
) -> OverlayResponse:
    """Store the overlay selection, restarting a running preview."""
    selected = await _container(request).kiosk_service.select_overlay(
        session_id, body.frame_id, body.logo_id
    )
    return OverlayResponse(
        frame_id=selected.frame_id,
        logo_id=selected.logo_id,
        logo_position=selected.logo_position,
        frame_price=selected.frame_price,
        logo_price=selected.logo_price,
    )


@router.post("/sessions/{session_id}/capture")
async def capture(
    session_id: UUID, body: CaptureRequest, request: Request
) -> CaptureResponse:
    """Capture a photo or clip."""
    result = await _container(request).kiosk_service.capture(
        session_id,
        body.kind,
        duration=body.duration,
        frame_id=body.frame_id,
        logo_id=body.logo_id,
    )
    return CaptureResponse(
        session_id=result.session_id,
        capture_kind=result.capture_kind,
        clip_duration_seconds=result.clip_duration_seconds,
        preview_url=result.preview_url,
    )


@router.get("/sessions/{session_id}")
async def session_status(session_id: UUID, request: Request) -> StatusResponse:
    """Return session status; the download token appears once paid."""
    return StatusResponse.from_status(
        _container(request).kiosk_service.get_status(session_id)
    )


@router.post("/sessions/{session_id}/payment")
async def create_payment(
    session_id: UUID, request: Request, body: PaymentRequest | None = None
) -> PaymentResponse:
    """Grant a free download or return a checkout URL."""
    container = _container(request)
    result = await container.kiosk_service.create_payment(
        session_id, body.email if body else None
    )
    download_url = None
    if result.download_token:
        download_url = container.notification_service.download_url(
            result.download_token
        )
    return PaymentResponse(
        free=result.free,
        total=result.total,
        checkout_url=result.checkout_url,
        download_token=result.download_token,
        download_url=download_url,
    )


@router.post("/sessions/{session_id}/release")
async def release(session_id: UUID, request: Request) -> StatusResponse:
    """Stop the preview and free the device."""
    return StatusResponse.from_status(
        await _container(request).kiosk_service.release(session_id)
    )


@router.post("/sessions/{session_id}/cancel")
async def cancel(session_id: UUID, request: Request) -> StatusResponse:
    """Abort the session and delete its artifacts."""
    return StatusResponse.from_status(
        await _container(request).kiosk_service.cancel(session_id)
    )


@router.get("/overlays")
async def list_overlays(
    request: Request, device_id: str | None = None
) -> OverlayListResponse:
    """Return the overlay catalogue for a device's tenant."""
    overlays = _container(request).kiosk_service.list_overlays(_device_id(device_id))
    return OverlayListResponse(overlays=overlays)
