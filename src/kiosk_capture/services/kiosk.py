"""Facade tying locks, sessions, previews, capture and payments together."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from kiosk_capture.domain.payments import (
    EventOutcome,
    GrantView,
    PaymentResult,
    Redemption,
)
from kiosk_capture.domain.sessions import (
    CaptureKind,
    CaptureSession,
    ClaimResult,
    SelectedOverlay,
    SessionPhase,
    SessionStatus,
)
from kiosk_capture.errors import PreconditionFailedError
from kiosk_capture.services.capture import CaptureResult, CaptureService
from kiosk_capture.services.downloads import DownloadService
from kiosk_capture.services.live_timeouts import LiveTimeouts
from kiosk_capture.services.overlays import OverlayService, snapshot_overlay
from kiosk_capture.services.payments import PaymentService
from kiosk_capture.services.sessions import SessionService
from kiosk_capture.services.streaming import LiveStreamSupervisor, stream_key

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResult:
    playlist: str
    ready: bool


@dataclass
class KioskService:
    """Entry point for every visitor-facing kiosk operation."""

    sessions: SessionService
    overlays: OverlayService
    streams: LiveStreamSupervisor
    capture_service: CaptureService
    payments: PaymentService
    downloads: DownloadService
    timeouts: LiveTimeouts
    playlist_wait_seconds: float = 20

    def claim(self, device_id: str) -> ClaimResult:
        return self.sessions.claim(device_id)

    async def start_preview(self, session_id: UUID, force: bool = False) -> PreviewResult:
        """Start (or with ``force`` restart) the live preview and arm the timer."""
        session = self._require_live(session_id)
        device = self.sessions.get_device(session.device_id)
        resolved = self.overlays.resolve_selected(
            session.tenant_id, session.selected_overlay
        )
        playlist = await self.streams.start(
            stream_key(session.tenant_id, session.device_id),
            device.ingest_url,
            overlay=None if resolved.is_empty else resolved,
            force=force,
        )
        ready = await self.streams.wait_for_playlist(
            playlist, self.playlist_wait_seconds
        )
        if not ready:
            _logger.warning(
                "Playlist not ready in time: session=%s playlist=%s",
                session_id,
                playlist,
            )
        self._arm_live_timer(session)
        return PreviewResult(playlist=playlist, ready=ready)

    async def select_overlay(
        self, session_id: UUID, frame_id: str | None, logo_id: str | None
    ) -> SelectedOverlay:
        """Store an overlay choice and restart a running preview with it."""
        session = self._require_live(session_id)
        resolved = self.overlays.resolve(session.tenant_id, frame_id, logo_id)
        selected = snapshot_overlay(resolved)
        self.sessions.transition(
            session_id,
            {SessionPhase.LIVE},
            SessionPhase.LIVE,
            selected_overlay=selected,
        )
        if self.streams.is_running(stream_key(session.tenant_id, session.device_id)):
            await self.start_preview(session_id, force=True)
        return selected

    async def capture(  # noqa: PLR0913
        self,
        session_id: UUID,
        kind: CaptureKind,
        duration: float | None = None,
        frame_id: str | None = None,
        logo_id: str | None = None,
    ) -> CaptureResult:
        """Capture for a live session; the live timer is paused meanwhile."""
        rearm = self.timeouts.cancel(session_id)
        try:
            return await self.capture_service.capture(
                session_id, kind, duration, frame_id, logo_id
            )
        except Exception:
            session = self.sessions.get(session_id)
            if rearm and session is not None and session.phase == SessionPhase.LIVE:
                self._arm_live_timer(session)
            raise

    def get_status(self, session_id: UUID) -> SessionStatus:
        return self.sessions.get_status(session_id)

    async def create_payment(
        self, session_id: UUID, email: str | None = None
    ) -> PaymentResult:
        return await self.payments.create_payment(session_id, email)

    async def handle_webhook(
        self, payload: bytes, signature: str | None
    ) -> EventOutcome:
        """Verify and apply a payment processor webhook delivery."""
        event = self.payments.payment_client.parse_event(payload, signature)
        outcome = await self.payments.handle_event(event)
        _logger.info(
            "Payment event handled: event=%s type=%s outcome=%s",
            event.event_id,
            event.event_type,
            outcome,
        )
        return outcome

    def open_download(self, token: str) -> GrantView:
        return self.downloads.open(token)

    def redeem(self, token: str, confirmation: str | None) -> Redemption:
        return self.downloads.redeem(token, confirmation)

    async def release(self, session_id: UUID) -> SessionStatus:
        """Stop the preview and free the device.

        A session still live is closed as cancelled; later phases keep theirs.
        """
        session = self.sessions.require(session_id)
        if session.phase == SessionPhase.CAPTURING:
            raise PreconditionFailedError("Capture in progress")
        self.timeouts.cancel(session_id)
        await self._stop_stream(session)
        if session.phase == SessionPhase.LIVE:
            self.sessions.cancel(session_id)
        self.sessions.locks.release_if_held_by(session.device_id, session_id)
        _logger.info("Session released: session=%s", session_id)
        return self.sessions.get_status(session_id)

    async def cancel(self, session_id: UUID) -> SessionStatus:
        """Abort a session and delete its artifacts."""
        session = self.sessions.require(session_id)
        self.timeouts.cancel(session_id)
        if session.phase == SessionPhase.LIVE:
            await self._stop_stream(session)
        self.sessions.cancel(session_id)
        return self.sessions.get_status(session_id)

    def list_overlays(self, device_id: str) -> list[dict[str, object]]:
        device = self.sessions.get_device(device_id)
        return self.overlays.list_overlays(device.tenant_id)

    async def on_live_timeout(self, session_id: UUID) -> bool:
        """Stop an idle preview and time the session out if still live."""
        session = self.sessions.get(session_id)
        if session is None or session.phase != SessionPhase.LIVE:
            return False
        await self._stop_stream(session)
        return self.sessions.expire_live(session_id)

    async def shutdown(self) -> None:
        self.timeouts.cancel_all()
        await self.streams.stop_all()

    def _require_live(self, session_id: UUID) -> CaptureSession:
        session = self.sessions.require(session_id)
        if session.phase != SessionPhase.LIVE:
            raise PreconditionFailedError(f"Session is {session.phase}, not live")
        if not self.sessions.locks.is_held_by(session.device_id, session_id):
            raise PreconditionFailedError("Session no longer holds the device")
        return session

    def _arm_live_timer(self, session: CaptureSession) -> None:
        # The deadline is fixed at claim time; previews and retries do not extend it.
        remaining = (session.live_expires_at - datetime.now(tz=UTC)).total_seconds()
        self.timeouts.arm(session.session_id, max(remaining, 0), self.on_live_timeout)

    async def _stop_stream(self, session: CaptureSession) -> None:
        await self.streams.stop(stream_key(session.tenant_id, session.device_id))
