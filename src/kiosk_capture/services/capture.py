"""One-shot photo/clip capture with overlay composition and previews."""

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

from kiosk_capture.adapters.ffmpeg_runner import MediaRunner
from kiosk_capture.domain.devices import Device
from kiosk_capture.domain.overlays import ResolvedOverlay
from kiosk_capture.domain.sessions import (
    CaptureKind,
    CaptureSession,
    PaymentPhase,
    SessionPhase,
)
from kiosk_capture.errors import KioskError, PreconditionFailedError
from kiosk_capture.services.media import clip_args, photo_args, preview_args
from kiosk_capture.services.overlays import OverlayService, snapshot_overlay
from kiosk_capture.services.sessions import SessionService
from kiosk_capture.services.storage import BlobStore, delete_quietly
from kiosk_capture.services.streaming import LiveStreamSupervisor, stream_key

_logger = logging.getLogger(__name__)

CLIP_DURATIONS = (3, 15)
DEFAULT_CLIP_DURATION = 3

_CONTENT_TYPES = {CaptureKind.PHOTO: "image/jpeg", CaptureKind.CLIP: "video/mp4"}


def artifact_extension(kind: CaptureKind | str | None) -> str:
    return "jpg" if kind == CaptureKind.PHOTO else "mp4"


def normalize_clip_duration(kind: CaptureKind, duration: float | None) -> int:
    """Snap a requested clip length to the nearest supported duration."""
    if kind == CaptureKind.PHOTO:
        return 0
    if duration is None:
        return DEFAULT_CLIP_DURATION
    return min(CLIP_DURATIONS, key=lambda supported: abs(supported - duration))


@dataclass(frozen=True)
class CaptureResult:
    session_id: UUID
    capture_kind: CaptureKind
    clip_duration_seconds: int
    original_ref: str
    preview_ref: str
    preview_url: str


@dataclass
class CaptureService:
    """Turns a live session into a captured one with stored artifacts."""

    sessions: SessionService
    overlays: OverlayService
    streams: LiveStreamSupervisor
    runner: MediaRunner
    blob_store: BlobStore
    watermark_text: str = "PREVIEW - NOT PAID"
    workdir: Path | None = None
    preview_url_ttl_seconds: int = 3600
    unpaid_retention_seconds: int = 3600

    async def capture(  # noqa: PLR0913
        self,
        session_id: UUID,
        kind: CaptureKind,
        duration: float | None = None,
        frame_id: str | None = None,
        logo_id: str | None = None,
    ) -> CaptureResult:
        """Capture a photo or clip for a live session.

        On failure the session is returned to ``live`` so the request can be
        re-issued; it is never advanced to ``captured`` without both refs.
        """
        session = self.sessions.require(session_id)
        if session.phase != SessionPhase.LIVE:
            raise PreconditionFailedError(f"Session is {session.phase}, not live")
        if not self.sessions.locks.is_held_by(session.device_id, session_id):
            raise PreconditionFailedError("Session no longer holds the device")

        seconds = normalize_clip_duration(kind, duration)
        if frame_id or logo_id:
            resolved = self.overlays.resolve(session.tenant_id, frame_id, logo_id)
        else:
            resolved = self.overlays.resolve_selected(
                session.tenant_id, session.selected_overlay
            )
        device = self.sessions.get_device(session.device_id)

        session = self.sessions.transition(
            session_id,
            {SessionPhase.LIVE},
            SessionPhase.CAPTURING,
            capture_kind=kind,
            clip_duration_seconds=seconds,
            selected_overlay=snapshot_overlay(resolved),
        )
        try:
            result = await self._produce(session, device, resolved)
        except Exception:
            self._revert(session_id)
            raise

        self.sessions.locks.release_if_held_by(session.device_id, session_id)
        _logger.info(
            "Capture complete: session=%s kind=%s duration=%s",
            session_id,
            kind,
            seconds,
        )
        return result

    async def _produce(
        self, session: CaptureSession, device: Device, resolved: ResolvedOverlay
    ) -> CaptureResult:
        kind = session.capture_kind or CaptureKind.PHOTO
        await self.streams.stop(stream_key(session.tenant_id, session.device_id))

        files = self.overlays.materialize(resolved)
        workdir = Path(tempfile.mkdtemp(prefix="kiosk_capture_", dir=self.workdir))
        try:
            ext = artifact_extension(kind)
            original_path = workdir / f"original.{ext}"
            preview_path = workdir / f"preview.{ext}"
            if kind == CaptureKind.PHOTO:
                args = photo_args(device.ingest_url, original_path, files)
            else:
                args = clip_args(
                    device.ingest_url,
                    original_path,
                    session.clip_duration_seconds,
                    files,
                )
            await self.runner.run(args)

            original_ref, preview_ref = _artifact_refs(session, ext)
            content_type = _CONTENT_TYPES[kind]
            self.blob_store.upload(
                original_ref, original_path.read_bytes(), content_type
            )
            try:
                await self.runner.run(
                    preview_args(
                        original_path,
                        preview_path,
                        self.watermark_text,
                        is_photo=kind == CaptureKind.PHOTO,
                    )
                )
                self.blob_store.upload(
                    preview_ref, preview_path.read_bytes(), content_type
                )
                preview_url = self.blob_store.create_signed_url(
                    preview_ref, self.preview_url_ttl_seconds
                )
                now = datetime.now(tz=UTC)
                self.sessions.transition(
                    session.session_id,
                    {SessionPhase.CAPTURING},
                    SessionPhase.CAPTURED,
                    original_ref=original_ref,
                    preview_ref=preview_ref,
                    preview_url=preview_url,
                    captured_at=now,
                    delete_after=now
                    + timedelta(seconds=self.unpaid_retention_seconds),
                    paid=False,
                    payment_phase=PaymentPhase.NONE,
                )
            except Exception:
                _logger.warning(
                    "Discarding unlinked artifacts: session=%s", session.session_id
                )
                delete_quietly(self.blob_store, [original_ref, preview_ref])
                raise
        finally:
            self.overlays.discard(files)
            shutil.rmtree(workdir, ignore_errors=True)

        return CaptureResult(
            session_id=session.session_id,
            capture_kind=kind,
            clip_duration_seconds=session.clip_duration_seconds,
            original_ref=original_ref,
            preview_ref=preview_ref,
            preview_url=preview_url,
        )

    def _revert(self, session_id: UUID) -> None:
        try:
            self.sessions.transition(
                session_id, {SessionPhase.CAPTURING}, SessionPhase.LIVE
            )
        except KioskError:
            _logger.warning(
                "Could not return session to live: session=%s",
                session_id,
                exc_info=True,
            )


def _artifact_refs(session: CaptureSession, ext: str) -> tuple[str, str]:
    """Return fresh (original, preview) paths; every attempt gets a new stamp."""
    stamp = int(time.time() * 1000)
    suffix = f"{session.tenant_id}/{session.device_id}/{session.session_id}-{stamp}.{ext}"
    return f"captures/original/{suffix}", f"captures/preview/{suffix}"
