"""Session state machine for kiosk capture sessions."""

import logging
import secrets
from collections.abc import Collection
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID, uuid4

from kiosk_capture.domain.devices import Device
from kiosk_capture.domain.sessions import (
    CaptureSession,
    ClaimResult,
    SessionPhase,
    SessionStatus,
)
from kiosk_capture.errors import (
    DeviceBusyError,
    DeviceNotFoundError,
    DeviceUnavailableError,
    PreconditionFailedError,
    SessionNotFoundError,
    UpstreamUnavailableError,
)
from kiosk_capture.services.locks import DeviceLockManager
from kiosk_capture.services.storage import BlobStore, delete_quietly

_logger = logging.getLogger(__name__)

CANCELLABLE_PHASES = frozenset(
    {SessionPhase.LIVE, SessionPhase.CAPTURED, SessionPhase.PENDING_PAYMENT}
)


class SessionRepository(Protocol):
    """Persistence interface for capture sessions."""

    def create_session(self, session: CaptureSession) -> None:
        """Persist a new session."""

    def get_session(self, session_id: UUID) -> CaptureSession | None:
        """Return a session by id, if present."""

    def update_session(self, session_id: UUID, changes: dict[str, object]) -> None:
        """Merge the given field changes into a session."""

    def list_due(
        self, now: datetime, phases: Collection[SessionPhase]
    ) -> list[CaptureSession]:
        """Return sessions in ``phases`` whose ``delete_after`` has passed."""


class DeviceRepository(Protocol):
    """Read-only access to registered devices."""

    def get_device(self, device_id: str) -> Device | None:
        """Return a device by id, if present."""


@dataclass
class SessionService:
    """Owns session creation and guarded phase transitions."""

    session_repository: SessionRepository
    device_repository: DeviceRepository
    locks: DeviceLockManager
    blob_store: BlobStore
    live_timeout_seconds: float = 60
    unpaid_retention_seconds: int = 3600

    def get_device(self, device_id: str) -> Device:
        """Return a registered device or raise DeviceNotFoundError."""
        device = self.device_repository.get_device(device_id)
        if device is None:
            raise DeviceNotFoundError()
        return device

    def claim(self, device_id: str) -> ClaimResult:
        """Lock a device and open a live session on it."""
        device = self.get_device(device_id)
        if not device.is_claimable:
            _logger.info("Claim rejected, device unavailable: device=%s", device_id)
            raise DeviceUnavailableError()

        session_id = uuid4()
        if not self.locks.acquire(device_id, session_id):
            _logger.info("Claim rejected, device busy: device=%s", device_id)
            raise DeviceBusyError()

        now = datetime.now(tz=UTC)
        live_expires_at = now + timedelta(seconds=self.live_timeout_seconds)
        session = CaptureSession(
            session_id=session_id,
            session_secret=secrets.token_urlsafe(24),
            device_id=device_id,
            tenant_id=device.tenant_id,
            phase=SessionPhase.LIVE,
            created_at=now,
            live_expires_at=live_expires_at,
            delete_after=live_expires_at
            + timedelta(seconds=self.unpaid_retention_seconds),
        )
        try:
            self.session_repository.create_session(session)
        except Exception as exc:
            self.locks.release_if_held_by(device_id, session_id)
            _logger.exception("Failed to persist session: device=%s", device_id)
            raise UpstreamUnavailableError("Failed to create session") from exc

        _logger.info("Session claimed: session=%s device=%s", session_id, device_id)
        return ClaimResult(
            session_id=session_id,
            session_secret=session.session_secret,
            tenant_id=device.tenant_id,
            live_expires_at=live_expires_at,
        )

    def get(self, session_id: UUID) -> CaptureSession | None:
        return self.session_repository.get_session(session_id)

    def require(self, session_id: UUID) -> CaptureSession:
        """Return a session or raise SessionNotFoundError."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError()
        return session

    def transition(
        self,
        session_id: UUID,
        expected: Collection[SessionPhase],
        new_phase: SessionPhase,
        **changes: object,
    ) -> CaptureSession:
        """Move a session to ``new_phase`` if it is currently in ``expected``.

        The current phase is re-read first; a mismatch raises
        PreconditionFailedError and nothing is written.
        """
        session = self.require(session_id)
        if session.phase not in expected:
            _logger.info(
                "Transition rejected: session=%s phase=%s target=%s",
                session_id,
                session.phase,
                new_phase,
            )
            raise PreconditionFailedError(
                f"Session is {session.phase}, cannot move to {new_phase}"
            )
        changes["phase"] = new_phase
        self.session_repository.update_session(session_id, changes)
        _logger.info(
            "Session transitioned: session=%s %s -> %s",
            session_id,
            session.phase,
            new_phase,
        )
        return replace(session, **changes)

    def update(self, session_id: UUID, **changes: object) -> None:
        """Merge field changes without a phase check."""
        self.session_repository.update_session(session_id, changes)

    def get_status(self, session_id: UUID) -> SessionStatus:
        """Return the caller-facing status; the token is shown only once paid."""
        session = self.require(session_id)
        return SessionStatus(
            session_id=session.session_id,
            phase=session.phase,
            payment_phase=session.payment_phase,
            paid=session.paid,
            preview_url=session.preview_url,
            capture_kind=session.capture_kind,
            clip_duration_seconds=session.clip_duration_seconds,
            download_token=session.download_grant_id if session.paid else None,
        )

    def expire_live(self, session_id: UUID) -> bool:
        """Time out a session that is still live; return False otherwise."""
        session = self.get(session_id)
        if session is None or session.phase != SessionPhase.LIVE:
            return False
        try:
            self.transition(
                session_id,
                {SessionPhase.LIVE},
                SessionPhase.TIMEOUT,
                ended_at=datetime.now(tz=UTC),
            )
        except PreconditionFailedError:
            return False
        self.locks.release_if_held_by(session.device_id, session_id)
        _logger.info("Live session timed out: session=%s", session_id)
        return True

    def cancel(self, session_id: UUID) -> CaptureSession:
        """Abort a session, deleting whatever artifacts it produced.

        Refs whose deletion failed stay on the record so the retention
        sweep can retry them.
        """
        session = self.require(session_id)
        if session.phase not in CANCELLABLE_PHASES or session.paid:
            raise PreconditionFailedError(f"Session is {session.phase}, cannot cancel")

        failed = set(delete_quietly(self.blob_store, session.artifact_refs))
        cancelled = self.transition(
            session_id,
            CANCELLABLE_PHASES,
            SessionPhase.CANCELLED,
            preview_url=None,
            preview_ref=_keep_if(session.preview_ref, failed),
            original_ref=_keep_if(session.original_ref, failed),
            legacy_artifact_ref=_keep_if(session.legacy_artifact_ref, failed),
            checkout_url=None,
            ended_at=datetime.now(tz=UTC),
        )
        self.locks.release_if_held_by(session.device_id, session_id)
        return cancelled


def _keep_if(ref: str | None, failed: set[str]) -> str | None:
    return ref if ref in failed else None
