"""Retention sweep for expired capture sessions."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from kiosk_capture.domain.sessions import TERMINAL_PHASES, PaymentPhase, SessionPhase
from kiosk_capture.services.sessions import SessionRepository
from kiosk_capture.services.storage import BlobStore, delete_quietly

_logger = logging.getLogger(__name__)

# Stale sessions in non-terminal phases are swept too once their deadline passes.
SWEEPABLE_PHASES = TERMINAL_PHASES | {
    SessionPhase.LIVE,
    SessionPhase.CAPTURING,
    SessionPhase.CAPTURED,
    SessionPhase.PENDING_PAYMENT,
}


@dataclass
class CleanupService:
    """Deletes artifacts past their deadline and scrubs the session record."""

    session_repository: SessionRepository
    blob_store: BlobStore

    def sweep(self, now: datetime | None = None) -> int:
        """Expire every due session and return how many were scrubbed.

        Failed deletes are logged and skipped; the record is scrubbed anyway.
        """
        current = now or datetime.now(tz=UTC)
        scrubbed = 0
        for session in self.session_repository.list_due(current, SWEEPABLE_PHASES):
            if session.phase == SessionPhase.EXPIRED and not session.artifact_refs:
                continue
            failed = delete_quietly(self.blob_store, session.artifact_refs)
            self.session_repository.update_session(
                session.session_id,
                {
                    "phase": SessionPhase.EXPIRED,
                    "paid": False,
                    "payment_phase": PaymentPhase.EXPIRED,
                    "preview_ref": None,
                    "original_ref": None,
                    "legacy_artifact_ref": None,
                    "preview_url": None,
                    "download_grant_id": None,
                    "checkout_url": None,
                    "ended_at": session.ended_at or current,
                },
            )
            scrubbed += 1
            _logger.info(
                "Session expired by retention: session=%s failed_deletes=%s",
                session.session_id,
                len(failed),
            )
        if scrubbed:
            _logger.info("Retention sweep finished: expired=%s", scrubbed)
        return scrubbed
