"""Download grants: issuing, confirmation and count-limited redemption."""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from kiosk_capture.domain.payments import DownloadGrant, GrantView, Redemption
from kiosk_capture.domain.sessions import CaptureSession
from kiosk_capture.errors import (
    GrantExhaustedError,
    GrantExpiredError,
    GrantInvalidError,
    PreconditionFailedError,
)
from kiosk_capture.services.cache import Cache
from kiosk_capture.services.capture import artifact_extension
from kiosk_capture.services.sessions import SessionService
from kiosk_capture.services.storage import BlobStore

_logger = logging.getLogger(__name__)

_MAX_REDEEM_ATTEMPTS = 5


class GrantRepository(Protocol):
    """Persistence interface for download grants."""

    def create_grant(self, grant: DownloadGrant) -> None:
        """Persist a new grant."""

    def get_grant(self, token: str) -> DownloadGrant | None:
        """Return a grant by token, if present."""

    def increment_use_if(
        self, token: str, expected_use_count: int, used_at: datetime
    ) -> bool:
        """Bump ``use_count`` only if it still equals ``expected_use_count``."""


@dataclass
class DownloadService:
    """Issues grants and redeems them against the original artifact."""

    grant_repository: GrantRepository
    sessions: SessionService
    blob_store: BlobStore
    confirmations: Cache
    signing_secret: str
    grant_ttl_seconds: int = 3600
    grant_max_uses: int = 3
    confirmation_ttl_seconds: int = 3600
    download_url_ttl_seconds: int = 300

    def issue_grant(self, session_id: UUID) -> DownloadGrant:
        """Mint a fresh grant for a session."""
        now = datetime.now(tz=UTC)
        grant = DownloadGrant(
            token=secrets.token_hex(24),
            session_id=session_id,
            expires_at=now + timedelta(seconds=self.grant_ttl_seconds),
            max_uses=self.grant_max_uses,
            created_at=now,
        )
        self.grant_repository.create_grant(grant)
        _logger.info(
            "Download grant issued: session=%s max_uses=%s",
            session_id,
            grant.max_uses,
        )
        return grant

    def open(self, token: str) -> GrantView:
        """Validate a grant without consuming it and hand out a confirmation."""
        grant = self.grant_repository.get_grant(token)
        self._validate(grant, datetime.now(tz=UTC))
        nonce = secrets.token_hex(16)
        confirmation = f"{nonce}.{self._sign(token, nonce)}"
        self.confirmations.set(confirmation, token, self.confirmation_ttl_seconds)
        return GrantView(
            token=token,
            expires_at=grant.expires_at,
            remaining_uses=grant.remaining_uses,
            confirmation=confirmation,
        )

    def redeem(self, token: str, confirmation: str | None) -> Redemption:
        """Consume one use of a grant and return a signed original URL.

        The confirmation must have been issued by ``open`` for this token and
        is spent whether or not the redemption succeeds.
        """
        if not self._consume_confirmation(token, confirmation):
            _logger.info("Redemption without valid confirmation: token=%s", token[:8])
            raise GrantInvalidError("Please open the download link again.")

        redemption: Redemption | None = None
        for _ in range(_MAX_REDEEM_ATTEMPTS):
            now = datetime.now(tz=UTC)
            grant = self.grant_repository.get_grant(token)
            session = self._validate(grant, now)
            if redemption is None:
                redemption = self._sign_original(session)
            if self.grant_repository.increment_use_if(token, grant.use_count, now):
                _logger.info(
                    "Download redeemed: session=%s use=%s/%s",
                    session.session_id,
                    grant.use_count + 1,
                    grant.max_uses,
                )
                return redemption
        raise PreconditionFailedError("Download link is busy, please try again")

    def _validate(self, grant: DownloadGrant | None, now: datetime) -> CaptureSession:
        if grant is None:
            raise GrantInvalidError()
        if grant.use_count >= grant.max_uses:
            raise GrantExhaustedError()
        if now >= grant.expires_at:
            raise GrantExpiredError()
        session = self.sessions.get(grant.session_id)
        if session is None or not session.paid or not session.original_ref:
            raise GrantInvalidError()
        return session

    def _sign_original(self, session: CaptureSession) -> Redemption:
        file_name = (
            f"Capture_{session.session_id}.{artifact_extension(session.capture_kind)}"
        )
        url = self.blob_store.create_signed_url(
            session.original_ref,
            self.download_url_ttl_seconds,
            download_name=file_name,
        )
        return Redemption(url=url, file_name=file_name)

    def _consume_confirmation(self, token: str, confirmation: str | None) -> bool:
        if not confirmation:
            return False
        bound = self.confirmations.pop(confirmation)
        nonce, _, signature = confirmation.partition(".")
        if bound != token or not signature:
            return False
        return hmac.compare_digest(signature, self._sign(token, nonce))

    def _sign(self, token: str, nonce: str) -> str:
        return hmac.new(
            self.signing_secret.encode(),
            f"{token}:{nonce}".encode(),
            hashlib.sha256,
        ).hexdigest()
