"""Payment creation and exactly-once reconciliation of processor events."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from kiosk_capture.domain.payments import (
    CheckoutRequest,
    CheckoutSession,
    EventOutcome,
    PaymentEvent,
    PaymentResult,
)
from kiosk_capture.domain.sessions import CaptureSession, PaymentPhase, SessionPhase
from kiosk_capture.errors import PreconditionFailedError
from kiosk_capture.services.downloads import DownloadService
from kiosk_capture.services.notifications import NotificationService
from kiosk_capture.services.pricing import PricingService, line_items
from kiosk_capture.services.sessions import SessionService

_logger = logging.getLogger(__name__)

PAYABLE_PHASES = frozenset({SessionPhase.CAPTURED, SessionPhase.PENDING_PAYMENT})

CHECKOUT_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"
CHECKOUT_EXPIRED = "checkout.session.expired"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"

_SETTLED_PAYMENT_STATUSES = frozenset({"paid", "no_payment_required"})


class PaymentClient(Protocol):
    """Interface for the hosted checkout processor."""

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        """Create a hosted checkout and return its id and URL."""

    def parse_event(self, payload: bytes, signature: str | None) -> PaymentEvent:
        """Verify a webhook payload and reduce it to a PaymentEvent."""


class EventRepository(Protocol):
    """Write-once markers for processed payment events."""

    def claim_event(self, event_id: str) -> bool:
        """Record an event id; return False if it was already recorded."""

    def release_event(self, event_id: str) -> None:
        """Forget a claimed event id so a redelivery is applied again."""


@dataclass
class PaymentService:
    """Prices captured sessions and applies payment processor events."""

    sessions: SessionService
    pricing: PricingService
    downloads: DownloadService
    payment_client: PaymentClient
    event_repository: EventRepository
    notifications: NotificationService
    frontend_base_url: str

    async def create_payment(
        self, session_id: UUID, email: str | None = None
    ) -> PaymentResult:
        """Grant a free download or open a hosted checkout for a session."""
        session = self.sessions.require(session_id)
        if session.paid or session.phase not in PAYABLE_PHASES:
            raise PreconditionFailedError(
                f"Session is {session.phase}, payment not possible"
            )

        snapshot = self.pricing.quote(session)
        email = email or session.end_user_email
        if snapshot.total == 0:
            grant = self.downloads.issue_grant(session_id)
            self.sessions.transition(
                session_id,
                PAYABLE_PHASES,
                SessionPhase.PAID,
                paid=True,
                payment_phase=PaymentPhase.PAID,
                pricing_snapshot=snapshot,
                payment_amount=0,
                download_grant_id=grant.token,
                delete_after=grant.expires_at,
                end_user_email=email,
            )
            _logger.info("Free download granted: session=%s", session_id)
            if email:
                await self._mail_link(email, grant.token, session, grant.expires_at)
            return PaymentResult(free=True, total=0, download_token=grant.token)

        settings = self.pricing.settings_for(session.tenant_id)
        base_url = self.frontend_base_url.rstrip("/")
        metadata = {
            "session_id": str(session_id),
            "device_id": session.device_id,
            "tenant_id": session.tenant_id,
        }
        checkout = await self.payment_client.create_checkout(
            CheckoutRequest(
                session_id=session_id,
                device_id=session.device_id,
                tenant_id=session.tenant_id,
                currency=settings.currency,
                line_items=line_items(snapshot),
                success_url=f"{base_url}/success?sessionId={session_id}",
                cancel_url=f"{base_url}/capture.html?sessionId={session_id}&canceled=1",
                customer_email=email,
                metadata=metadata,
            )
        )
        self.sessions.transition(
            session_id,
            PAYABLE_PHASES,
            SessionPhase.PENDING_PAYMENT,
            payment_phase=PaymentPhase.PENDING,
            checkout_id=checkout.checkout_id,
            checkout_url=checkout.url,
            payment_amount=snapshot.total,
            pricing_snapshot=snapshot,
            end_user_email=email,
        )
        _logger.info(
            "Checkout created: session=%s total=%s checkout=%s",
            session_id,
            snapshot.total,
            checkout.checkout_id,
        )
        return PaymentResult(free=False, total=snapshot.total, checkout_url=checkout.url)

    async def handle_event(self, event: PaymentEvent) -> EventOutcome:
        """Apply a verified processor event at most once.

        The claim comes first; if it raises, nothing is applied and the
        processor redelivers. If applying fails the claim is released so the
        redelivery is applied instead of being dropped as a duplicate.
        """
        if not self.event_repository.claim_event(event.event_id):
            _logger.info("Duplicate payment event ignored: event=%s", event.event_id)
            return EventOutcome.DUPLICATE

        try:
            return await self._apply(event)
        except Exception:
            _logger.exception(
                "Payment event failed, releasing claim: event=%s", event.event_id
            )
            self.event_repository.release_event(event.event_id)
            raise

    async def _apply(self, event: PaymentEvent) -> EventOutcome:
        session = self.sessions.get(event.session_id) if event.session_id else None
        if session is None:
            _logger.info(
                "Payment event without known session: event=%s type=%s",
                event.event_id,
                event.event_type,
            )
            return EventOutcome.IGNORED

        if event.event_type == CHECKOUT_COMPLETED:
            if event.payment_status not in _SETTLED_PAYMENT_STATUSES:
                _logger.info(
                    "Checkout completed, payment not settled: session=%s status=%s",
                    session.session_id,
                    event.payment_status,
                )
                return EventOutcome.IGNORED
            return await self._mark_paid(session, event)
        if event.event_type == ASYNC_PAYMENT_SUCCEEDED:
            return await self._mark_paid(session, event)
        if event.event_type in {ASYNC_PAYMENT_FAILED, PAYMENT_INTENT_FAILED}:
            return self._mark_unpaid(
                session, event, SessionPhase.PAYMENT_FAILED, PaymentPhase.FAILED
            )
        if event.event_type == CHECKOUT_EXPIRED:
            return self._mark_unpaid(
                session, event, SessionPhase.EXPIRED, PaymentPhase.EXPIRED
            )
        return EventOutcome.IGNORED

    async def _mark_paid(
        self, session: CaptureSession, event: PaymentEvent
    ) -> EventOutcome:
        if session.paid or session.phase == SessionPhase.PAID:
            _logger.info("Session already paid: session=%s", session.session_id)
            return EventOutcome.IGNORED
        if not session.original_ref:
            _logger.warning(
                "Payment arrived for session without artifact: session=%s",
                session.session_id,
            )

        grant = self.downloads.issue_grant(session.session_id)
        email = event.customer_email or session.end_user_email
        self.sessions.update(
            session.session_id,
            phase=SessionPhase.PAID,
            paid=True,
            payment_phase=PaymentPhase.PAID,
            download_grant_id=grant.token,
            delete_after=grant.expires_at,
            checkout_id=event.checkout_id or session.checkout_id,
            end_user_email=email,
        )
        _logger.info(
            "Session marked paid: session=%s via=%s",
            session.session_id,
            event.event_type,
        )
        if email:
            await self._mail_link(email, grant.token, session, grant.expires_at)
        return EventOutcome.APPLIED

    def _mark_unpaid(
        self,
        session: CaptureSession,
        event: PaymentEvent,
        phase: SessionPhase,
        payment_phase: PaymentPhase,
    ) -> EventOutcome:
        if session.paid or session.phase == SessionPhase.PAID:
            _logger.info(
                "Ignoring %s for paid session: session=%s",
                event.event_type,
                session.session_id,
            )
            return EventOutcome.IGNORED
        self.sessions.update(
            session.session_id,
            phase=phase,
            payment_phase=payment_phase,
            checkout_url=None,
        )
        _logger.info(
            "Session marked %s: session=%s via=%s reason=%s",
            phase,
            session.session_id,
            event.event_type,
            event.failure_message,
        )
        return EventOutcome.APPLIED

    async def _mail_link(self, email, token, session, expires_at) -> None:
        try:
            await self.notifications.send_download_link(
                email, token, session.capture_kind, expires_at
            )
        except Exception:
            _logger.exception(
                "Failed to mail download link: session=%s", session.session_id
            )
