"""Tests for pricing, checkout creation and payment event reconciliation."""

import asyncio
from uuid import UUID, uuid4

import pytest

from kiosk_capture.domain.payments import EventOutcome, PricingSettings
from kiosk_capture.domain.sessions import (
    CaptureKind,
    PaymentPhase,
    SelectedOverlay,
    SessionPhase,
)
from kiosk_capture.errors import PreconditionFailedError, UpstreamUnavailableError
from kiosk_capture.services.payments import (
    ASYNC_PAYMENT_FAILED,
    ASYNC_PAYMENT_SUCCEEDED,
    CHECKOUT_COMPLETED,
    CHECKOUT_EXPIRED,
)
from kiosk_capture.services.pricing import base_price, line_items
from tests.conftest import DEVICE_ID, TENANT_ID, KioskHarness, checkout_event


def _captured_session(
    harness: KioskHarness,
    kind: CaptureKind = CaptureKind.PHOTO,
    duration: int = 0,
    overlay: SelectedOverlay | None = None,
) -> UUID:
    service = harness.container.session_service
    claim = service.claim(DEVICE_ID)
    service.update(
        claim.session_id,
        phase=SessionPhase.CAPTURED,
        capture_kind=kind,
        clip_duration_seconds=duration,
        selected_overlay=overlay,
        original_ref="captures/original/a.jpg",
        preview_ref="captures/preview/a.jpg",
    )
    service.locks.release(DEVICE_ID)
    return claim.session_id


def test_base_price_by_kind_and_length() -> None:
    settings = PricingSettings()

    assert base_price(settings, CaptureKind.PHOTO, 0) == 100
    assert base_price(settings, CaptureKind.CLIP, 3) == 300
    assert base_price(settings, CaptureKind.CLIP, 15) == 500


def test_quote_includes_paid_overlays(harness: KioskHarness) -> None:
    session_id = _captured_session(
        harness,
        kind=CaptureKind.CLIP,
        duration=15,
        overlay=SelectedOverlay(frame_id="frame-gold", frame_price=200, logo_price=0),
    )
    pricing = harness.container.payment_service.pricing

    snapshot = pricing.quote(harness.session(session_id))

    assert snapshot.base_price == 500
    assert snapshot.total == 700
    assert [item.name for item in line_items(snapshot)] == [
        "Capture Video (15 sec)",
        "Premium Frame",
    ]


def test_free_mode_grants_download_immediately(
    harness: KioskHarness, free_mode: None
) -> None:
    session_id = _captured_session(harness)

    result = asyncio.run(
        harness.container.payment_service.create_payment(session_id, "a@b.test")
    )

    session = harness.session(session_id)
    assert result.free
    assert result.total == 0
    assert session.phase == SessionPhase.PAID
    assert session.paid
    assert session.download_grant_id == result.download_token
    assert session.delete_after == harness.grants.grants[result.download_token].expires_at
    assert harness.payments.requests == []
    assert harness.mail.sent[0][0] == "a@b.test"


def test_free_mode_still_charges_paid_overlays(
    harness: KioskHarness, free_mode: None
) -> None:
    session_id = _captured_session(
        harness, overlay=SelectedOverlay(logo_id="logo-shop", logo_price=100)
    )

    result = asyncio.run(harness.container.payment_service.create_payment(session_id))

    assert not result.free
    assert result.total == 100
    request = harness.payments.requests[0]
    assert [item.name for item in request.line_items] == ["Logo Overlay"]


def test_paid_session_opens_checkout(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)

    result = asyncio.run(harness.container.payment_service.create_payment(session_id))

    session = harness.session(session_id)
    request = harness.payments.requests[0]
    assert result.checkout_url == "https://checkout.test/cs_test_1"
    assert session.phase == SessionPhase.PENDING_PAYMENT
    assert session.payment_phase == PaymentPhase.PENDING
    assert session.checkout_id == "cs_test_1"
    assert session.payment_amount == 100
    assert request.metadata == {
        "session_id": str(session_id),
        "device_id": DEVICE_ID,
        "tenant_id": TENANT_ID,
    }
    assert request.success_url.endswith(f"/success?sessionId={session_id}")
    assert request.cancel_url.endswith("&canceled=1")


def test_payment_requires_captured_session(harness: KioskHarness) -> None:
    claim = harness.container.session_service.claim(DEVICE_ID)

    with pytest.raises(PreconditionFailedError):
        asyncio.run(harness.container.payment_service.create_payment(claim.session_id))


def test_checkout_failure_leaves_session_captured(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    harness.payments.fail = True

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(harness.container.payment_service.create_payment(session_id))
    assert harness.session(session_id).phase == SessionPhase.CAPTURED


def test_completed_event_marks_paid_once(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    service = harness.container.payment_service
    asyncio.run(service.create_payment(session_id))
    event = checkout_event(CHECKOUT_COMPLETED, session_id, email="buyer@b.test")

    first = asyncio.run(service.handle_event(event))
    second = asyncio.run(service.handle_event(event))

    session = harness.session(session_id)
    assert first == EventOutcome.APPLIED
    assert second == EventOutcome.DUPLICATE
    assert session.phase == SessionPhase.PAID
    assert session.payment_phase == PaymentPhase.PAID
    assert session.end_user_email == "buyer@b.test"
    assert len(harness.grants.grants) == 1
    assert len(harness.mail.sent) == 1


def test_second_success_event_does_not_mint_new_grant(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    service = harness.container.payment_service
    asyncio.run(service.handle_event(checkout_event(CHECKOUT_COMPLETED, session_id)))
    token = harness.session(session_id).download_grant_id

    outcome = asyncio.run(
        service.handle_event(
            checkout_event(ASYNC_PAYMENT_SUCCEEDED, session_id, event_id="evt_2")
        )
    )

    assert outcome == EventOutcome.IGNORED
    assert harness.session(session_id).download_grant_id == token
    assert len(harness.grants.grants) == 1


def test_unsettled_completion_is_ignored(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)

    outcome = asyncio.run(
        harness.container.payment_service.handle_event(
            checkout_event(CHECKOUT_COMPLETED, session_id, payment_status="unpaid")
        )
    )

    assert outcome == EventOutcome.IGNORED
    assert not harness.session(session_id).paid


@pytest.mark.parametrize(
    ("event_type", "phase", "payment_phase"),
    [
        (ASYNC_PAYMENT_FAILED, SessionPhase.PAYMENT_FAILED, PaymentPhase.FAILED),
        (CHECKOUT_EXPIRED, SessionPhase.EXPIRED, PaymentPhase.EXPIRED),
    ],
)
def test_failure_events_mark_unpaid(
    harness: KioskHarness,
    event_type: str,
    phase: SessionPhase,
    payment_phase: PaymentPhase,
) -> None:
    session_id = _captured_session(harness)
    service = harness.container.payment_service
    asyncio.run(service.create_payment(session_id))

    outcome = asyncio.run(service.handle_event(checkout_event(event_type, session_id)))

    session = harness.session(session_id)
    assert outcome == EventOutcome.APPLIED
    assert session.phase == phase
    assert session.payment_phase == payment_phase
    assert session.checkout_url is None


def test_failure_event_never_regresses_paid_session(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    service = harness.container.payment_service
    asyncio.run(service.handle_event(checkout_event(CHECKOUT_COMPLETED, session_id)))

    outcome = asyncio.run(
        service.handle_event(
            checkout_event(CHECKOUT_EXPIRED, session_id, event_id="evt_2")
        )
    )

    assert outcome == EventOutcome.IGNORED
    assert harness.session(session_id).phase == SessionPhase.PAID


def test_event_for_unknown_session_is_ignored(harness: KioskHarness) -> None:
    outcome = asyncio.run(
        harness.container.payment_service.handle_event(
            checkout_event(CHECKOUT_COMPLETED, uuid4())
        )
    )

    assert outcome == EventOutcome.IGNORED


def test_claim_failure_propagates_without_applying(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    harness.events.fail = True

    with pytest.raises(RuntimeError):
        asyncio.run(
            harness.container.payment_service.handle_event(
                checkout_event(CHECKOUT_COMPLETED, session_id)
            )
        )
    assert not harness.session(session_id).paid


def test_mail_failure_does_not_undo_payment(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    harness.mail.fail = True

    outcome = asyncio.run(
        harness.container.payment_service.handle_event(
            checkout_event(CHECKOUT_COMPLETED, session_id, email="a@b.test")
        )
    )

    assert outcome == EventOutcome.APPLIED
    assert harness.session(session_id).paid


def test_failed_apply_releases_claim_for_redelivery(harness: KioskHarness) -> None:
    session_id = _captured_session(harness)
    service = harness.container.payment_service
    asyncio.run(service.create_payment(session_id))
    event = checkout_event(CHECKOUT_COMPLETED, session_id)
    harness.grants.failed_creates = 1

    with pytest.raises(RuntimeError):
        asyncio.run(service.handle_event(event))
    assert harness.events.claimed == set()
    assert harness.session(session_id).phase == SessionPhase.PENDING_PAYMENT

    outcome = asyncio.run(service.handle_event(event))

    session = harness.session(session_id)
    assert outcome == EventOutcome.APPLIED
    assert session.phase == SessionPhase.PAID
    assert session.paid
    assert len(harness.grants.grants) == 1
    assert harness.events.claimed == {event.event_id}
