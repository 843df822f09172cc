"""Tests for download grants and confirmed redemption."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest

from kiosk_capture.domain.sessions import CaptureKind, SessionPhase
from kiosk_capture.errors import (
    GrantExhaustedError,
    GrantExpiredError,
    GrantInvalidError,
    PreconditionFailedError,
)
from kiosk_capture.services.cache import InMemoryCache
from tests.conftest import DEVICE_ID, KioskHarness


def _paid_session(harness: KioskHarness) -> tuple[UUID, str]:
    service = harness.container.session_service
    claim = service.claim(DEVICE_ID)
    grant = harness.container.download_service.issue_grant(claim.session_id)
    service.update(
        claim.session_id,
        phase=SessionPhase.PAID,
        paid=True,
        capture_kind=CaptureKind.CLIP,
        original_ref="captures/original/a.mp4",
        download_grant_id=grant.token,
    )
    return claim.session_id, grant.token


def test_open_does_not_consume_uses(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    downloads = harness.container.download_service

    first = downloads.open(token)
    second = downloads.open(token)

    assert first.remaining_uses == 3
    assert second.remaining_uses == 3
    assert first.confirmation != second.confirmation
    assert harness.grants.grants[token].use_count == 0


def test_redeem_signs_original_with_download_name(harness: KioskHarness) -> None:
    session_id, token = _paid_session(harness)
    downloads = harness.container.download_service

    redemption = downloads.redeem(token, downloads.open(token).confirmation)

    assert redemption.file_name == f"Capture_{session_id}.mp4"
    assert redemption.url.startswith("https://blobs.test/captures/original/a.mp4")
    assert harness.blobs.signed[-1] == (
        "captures/original/a.mp4",
        300,
        redemption.file_name,
    )
    assert harness.grants.grants[token].use_count == 1
    assert harness.grants.grants[token].last_used_at is not None


def test_grant_allows_exactly_max_uses(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    downloads = harness.container.download_service

    for _ in range(3):
        downloads.redeem(token, downloads.open(token).confirmation)

    with pytest.raises(GrantExhaustedError):
        downloads.open(token)
    assert harness.grants.grants[token].use_count == 3


def test_confirmation_is_single_use(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    downloads = harness.container.download_service
    confirmation = downloads.open(token).confirmation
    downloads.redeem(token, confirmation)

    with pytest.raises(GrantInvalidError):
        downloads.redeem(token, confirmation)
    assert harness.grants.grants[token].use_count == 1


@pytest.mark.parametrize("confirmation", [None, "", "nonce.forged"])
def test_redeem_without_valid_confirmation_consumes_nothing(
    harness: KioskHarness, confirmation: str | None
) -> None:
    _, token = _paid_session(harness)

    with pytest.raises(GrantInvalidError):
        harness.container.download_service.redeem(token, confirmation)
    assert harness.grants.grants[token].use_count == 0


def test_confirmation_is_bound_to_its_token(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    _, other_token = _paid_session_on(harness, "cam-2")
    downloads = harness.container.download_service

    with pytest.raises(GrantInvalidError):
        downloads.redeem(other_token, downloads.open(token).confirmation)


def _paid_session_on(harness: KioskHarness, device_id: str) -> tuple[UUID, str]:
    service = harness.container.session_service
    claim = service.claim(device_id)
    grant = harness.container.download_service.issue_grant(claim.session_id)
    service.update(
        claim.session_id,
        phase=SessionPhase.PAID,
        paid=True,
        original_ref="captures/original/b.jpg",
        capture_kind=CaptureKind.PHOTO,
    )
    return claim.session_id, grant.token


def test_expired_grant_is_rejected(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    grant = harness.grants.grants[token]
    harness.grants.grants[token] = replace(
        grant, expires_at=datetime.now(tz=UTC) - timedelta(seconds=1)
    )

    with pytest.raises(GrantExpiredError):
        harness.container.download_service.open(token)


def test_exhausted_wins_over_expired(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    grant = harness.grants.grants[token]
    harness.grants.grants[token] = replace(
        grant, use_count=3, expires_at=datetime.now(tz=UTC) - timedelta(seconds=1)
    )

    with pytest.raises(GrantExhaustedError):
        harness.container.download_service.open(token)


def test_grant_for_scrubbed_session_is_invalid(harness: KioskHarness) -> None:
    session_id, token = _paid_session(harness)
    harness.container.session_service.update(session_id, original_ref=None)

    with pytest.raises(GrantInvalidError):
        harness.container.download_service.open(token)
    with pytest.raises(GrantInvalidError):
        harness.container.download_service.open("unknown-token")


def test_redeem_retries_lost_increment_race(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    downloads = harness.container.download_service
    harness.grants.lost_races = 2

    downloads.redeem(token, downloads.open(token).confirmation)

    assert harness.grants.grants[token].use_count == 1


def test_redeem_gives_up_when_contended(harness: KioskHarness) -> None:
    _, token = _paid_session(harness)
    downloads = harness.container.download_service
    harness.grants.lost_races = 10

    with pytest.raises(PreconditionFailedError):
        downloads.redeem(token, downloads.open(token).confirmation)
    assert harness.grants.grants[token].use_count == 0


def test_cache_pop_is_single_read_and_purge_drops_expired() -> None:
    cache = InMemoryCache()
    cache.set("a", "1", ttl_seconds=60)
    cache.set("b", "2", ttl_seconds=0)

    assert cache.pop("a") == "1"
    assert cache.pop("a") is None
    assert cache.get("b") is None
    cache.set("c", "3", ttl_seconds=0)
    assert cache.purge() == 1
