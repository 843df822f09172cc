"""Tests for the device lock table."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from kiosk_capture.domain.devices import DeviceLock
from kiosk_capture.services.locks import DeviceLockManager


def test_acquire_is_exclusive_per_device() -> None:
    locks = DeviceLockManager()
    first, second = uuid4(), uuid4()

    assert locks.acquire("cam-1", first)
    assert not locks.acquire("cam-1", second)
    assert locks.acquire("cam-2", second)
    assert locks.is_held_by("cam-1", first)
    assert not locks.is_held_by("cam-1", second)


def test_release_if_held_by_ignores_other_sessions() -> None:
    locks = DeviceLockManager()
    owner = uuid4()
    locks.acquire("cam-1", owner)

    assert not locks.release_if_held_by("cam-1", uuid4())
    assert locks.is_locked("cam-1")
    assert locks.release_if_held_by("cam-1", owner)
    assert not locks.is_locked("cam-1")
    assert locks.acquire("cam-1", uuid4())


def test_sweep_releases_only_stale_locks() -> None:
    locks = DeviceLockManager(ttl_seconds=60)
    locks.acquire("cam-old", uuid4())
    locks.acquire("cam-new", uuid4())
    now = datetime.now(tz=UTC)
    # Age one lock past the TTL.
    old = locks.get("cam-old")
    locks._locks["cam-old"] = DeviceLock(
        device_id=old.device_id,
        session_id=old.session_id,
        acquired_at=now - timedelta(seconds=120),
    )

    released = locks.sweep(now)

    assert released == ["cam-old"]
    assert not locks.is_locked("cam-old")
    assert locks.is_locked("cam-new")
