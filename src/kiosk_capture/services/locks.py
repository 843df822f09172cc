"""In-memory device lock table."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from kiosk_capture.domain.devices import DeviceLock

_logger = logging.getLogger(__name__)


@dataclass
class DeviceLockManager:
    """Grants one session at a time exclusive use of a device.

    The table is process-local: a single supervisor instance owns every device
    it serves. Locks older than ``ttl_seconds`` are reaped by ``sweep`` so a
    crashed session can never hold a device forever.
    """

    ttl_seconds: float = 120
    _locks: dict[str, DeviceLock] = field(default_factory=dict)

    def acquire(self, device_id: str, session_id: UUID) -> bool:
        """Claim a device; return False when another session holds it."""
        if device_id in self._locks:
            return False
        self._locks[device_id] = DeviceLock(
            device_id=device_id,
            session_id=session_id,
            acquired_at=datetime.now(tz=UTC),
        )
        return True

    def release(self, device_id: str) -> None:
        """Drop the lock for a device, if any."""
        self._locks.pop(device_id, None)

    def release_if_held_by(self, device_id: str, session_id: UUID) -> bool:
        """Release only when ``session_id`` owns the lock."""
        if not self.is_held_by(device_id, session_id):
            return False
        self._locks.pop(device_id, None)
        return True

    def is_locked(self, device_id: str) -> bool:
        return device_id in self._locks

    def is_held_by(self, device_id: str, session_id: UUID) -> bool:
        lock = self._locks.get(device_id)
        if lock is None:
            return False
        return lock.session_id == session_id

    def get(self, device_id: str) -> DeviceLock | None:
        return self._locks.get(device_id)

    def sweep(self, now: datetime | None = None) -> list[str]:
        """Remove locks older than the TTL and return their device ids."""
        current = now or datetime.now(tz=UTC)
        cutoff = current - timedelta(seconds=self.ttl_seconds)
        stale = [
            device_id
            for device_id, lock in self._locks.items()
            if lock.acquired_at < cutoff
        ]
        for device_id in stale:
            _logger.warning("Stale device lock released: device=%s", device_id)
            self._locks.pop(device_id, None)
        return stale
