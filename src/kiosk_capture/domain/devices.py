"""Domain models for capture devices and their locks."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class Device:
    """A registered camera and the tenant that owns it."""

    device_id: str
    tenant_id: str
    ingest_url: str
    status: str = "active"
    subscription_active: bool = True

    @property
    def is_claimable(self) -> bool:
        """Return True when the device may start a new session."""
        return self.subscription_active and self.status.lower() != "offline"


@dataclass(frozen=True)
class DeviceLock:
    """Exclusive claim on a device held by one session."""

    device_id: str
    session_id: UUID
    acquired_at: datetime
