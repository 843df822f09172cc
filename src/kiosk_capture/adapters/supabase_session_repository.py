"""Supabase-backed capture session repository."""

from collections.abc import Collection
from dataclasses import asdict, dataclass, fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from supabase import Client

from kiosk_capture.domain.sessions import (
    CaptureKind,
    CaptureSession,
    PaymentPhase,
    PricingSnapshot,
    SelectedOverlay,
    SessionPhase,
)
from kiosk_capture.services.sessions import SessionRepository

_TABLE = "capture_sessions"
_DUE_BATCH_SIZE = 200
_TIMESTAMP_FIELDS = {
    "created_at",
    "live_expires_at",
    "captured_at",
    "delete_after",
    "ended_at",
}


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for capture sessions."""

    client: Client

    def create_session(self, session: CaptureSession) -> None:
        """Insert a session row."""
        row = {item.name: to_column(getattr(session, item.name)) for item in fields(session)}
        response = self.client.table(_TABLE).insert(row).execute()
        if not response.data:
            raise RuntimeError("Failed to create capture session")

    def get_session(self, session_id: UUID) -> CaptureSession | None:
        """Return a session by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("session_id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return session_from_row(response.data[0])

    def update_session(self, session_id: UUID, changes: dict[str, object]) -> None:
        """Merge changes into a session row."""
        payload = {key: to_column(value) for key, value in changes.items()}
        payload["updated_at"] = datetime.now(tz=UTC).isoformat()
        self.client.table(_TABLE).update(payload).eq(
            "session_id", str(session_id)
        ).execute()

    def list_due(
        self, now: datetime, phases: Collection[SessionPhase]
    ) -> list[CaptureSession]:
        """Return a batch of sessions whose retention deadline has passed."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .in_("phase", [str(phase) for phase in phases])
            .lte("delete_after", now.isoformat())
            .order("delete_after")
            .limit(_DUE_BATCH_SIZE)
            .execute()
        )
        return [session_from_row(row) for row in response.data or []]


def to_column(value: object) -> object:
    """Convert a domain value into its JSON column representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return {key: to_column(item) for key, item in asdict(value).items()}
    return value


def parse_timestamp(value: object) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def session_from_row(row: dict[str, object]) -> CaptureSession:
    """Build a CaptureSession from a table row."""
    values = {item.name: row.get(item.name) for item in fields(CaptureSession)}
    for name in _TIMESTAMP_FIELDS:
        values[name] = parse_timestamp(values[name])
    values["session_id"] = UUID(str(values["session_id"]))
    values["phase"] = SessionPhase(values["phase"])
    values["payment_phase"] = PaymentPhase(values["payment_phase"] or "none")
    values["capture_kind"] = (
        CaptureKind(values["capture_kind"]) if values["capture_kind"] else None
    )
    values["clip_duration_seconds"] = int(values["clip_duration_seconds"] or 0)
    values["paid"] = bool(values["paid"])
    overlay = values["selected_overlay"]
    values["selected_overlay"] = SelectedOverlay(**overlay) if overlay else None
    snapshot = values["pricing_snapshot"]
    if snapshot:
        snapshot = dict(snapshot)
        snapshot["capture_kind"] = CaptureKind(snapshot["capture_kind"])
        values["pricing_snapshot"] = PricingSnapshot(**snapshot)
    else:
        values["pricing_snapshot"] = None
    return CaptureSession(**values)
