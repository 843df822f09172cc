"""Supabase-backed processed payment event markers."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from postgrest.exceptions import APIError
from supabase import Client

from kiosk_capture.services.payments import EventRepository

_logger = logging.getLogger(__name__)

_TABLE = "processed_payment_events"
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabasePaymentEventRepository(EventRepository):
    """Claims event ids through the table's primary key."""

    client: Client

    def claim_event(self, event_id: str) -> bool:
        """Insert the marker; a unique violation means it was already claimed."""
        try:
            self.client.table(_TABLE).insert(
                {
                    "event_id": event_id,
                    "processed_at": datetime.now(tz=UTC).isoformat(),
                }
            ).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                return False
            _logger.error("Failed to claim payment event: event=%s", event_id)
            raise
        return True

    def release_event(self, event_id: str) -> None:
        self.client.table(_TABLE).delete().eq("event_id", event_id).execute()
        _logger.info("Payment event claim released: event=%s", event_id)
