"""Supabase-backed download grant repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from kiosk_capture.adapters.supabase_session_repository import parse_timestamp
from kiosk_capture.domain.payments import DownloadGrant
from kiosk_capture.services.downloads import GrantRepository

_TABLE = "download_grants"


@dataclass
class SupabaseGrantRepository(GrantRepository):
    """Supabase implementation for download grants."""

    client: Client

    def create_grant(self, grant: DownloadGrant) -> None:
        """Insert a grant row."""
        response = (
            self.client.table(_TABLE)
            .insert(
                {
                    "token": grant.token,
                    "session_id": str(grant.session_id),
                    "expires_at": grant.expires_at.isoformat(),
                    "max_uses": grant.max_uses,
                    "use_count": grant.use_count,
                    "created_at": grant.created_at.isoformat()
                    if grant.created_at
                    else None,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create download grant")

    def get_grant(self, token: str) -> DownloadGrant | None:
        """Return a grant by token, if present."""
        response = (
            self.client.table(_TABLE)
            .select("token, session_id, expires_at, max_uses, use_count, created_at, last_used_at")
            .eq("token", token)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return DownloadGrant(
            token=row["token"],
            session_id=UUID(row["session_id"]),
            expires_at=parse_timestamp(row["expires_at"]),
            max_uses=int(row["max_uses"]),
            use_count=int(row.get("use_count") or 0),
            created_at=parse_timestamp(row.get("created_at")),
            last_used_at=parse_timestamp(row.get("last_used_at")),
        )

    def increment_use_if(
        self, token: str, expected_use_count: int, used_at: datetime
    ) -> bool:
        """Conditionally bump the use count; an empty result means a lost race."""
        response = (
            self.client.table(_TABLE)
            .update(
                {
                    "use_count": expected_use_count + 1,
                    "last_used_at": used_at.isoformat(),
                }
            )
            .eq("token", token)
            .eq("use_count", expected_use_count)
            .execute()
        )
        return bool(response.data)
