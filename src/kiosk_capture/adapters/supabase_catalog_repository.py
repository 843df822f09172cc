"""Supabase repositories for devices, overlay assets and tenant pricing."""

from dataclasses import dataclass

from supabase import Client

from kiosk_capture.domain.devices import Device
from kiosk_capture.domain.overlays import OverlayAsset, OverlayKind
from kiosk_capture.domain.payments import PricingSettings
from kiosk_capture.services.overlays import OverlayRepository
from kiosk_capture.services.pricing import PricingRepository
from kiosk_capture.services.sessions import DeviceRepository

_OVERLAY_COLUMNS = "asset_id, tenant_id, kind, blob_ref, is_paid, price, position, file_name"


@dataclass
class SupabaseDeviceRepository(DeviceRepository):
    """Supabase implementation for registered devices."""

    client: Client

    def get_device(self, device_id: str) -> Device | None:
        """Return a device by id, if present."""
        response = (
            self.client.table("devices")
            .select("device_id, tenant_id, ingest_url, status, subscription_active")
            .eq("device_id", device_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Device(
            device_id=row["device_id"],
            tenant_id=row["tenant_id"],
            ingest_url=row["ingest_url"],
            status=row.get("status") or "active",
            subscription_active=bool(row.get("subscription_active")),
        )


@dataclass
class SupabaseOverlayRepository(OverlayRepository):
    """Supabase implementation for overlay assets."""

    client: Client

    def get_asset(self, tenant_id: str, asset_id: str) -> OverlayAsset | None:
        """Return one of the tenant's overlay assets, if present."""
        response = (
            self.client.table("overlay_assets")
            .select(_OVERLAY_COLUMNS)
            .eq("tenant_id", tenant_id)
            .eq("asset_id", asset_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _asset_from_row(response.data[0])

    def list_assets(self, tenant_id: str) -> list[OverlayAsset]:
        """Return all overlay assets for a tenant."""
        response = (
            self.client.table("overlay_assets")
            .select(_OVERLAY_COLUMNS)
            .eq("tenant_id", tenant_id)
            .order("kind")
            .execute()
        )
        return [_asset_from_row(row) for row in response.data or []]


@dataclass
class SupabasePricingRepository(PricingRepository):
    """Supabase implementation for tenant price lists."""

    client: Client

    def get_pricing(self, tenant_id: str) -> PricingSettings | None:
        """Return the tenant's pricing, if configured."""
        response = (
            self.client.table("tenant_pricing")
            .select(
                "free_mode, photo_price, clip_short_price, clip_long_price, currency"
            )
            .eq("tenant_id", tenant_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        defaults = PricingSettings()
        return PricingSettings(
            free_mode=bool(row.get("free_mode")),
            photo_price=_price(row.get("photo_price"), defaults.photo_price),
            clip_short_price=_price(
                row.get("clip_short_price"), defaults.clip_short_price
            ),
            clip_long_price=_price(row.get("clip_long_price"), defaults.clip_long_price),
            currency=row.get("currency") or defaults.currency,
        )


def _price(value: object, default: int) -> int:
    if value is None:
        return default
    return max(int(value), 0)


def _asset_from_row(row: dict[str, object]) -> OverlayAsset:
    return OverlayAsset(
        asset_id=str(row["asset_id"]),
        tenant_id=str(row["tenant_id"]),
        kind=OverlayKind(row["kind"]),
        blob_ref=str(row["blob_ref"]),
        is_paid=bool(row.get("is_paid")),
        price=int(row.get("price") or 0),
        position=row.get("position"),
        file_name=row.get("file_name"),
    )
