"""Price computation for captured sessions."""

from dataclasses import dataclass
from typing import Protocol

from kiosk_capture.domain.payments import CheckoutLineItem, PricingSettings
from kiosk_capture.domain.sessions import CaptureKind, CaptureSession, PricingSnapshot


class PricingRepository(Protocol):
    """Persistence interface for tenant price lists."""

    def get_pricing(self, tenant_id: str) -> PricingSettings | None:
        """Return the tenant's pricing, if configured."""


@dataclass
class PricingService:
    """Computes session totals from tenant pricing and paid overlays."""

    repository: PricingRepository

    def settings_for(self, tenant_id: str) -> PricingSettings:
        return self.repository.get_pricing(tenant_id) or PricingSettings()

    def quote(self, session: CaptureSession) -> PricingSnapshot:
        """Return the price breakdown for a captured session."""
        settings = self.settings_for(session.tenant_id)
        kind = session.capture_kind or CaptureKind.PHOTO
        base = 0 if settings.free_mode else base_price(
            settings, kind, session.clip_duration_seconds
        )
        overlay = session.selected_overlay
        frame_price = overlay.frame_price if overlay else 0
        logo_price = overlay.logo_price if overlay else 0
        return PricingSnapshot(
            capture_kind=kind,
            clip_duration_seconds=session.clip_duration_seconds,
            base_price=base,
            frame_price=frame_price,
            logo_price=logo_price,
            total=base + frame_price + logo_price,
            free_mode=settings.free_mode,
        )


def base_price(settings: PricingSettings, kind: CaptureKind, duration: int) -> int:
    """Return the list price for a capture kind and clip length."""
    if kind == CaptureKind.PHOTO:
        return settings.photo_price
    if duration >= 15:  # noqa: PLR2004
        return settings.clip_long_price
    return settings.clip_short_price


def line_items(snapshot: PricingSnapshot) -> list[CheckoutLineItem]:
    """Split a snapshot into checkout line items, skipping free parts."""
    if snapshot.capture_kind == CaptureKind.PHOTO:
        label = "Capture Photo"
    else:
        label = f"Capture Video ({snapshot.clip_duration_seconds} sec)"
    items = [
        CheckoutLineItem(name=label, amount=snapshot.base_price),
        CheckoutLineItem(name="Premium Frame", amount=snapshot.frame_price),
        CheckoutLineItem(name="Logo Overlay", amount=snapshot.logo_price),
    ]
    return [item for item in items if item.amount > 0]
