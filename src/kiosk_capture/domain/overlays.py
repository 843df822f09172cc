"""Overlay asset models."""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


class OverlayKind(StrEnum):
    FRAME = "frame"
    LOGO = "logo"


class LogoPosition(StrEnum):
    """Named anchors for logo placement."""

    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    TOP_RIGHT = "top-right"
    MIDDLE_LEFT = "middle-left"
    MIDDLE_RIGHT = "middle-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"


DEFAULT_LOGO_POSITION = LogoPosition.TOP_LEFT


@dataclass(frozen=True)
class OverlayAsset:
    """Frame or logo image owned by a tenant."""

    asset_id: str
    tenant_id: str
    kind: OverlayKind
    blob_ref: str
    is_paid: bool = False
    price: int = 0
    position: str | None = None
    file_name: str | None = None

    @property
    def effective_price(self) -> int:
        """Return the price charged when this asset is used."""
        return self.price if self.is_paid else 0


@dataclass(frozen=True)
class ResolvedOverlay:
    """Validated overlay selection for a composition."""

    frame: OverlayAsset | None = None
    logo: OverlayAsset | None = None
    logo_position: str = DEFAULT_LOGO_POSITION

    @property
    def is_empty(self) -> bool:
        return self.frame is None and self.logo is None


@dataclass(frozen=True)
class OverlayFiles:
    """Local copies of overlay images used by ffmpeg."""

    workdir: Path
    frame_path: Path | None = None
    logo_path: Path | None = None
    logo_position: str = DEFAULT_LOGO_POSITION
