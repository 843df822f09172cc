"""Overlay catalogue, validation and local materialization."""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from kiosk_capture.domain.overlays import (
    DEFAULT_LOGO_POSITION,
    OverlayAsset,
    OverlayFiles,
    OverlayKind,
    ResolvedOverlay,
)
from kiosk_capture.domain.sessions import SelectedOverlay
from kiosk_capture.errors import InvalidOverlayError, UpstreamUnavailableError
from kiosk_capture.services.storage import BlobStore

_logger = logging.getLogger(__name__)


class OverlayRepository(Protocol):
    """Persistence interface for tenant overlay assets."""

    def get_asset(self, tenant_id: str, asset_id: str) -> OverlayAsset | None:
        """Return an overlay asset by id, if present."""

    def list_assets(self, tenant_id: str) -> list[OverlayAsset]:
        """Return all overlay assets for a tenant."""


@dataclass
class OverlayService:
    """Resolves overlay selections and fetches their images for ffmpeg."""

    repository: OverlayRepository
    blob_store: BlobStore
    preview_url_ttl_seconds: int = 3600

    def list_overlays(self, tenant_id: str) -> list[dict[str, object]]:
        """Return the tenant's overlays with signed preview URLs."""
        overlays = []
        for asset in self.repository.list_assets(tenant_id):
            overlays.append(
                {
                    "id": asset.asset_id,
                    "kind": str(asset.kind),
                    "file_name": asset.file_name,
                    "is_paid": asset.is_paid,
                    "price": asset.price,
                    "position": asset.position,
                    "preview_url": self.blob_store.create_signed_url(
                        asset.blob_ref, self.preview_url_ttl_seconds
                    ),
                }
            )
        return overlays

    def resolve(
        self, tenant_id: str, frame_id: str | None, logo_id: str | None
    ) -> ResolvedOverlay:
        """Load and validate a frame/logo selection."""
        frame = self._load(tenant_id, frame_id, OverlayKind.FRAME)
        logo = self._load(tenant_id, logo_id, OverlayKind.LOGO)
        position = (logo.position if logo else None) or DEFAULT_LOGO_POSITION
        return ResolvedOverlay(frame=frame, logo=logo, logo_position=position)

    def resolve_selected(
        self, tenant_id: str, selected: SelectedOverlay | None
    ) -> ResolvedOverlay:
        """Resolve a selection previously stored on a session."""
        if selected is None:
            return ResolvedOverlay()
        resolved = self.resolve(tenant_id, selected.frame_id, selected.logo_id)
        return ResolvedOverlay(
            frame=resolved.frame,
            logo=resolved.logo,
            logo_position=selected.logo_position or resolved.logo_position,
        )

    def materialize(self, resolved: ResolvedOverlay) -> OverlayFiles | None:
        """Download the selected images into a fresh temp directory."""
        if resolved.is_empty:
            return None
        workdir = Path(tempfile.mkdtemp(prefix="kiosk_overlay_"))
        try:
            frame_path = self._fetch(resolved.frame, workdir)
            logo_path = self._fetch(resolved.logo, workdir)
        except Exception as exc:
            shutil.rmtree(workdir, ignore_errors=True)
            raise UpstreamUnavailableError("Failed to fetch overlay images") from exc
        return OverlayFiles(
            workdir=workdir,
            frame_path=frame_path,
            logo_path=logo_path,
            logo_position=resolved.logo_position,
        )

    def discard(self, files: OverlayFiles | None) -> None:
        """Remove local overlay copies."""
        if files is not None:
            shutil.rmtree(files.workdir, ignore_errors=True)

    def _load(
        self, tenant_id: str, asset_id: str | None, kind: OverlayKind
    ) -> OverlayAsset | None:
        if not asset_id:
            return None
        asset = self.repository.get_asset(tenant_id, asset_id)
        if asset is None:
            raise InvalidOverlayError(f"Unknown {kind} id: {asset_id}")
        if asset.kind != kind:
            raise InvalidOverlayError(f"Selected {kind} id is not a {kind}")
        return asset

    def _fetch(self, asset: OverlayAsset | None, workdir: Path) -> Path | None:
        if asset is None:
            return None
        target = workdir / f"{asset.kind}_{asset.asset_id}.png"
        target.write_bytes(self.blob_store.download(asset.blob_ref))
        _logger.info("Overlay fetched: kind=%s asset=%s", asset.kind, asset.asset_id)
        return target


def snapshot_overlay(resolved: ResolvedOverlay) -> SelectedOverlay:
    """Build the session snapshot for a resolved overlay, including prices."""
    return SelectedOverlay(
        frame_id=resolved.frame.asset_id if resolved.frame else None,
        logo_id=resolved.logo.asset_id if resolved.logo else None,
        logo_position=resolved.logo_position,
        frame_price=resolved.frame.effective_price if resolved.frame else 0,
        logo_price=resolved.logo.effective_price if resolved.logo else 0,
    )
