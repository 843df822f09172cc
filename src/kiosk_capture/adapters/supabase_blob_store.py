"""Supabase Storage blob store adapter."""

import logging
from dataclasses import dataclass

from supabase import Client

from kiosk_capture.errors import UpstreamUnavailableError
from kiosk_capture.services.storage import BlobStore

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseBlobStore(BlobStore):
    """Stores artifacts and overlay images in a Supabase Storage bucket."""

    client: Client
    bucket: str

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Upload bytes to a new path; existing objects are never overwritten."""
        try:
            self.client.storage.from_(self.bucket).upload(
                path,
                data,
                file_options={"content-type": content_type, "upsert": "false"},
            )
        except Exception as exc:
            _logger.error("Blob upload failed: path=%s", path)
            raise UpstreamUnavailableError("Failed to store capture") from exc

    def download(self, path: str) -> bytes:
        """Return the object bytes."""
        try:
            return self.client.storage.from_(self.bucket).download(path)
        except Exception as exc:
            _logger.error("Blob download failed: path=%s", path)
            raise UpstreamUnavailableError("Failed to read stored file") from exc

    def create_signed_url(
        self, path: str, expires_in: int, download_name: str | None = None
    ) -> str:
        """Return a signed URL, optionally forcing an attachment file name."""
        options = {"download": download_name} if download_name else None
        try:
            result = self.client.storage.from_(self.bucket).create_signed_url(
                path, expires_in, options=options
            )
        except Exception as exc:
            _logger.error("Signing blob URL failed: path=%s", path)
            raise UpstreamUnavailableError("Failed to sign file URL") from exc
        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise UpstreamUnavailableError("Storage returned no signed URL")
        return url

    def delete(self, path: str) -> None:
        """Remove an object; removing a missing object is a no-op."""
        self.client.storage.from_(self.bucket).remove([path])
