"""Blob storage interface and best-effort helpers."""

import logging
from collections.abc import Iterable
from typing import Protocol

_logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Interface for artifact and overlay object storage."""

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store bytes at a new object path."""

    def download(self, path: str) -> bytes:
        """Return the bytes stored at a path."""

    def create_signed_url(
        self, path: str, expires_in: int, download_name: str | None = None
    ) -> str:
        """Return a time-boxed retrieval URL for a path."""

    def delete(self, path: str) -> None:
        """Delete a path; missing objects are not an error."""


def delete_quietly(blob_store: BlobStore, paths: Iterable[str | None]) -> list[str]:
    """Delete each path, logging failures instead of raising.

    Returns the paths that could not be deleted. An orphaned object costs less
    than blocking the cleanup of everything else.
    """
    failed: list[str] = []
    for path in paths:
        if not path:
            continue
        try:
            blob_store.delete(path)
        except Exception:
            _logger.warning("Failed to delete blob: path=%s", path, exc_info=True)
            failed.append(path)
    return failed
