"""Asyncio-based ffmpeg process launcher."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from kiosk_capture.errors import SubprocessFailureError

_logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 600


class MediaProcess(Protocol):
    """Subset of ``asyncio.subprocess.Process`` used by the supervisor."""

    @property
    def returncode(self) -> int | None:
        """Exit code, or None while running."""

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        """Writable stdin pipe, if any."""

    async def wait(self) -> int:
        """Wait for the process to exit."""

    def terminate(self) -> None:
        """Send SIGTERM."""

    def kill(self) -> None:
        """Send SIGKILL."""


class MediaRunner(Protocol):
    """Interface for launching transcoding subprocesses."""

    async def spawn(self, args: list[str]) -> MediaProcess:
        """Start a long-lived process and return its handle."""

    async def run(self, args: list[str]) -> None:
        """Run a one-shot command; raise SubprocessFailureError on failure."""


@dataclass
class FfmpegRunner:
    """Launches ffmpeg through ``asyncio.create_subprocess_exec``."""

    binary: str = "ffmpeg"

    async def spawn(self, args: list[str]) -> MediaProcess:
        """Start ffmpeg with a stdin pipe for graceful ``q`` shutdown."""
        try:
            return await asyncio.create_subprocess_exec(
                self.binary,
                "-hide_banner",
                "-loglevel",
                "error",
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise SubprocessFailureError(f"Failed to start {self.binary}") from exc

    async def run(self, args: list[str]) -> None:
        """Run ffmpeg to completion and check its exit code."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                "-hide_banner",
                "-loglevel",
                "error",
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SubprocessFailureError(f"Failed to start {self.binary}") from exc
        _, stderr = await process.communicate()
        if process.returncode != 0:
            tail = stderr.decode(errors="replace")[-_STDERR_TAIL_CHARS:].strip()
            _logger.error(
                "ffmpeg failed: code=%s stderr=%s", process.returncode, tail
            )
            raise SubprocessFailureError(
                f"ffmpeg exited with code {process.returncode}"
            )
