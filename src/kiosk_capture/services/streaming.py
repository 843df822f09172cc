"""Supervision of live preview ffmpeg processes."""

import asyncio
import contextlib
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path

from kiosk_capture.adapters.ffmpeg_runner import MediaProcess, MediaRunner
from kiosk_capture.domain.overlays import OverlayFiles, ResolvedOverlay
from kiosk_capture.services.media import live_stream_args
from kiosk_capture.services.overlays import OverlayService

_logger = logging.getLogger(__name__)

_PLAYLIST_POLL_SECONDS = 0.1


def stream_key(tenant_id: str, device_id: str) -> str:
    """Return the process table key for a device."""
    return f"{tenant_id}_{device_id}"


@dataclass
class LiveStream:
    """Process table entry for one running preview."""

    key: str
    process: MediaProcess
    playlist: str
    overlay: OverlayFiles | None = None
    watcher: asyncio.Task[None] | None = None


@dataclass
class LiveStreamSupervisor:
    """Runs at most one preview process per device key.

    The process table is owned by the supervisor and injected by the
    container; entries are removed by an exit watcher whatever the exit code.
    """

    runner: MediaRunner
    overlay_service: OverlayService
    hls_dir: Path
    processes: dict[str, LiveStream]
    stop_grace_seconds: float = 1.0
    segment_seconds: int = 1
    playlist_size: int = 4
    _key_locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)

    def is_running(self, key: str) -> bool:
        return key in self.processes

    def playlist_path(self, playlist: str) -> Path:
        return self.hls_dir / playlist

    async def start(
        self,
        key: str,
        source_url: str,
        overlay: ResolvedOverlay | None = None,
        force: bool = False,
    ) -> str:
        """Start a preview for ``key`` and return its playlist file name.

        A running preview is reused unless ``force`` is set, in which case it
        is stopped before the replacement starts. Starts and stops for the
        same key are serialized.
        """
        async with self._lock_for(key):
            existing = self.processes.get(key)
            if existing is not None:
                if not force:
                    return existing.playlist
                await self._stop(key)
            return await self._spawn(key, source_url, overlay)

    async def _spawn(
        self, key: str, source_url: str, overlay: ResolvedOverlay | None
    ) -> str:
        self.hls_dir.mkdir(parents=True, exist_ok=True)
        self._prune(key)
        stream_id = f"{key}_{int(time.time() * 1000)}"
        playlist = f"{stream_id}.m3u8"
        files = self.overlay_service.materialize(overlay) if overlay else None
        args = live_stream_args(
            source_url=source_url,
            playlist_path=self.hls_dir / playlist,
            segment_pattern=self.hls_dir / f"{stream_id}_%03d.ts",
            overlay=files,
            segment_seconds=self.segment_seconds,
            list_size=self.playlist_size,
        )
        try:
            process = await self.runner.spawn(args)
        except Exception:
            self.overlay_service.discard(files)
            raise

        stream = LiveStream(key=key, process=process, playlist=playlist, overlay=files)
        self.processes[key] = stream
        stream.watcher = asyncio.create_task(self._watch(stream))
        _logger.info(
            "Live stream started: key=%s playlist=%s overlay=%s",
            key,
            playlist,
            files is not None,
        )
        return playlist

    async def stop(self, key: str) -> bool:
        """Stop the preview for ``key``; return False when none was running.

        Sends ``q`` and SIGTERM, then SIGKILL once the grace period lapses.
        Never waits longer than two grace periods.
        """
        async with self._lock_for(key):
            return await self._stop(key)

    async def _stop(self, key: str) -> bool:
        stream = self.processes.get(key)
        if stream is None:
            return False

        _logger.info("Stopping live stream: key=%s", key)
        _request_quit(stream.process)
        if not await self._wait_exit(stream):
            _logger.warning("Force killing ffmpeg: key=%s", key)
            with contextlib.suppress(ProcessLookupError):
                stream.process.kill()
            if not await self._wait_exit(stream):
                _logger.error("ffmpeg did not exit after kill: key=%s", key)

        if self.processes.get(key) is stream:
            del self.processes[key]
        return True

    async def stop_all(self) -> None:
        """Stop every running preview."""
        for key in list(self.processes):
            await self.stop(key)

    async def wait_for_playlist(self, playlist: str, timeout: float) -> bool:
        """Poll until the playlist file exists; return False on timeout."""
        path = self.playlist_path(playlist)
        deadline = time.monotonic() + timeout
        while not path.exists():
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(_PLAYLIST_POLL_SECONDS)
        return True

    async def _wait_exit(self, stream: LiveStream) -> bool:
        if stream.watcher is None:
            return True
        try:
            await asyncio.wait_for(
                asyncio.shield(stream.watcher), timeout=self.stop_grace_seconds
            )
        except TimeoutError:
            return False
        return True

    async def _watch(self, stream: LiveStream) -> None:
        code = await stream.process.wait()
        if self.processes.get(stream.key) is stream:
            del self.processes[stream.key]
        self.overlay_service.discard(stream.overlay)
        _logger.info("Live stream exited: key=%s code=%s", stream.key, code)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    def _prune(self, key: str) -> None:
        pattern = re.compile(rf"^{re.escape(key)}_\d+(_\d+\.ts|\.m3u8)$")
        for path in self.hls_dir.iterdir():
            if pattern.match(path.name):
                path.unlink(missing_ok=True)


def _request_quit(process: MediaProcess) -> None:
    """Ask ffmpeg to finish cleanly, then signal it."""
    if process.stdin is not None:
        with contextlib.suppress(OSError, RuntimeError):
            process.stdin.write(b"q\n")
    with contextlib.suppress(ProcessLookupError):
        process.terminate()
