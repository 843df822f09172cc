"""Per-session live timeout timers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID

_logger = logging.getLogger(__name__)


@dataclass
class LiveTimeouts:
    """One pending timer per session; re-arming replaces the previous one."""

    _timers: dict[UUID, asyncio.Task[None]] = field(default_factory=dict)

    def arm(
        self,
        session_id: UUID,
        seconds: float,
        callback: Callable[[UUID], Awaitable[object]],
    ) -> None:
        self.cancel(session_id)
        self._timers[session_id] = asyncio.create_task(
            self._fire(session_id, seconds, callback)
        )

    def cancel(self, session_id: UUID) -> bool:
        timer = self._timers.pop(session_id, None)
        if timer is None:
            return False
        if timer is not asyncio.current_task():
            timer.cancel()
        return True

    def is_armed(self, session_id: UUID) -> bool:
        return session_id in self._timers

    def cancel_all(self) -> None:
        for session_id in list(self._timers):
            self.cancel(session_id)

    async def _fire(
        self,
        session_id: UUID,
        seconds: float,
        callback: Callable[[UUID], Awaitable[object]],
    ) -> None:
        await asyncio.sleep(seconds)
        if self._timers.get(session_id) is asyncio.current_task():
            del self._timers[session_id]
        try:
            await callback(session_id)
        except Exception:
            _logger.exception("Live timeout handler failed: session=%s", session_id)
