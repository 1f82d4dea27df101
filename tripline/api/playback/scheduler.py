# tripline/api/playback/scheduler.py
"""Frame scheduling for the playback engine."""

import asyncio
import time
from typing import Optional

from tripline.api.config import get_playback_config


class FrameScheduler:
    """Hands out one tick per rendered frame.

    ``next_frame`` suspends until the next frame is due and returns the
    wall-clock milliseconds elapsed since the previous one.
    """

    def reset(self) -> None:
        """Restart elapsed-time measurement (called when a segment starts)."""

    async def next_frame(self) -> float:
        raise NotImplementedError


class AsyncioFrameScheduler(FrameScheduler):
    """Ticks at a fixed frame rate on the running asyncio loop."""

    def __init__(self, fps: Optional[int] = None):
        fps = fps or get_playback_config()["fps"]
        self.interval = 1.0 / max(fps, 1)
        self._last: Optional[float] = None

    def reset(self) -> None:
        self._last = time.monotonic()

    async def next_frame(self) -> float:
        await asyncio.sleep(self.interval)
        now = time.monotonic()
        if self._last is None:
            self._last = now
        elapsed_ms = (now - self._last) * 1000
        self._last = now
        return elapsed_ms
