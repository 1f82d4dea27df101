# tripline/api/playback/engine.py
"""Animated trip playback.

The engine moves a token along the resolved leg geometries while keeping
a simulated calendar clock: one simulated hour of travel takes one second
of animation at 1x speed. Frames come from a :class:`FrameScheduler`; the
map side is reached only through a :class:`PlaybackView`.
"""

from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from tripline.api.config import get_playback_config
from tripline.api.models import Coordinates, PlaybackSegment, Stop
from tripline.api.playback.scheduler import AsyncioFrameScheduler, FrameScheduler
from tripline.api.services.itinerary_service import iter_legs
from tripline.api.services.map_service import MapService
from tripline.api.services.metrics_service import MetricsService

logger = logging.getLogger(__name__)

SPEED_LADDER = (0.025, 0.1, 0.25, 0.5, 1, 2, 5)
DEFAULT_SPEED_INDEX = SPEED_LADDER.index(1)

START_DAY = 1
START_HOUR = 8.0
MS_PER_SIMULATED_HOUR = 1000
MIN_SEGMENT_MS = 500
MIN_PROGRESS_DIVISOR_MS = 100
LAYOVER_PAUSE_SECONDS = 0.5


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    STOPPING = "stopping"


class PlaybackView:
    """Receives playback output. The base class ignores everything."""

    def started(self, segments: Sequence[PlaybackSegment]) -> None:
        pass

    def show_token(self, position: Coordinates) -> None:
        pass

    def move_token(self, position: Coordinates, progress: float, segment_index: int) -> None:
        pass

    def center(self, position: Coordinates, animate: bool = False) -> None:
        pass

    def update_clock(self, day: int, hour: float) -> None:
        pass

    def speed_changed(self, multiplier: float) -> None:
        pass

    def camera_changed(self, locked: bool) -> None:
        pass

    def hide_clock(self) -> None:
        pass

    def remove_token(self) -> None:
        pass

    def fit_bounds(self, bounds: Dict[str, Any], padding: int) -> None:
        pass

    def finished(self, completed: bool) -> None:
        pass


def interpolate(geometry: Sequence[Coordinates], progress: float) -> Coordinates:
    """Position at ``progress`` (0..1) along a polyline, by vertex index."""
    if len(geometry) == 1:
        return geometry[0]
    if len(geometry) == 2:
        a, b = geometry
        return Coordinates(a.lat + (b.lat - a.lat) * progress, a.lng + (b.lng - a.lng) * progress)

    exact = progress * (len(geometry) - 1)
    index = int(math.floor(exact))
    if index >= len(geometry) - 1:
        return geometry[-1]
    frac = exact - index
    a, b = geometry[index], geometry[index + 1]
    return Coordinates(a.lat + (b.lat - a.lat) * frac, a.lng + (b.lng - a.lng) * frac)


def clock_label(day: int, hour: float) -> str:
    whole = int(hour)
    minute = int((hour - whole) * 60)
    return f"Day {day}, {whole:02d}:{minute:02d}"


LegResolver = Callable[[Stop, Stop], Awaitable[List[Coordinates]]]


class PlaybackEngine:
    """Idle -> Playing -> Idle state machine for one trip.

    Clock, camera lock and token state belong to the current play session
    and are reset whenever a new one starts. The speed setting survives
    between sessions.
    """

    def __init__(self, view: Optional[PlaybackView] = None,
                 scheduler: Optional[FrameScheduler] = None,
                 resolver: Optional[LegResolver] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 fit_padding: Optional[int] = None):
        self.view = view or PlaybackView()
        self.scheduler = scheduler or AsyncioFrameScheduler()
        self._resolve_leg = resolver or MapService.resolve_leg
        self._sleep = sleep
        self.fit_padding = fit_padding if fit_padding is not None else get_playback_config()["fit_padding_px"]

        self.speed_index = DEFAULT_SPEED_INDEX
        self.state = PlaybackState.IDLE
        self._reset_session()

    def _reset_session(self):
        self.segments: List[PlaybackSegment] = []
        self.segment_index = 0
        self.progress = 0.0
        self._scaled_elapsed_ms = 0.0
        self.current_day = START_DAY
        self.current_hour = START_HOUR
        self.camera_locked = True
        self.token_position: Optional[Coordinates] = None

    # ------------------------------------------------------------------
    # Operator controls
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def speed(self) -> float:
        return SPEED_LADDER[self.speed_index]

    def change_speed(self, step: int) -> float:
        self.speed_index = min(max(self.speed_index + step, 0), len(SPEED_LADDER) - 1)
        self.view.speed_changed(self.speed)
        return self.speed

    def speed_up(self) -> float:
        return self.change_speed(1)

    def speed_down(self) -> float:
        return self.change_speed(-1)

    def stop(self) -> None:
        """Request cancellation; the running loop notices on its next frame."""
        if self.state is PlaybackState.PLAYING:
            logger.info("Playback stop requested")
            self.state = PlaybackState.STOPPING

    def on_map_drag(self) -> None:
        """A manual pan releases the camera from the token."""
        if self.is_playing and self.camera_locked:
            self.camera_locked = False
            self.view.camera_changed(False)

    def lock_camera(self) -> None:
        self.camera_locked = True
        self.view.camera_changed(True)
        if self.is_playing and self.token_position is not None:
            self.view.center(self.token_position, animate=False)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def build_segments(self, stops: Sequence[Stop]) -> List[PlaybackSegment]:
        """Resolve every placed leg concurrently and attach timing."""
        legs = list(iter_legs(stops))
        geometries = await asyncio.gather(*(self._resolve_leg(prev, stop) for prev, stop in legs))

        segments = []
        for (prev, stop), geometry in zip(legs, geometries):
            hours = MetricsService.leg_hours(MetricsService.leg_distance(prev, stop), stop.travel_method)
            segments.append(PlaybackSegment(
                geometry=list(geometry),
                travel_method=stop.travel_method,
                real_duration_hours=hours,
                base_animation_duration_ms=max(hours * MS_PER_SIMULATED_HOUR, MIN_SEGMENT_MS),
                nights_after=stop.nights,
            ))
        return segments

    async def play(self, stops: Sequence[Stop]) -> bool:
        """Run one play session to completion or cancellation.

        Returns True only when every segment finished. Teardown always runs,
        including when leg resolution or a frame raises.
        """
        if self.state is not PlaybackState.IDLE:
            logger.warning(f"Playback already {self.state.value}, ignoring start")
            return False
        stops = list(stops)
        if len(stops) < 2:
            logger.warning("Playback needs at least two stops")
            return False

        self._reset_session()
        self.state = PlaybackState.PLAYING
        logger.info(f"Playback starting with {len(stops)} stops at {self.speed}x")

        completed = False
        try:
            self.segments = await self.build_segments(stops)
            if not self.segments:
                logger.warning("No placed legs to play")
            elif self.is_playing:
                completed = await self._run()
        except Exception:
            logger.exception("Playback aborted")
            completed = False
        finally:
            self._teardown(stops, completed)
        return completed

    async def _run(self) -> bool:
        start = self.segments[0].geometry[0]
        self.token_position = start
        self.view.started(self.segments)
        self.view.show_token(start)
        self.view.center(start, animate=False)
        self.view.update_clock(self.current_day, self.current_hour)

        last = len(self.segments) - 1
        for index, segment in enumerate(self.segments):
            self.segment_index = index
            if not await self._animate_segment(segment):
                return False

            if segment.nights_after > 0:
                self.current_day += segment.nights_after
                self.view.update_clock(self.current_day, self.current_hour)
                if index < last:
                    await self._sleep(LAYOVER_PAUSE_SECONDS)
                    if not self.is_playing:
                        return False
        return True

    async def _animate_segment(self, segment: PlaybackSegment) -> bool:
        self.progress = 0.0
        self._scaled_elapsed_ms = 0.0
        self.scheduler.reset()
        while True:
            dt = await self.scheduler.next_frame()
            if not self.is_playing:
                return False
            self.advance(segment, dt)
            if self.progress >= 1:
                return True

    def advance(self, segment: PlaybackSegment, dt: float) -> Coordinates:
        """Apply one frame of ``dt`` wall-clock milliseconds."""
        scaled = dt * self.speed
        self._scaled_elapsed_ms += scaled
        divisor = max(segment.base_animation_duration_ms, MIN_PROGRESS_DIVISOR_MS)
        self.progress = min(self._scaled_elapsed_ms / divisor, 1.0)

        self.current_hour += scaled / MS_PER_SIMULATED_HOUR
        if self.current_hour >= 24:
            days, self.current_hour = divmod(self.current_hour, 24)
            self.current_day += int(days)

        position = interpolate(segment.geometry, self.progress)
        self.token_position = position
        self.view.move_token(position, self.progress, self.segment_index)
        self.view.update_clock(self.current_day, self.current_hour)
        if self.camera_locked:
            self.view.center(position, animate=False)
        return position

    def _teardown(self, stops: Sequence[Stop], completed: bool) -> None:
        try:
            self.view.remove_token()
            self.view.hide_clock()
            bounds = MapService.calculate_bounds(stops)
            if bounds:
                self.view.fit_bounds(bounds, self.fit_padding)
            self.view.finished(completed)
        finally:
            self.token_position = None
            self.segments = []
            self.state = PlaybackState.IDLE
            logger.info(f"Playback {'finished' if completed else 'stopped'}")


__all__ = [
    "PlaybackEngine",
    "PlaybackState",
    "PlaybackView",
    "SPEED_LADDER",
    "clock_label",
    "interpolate",
]
