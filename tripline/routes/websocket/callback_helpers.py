# tripline/routes/websocket/callback_helpers.py
"""Bridges playback engine output to Socket.IO events."""

import logging
from typing import Any, Dict, Sequence

from tripline.api.models import Coordinates, PlaybackSegment
from tripline.api.playback.engine import PlaybackView, clock_label
from tripline.routes import NAMESPACE

logger = logging.getLogger(__name__)


class SocketPlaybackView(PlaybackView):
    """Emits every playback change to one browser tab."""

    def __init__(self, socketio, sid: str, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.sid = sid
        self.namespace = namespace

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        try:
            self.socketio.emit(event, data, room=self.sid, namespace=self.namespace)
        except Exception as exc:
            logger.exception("Failed emitting %s: %s", event, exc)

    def started(self, segments: Sequence[PlaybackSegment]) -> None:
        self._emit("playback_started", {
            "segments": [
                {
                    "travel_method": s.travel_method.value,
                    "real_duration_hours": s.real_duration_hours,
                    "animation_ms": s.base_animation_duration_ms,
                    "nights_after": s.nights_after,
                    "points": len(s.geometry),
                }
                for s in segments
            ],
        })

    def show_token(self, position: Coordinates) -> None:
        self._emit("playback_token", position.to_dict())

    def move_token(self, position: Coordinates, progress: float, segment_index: int) -> None:
        self._emit("playback_frame", {
            **position.to_dict(),
            "progress": progress,
            "segment": segment_index,
        })

    def center(self, position: Coordinates, animate: bool = False) -> None:
        self._emit("playback_view", {"action": "center", "animate": animate, **position.to_dict()})

    def update_clock(self, day: int, hour: float) -> None:
        whole = int(hour)
        self._emit("playback_clock", {
            "day": day,
            "hour": whole,
            "minute": int((hour - whole) * 60),
            "label": clock_label(day, hour),
        })

    def speed_changed(self, multiplier: float) -> None:
        self._emit("playback_speed", {"multiplier": multiplier})

    def camera_changed(self, locked: bool) -> None:
        self._emit("playback_camera", {"locked": locked})

    def hide_clock(self) -> None:
        self._emit("playback_clock_hidden", {})

    def remove_token(self) -> None:
        self._emit("playback_token_removed", {})

    def fit_bounds(self, bounds: Dict[str, Any], padding: int) -> None:
        self._emit("playback_view", {"action": "fit_bounds", "bounds": bounds, "padding": padding})

    def finished(self, completed: bool) -> None:
        self._emit("playback_finished", {"completed": completed})
