# tripline/routes/websocket/playback.py
"""WebSocket handlers for trip playback control."""

import asyncio
import logging
from flask import request

from .base import BaseWebSocketHandler
from .callback_helpers import SocketPlaybackView
from tripline.api.playback.engine import PlaybackState
from tripline.routes import NAMESPACE

logger = logging.getLogger(__name__)


def run_playback(trip, stops):
    """Background-task entry point: drive one play session on a fresh loop."""
    try:
        completed = asyncio.run(trip.engine.play(stops))
        logger.info(f"Playback for {trip.session_id} ended (completed={completed})")
    except Exception as e:
        logger.exception(f"Playback task for {trip.session_id} failed: {e}")


class PlaybackHandler(BaseWebSocketHandler):
    """Handles playback start/stop, speed and camera events."""

    def register_handlers(self):
        """Register playback event handlers."""

        @self.socketio.on("start_playback", namespace=NAMESPACE)
        def handle_start_playback(data=None):
            try:
                trip = self.require_trip("start_playback")
                if trip is None:
                    return

                engine = trip.engine
                if engine.state is not PlaybackState.IDLE:
                    self.emit_to_client("error", {"message": "Playback already running"})
                    return

                with trip.lock:
                    stops = trip.store.snapshot()
                if len(stops) < 2:
                    self.emit_to_client("error", {"message": "Add at least two stops to play the trip"})
                    return

                engine.view = SocketPlaybackView(self.socketio, request.sid, self.namespace)
                logger.info(f"▶️ Starting playback for {trip.session_id} ({len(stops)} stops)")
                self.socketio.start_background_task(run_playback, trip, stops)

            except Exception as exc:
                self.handle_error(exc, "start_playback")

        @self.socketio.on("stop_playback", namespace=NAMESPACE)
        def handle_stop_playback(data=None):
            trip = self.require_trip("stop_playback")
            if trip is not None:
                trip.engine.stop()

        @self.socketio.on("speed_up", namespace=NAMESPACE)
        def handle_speed_up(data=None):
            trip = self.require_trip("speed_up")
            if trip is not None:
                trip.engine.speed_up()

        @self.socketio.on("speed_down", namespace=NAMESPACE)
        def handle_speed_down(data=None):
            trip = self.require_trip("speed_down")
            if trip is not None:
                trip.engine.speed_down()

        @self.socketio.on("map_drag", namespace=NAMESPACE)
        def handle_map_drag(data=None):
            trip = self.require_trip("map_drag")
            if trip is not None:
                trip.engine.on_map_drag()

        @self.socketio.on("lock_camera", namespace=NAMESPACE)
        def handle_lock_camera(data=None):
            trip = self.require_trip("lock_camera")
            if trip is not None:
                trip.engine.lock_camera()
