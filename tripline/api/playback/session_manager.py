# tripline/api/playback/session_manager.py
"""Per-client trip state: itinerary, route cache and playback engine."""

import time
import threading
import logging
from typing import Dict, Optional, Any, List
from datetime import datetime, timedelta
import secrets

from tripline.api import geocoding
from tripline.api.config import get_session_config
from tripline.api.models import Coordinates
from tripline.api.playback.engine import PlaybackEngine
from tripline.api.services.itinerary_service import ItineraryStore, ValidationError
from tripline.api.services.map_service import MapService

logger = logging.getLogger(__name__)


class TripSession:
    """Everything one browser session owns.

    ``lock`` serializes store mutations coming from request threads and
    background geocoding threads.
    """

    def __init__(self, session_id: str, flask_session_id: str):
        self.session_id = session_id
        self.flask_session_id = flask_session_id

        # Timestamps
        self.created_at = datetime.now()
        self.last_activity = datetime.now()

        # Components
        self.store = ItineraryStore()
        self.engine = PlaybackEngine()
        self.lock = threading.RLock()

        # Last drawn leg geometry and the generation it belongs to
        self.routes: List[Dict[str, Any]] = []
        self.routes_generation = -1

    def touch(self):
        self.last_activity = datetime.now()

    async def refresh_routes(self) -> bool:
        """Resolve all legs; keep the result only if the itinerary is unchanged.

        Returns True when the cached routes were replaced.
        """
        with self.lock:
            token = self.store.generation
            stops = self.store.snapshot()

        routes = await MapService.resolve_legs(stops)

        def _apply():
            self.routes = routes
            self.routes_generation = token

        with self.lock:
            applied = self.store.apply_if_current(token, _apply)
        if not applied:
            logger.info(f"Session {self.session_id}: dropped stale routes for generation {token}")
        return applied

    def name_stop(self, stop_id: int, coordinates: Coordinates, token: int) -> bool:
        """Reverse-geocode a stop and name it unless the itinerary moved on."""
        name = geocoding.reverse_geocode(coordinates)
        if not name:
            return False
        with self.lock:
            try:
                return self.store.apply_if_current(
                    token, lambda: self.store.set_name(stop_id, name, invalidate=False))
            except ValidationError as e:
                logger.debug(f"Session {self.session_id}: dropped name for stop {stop_id}: {e}")
                return False

    def name_stop_in_background(self, stop_id: int, coordinates: Coordinates,
                                token: int) -> threading.Thread:
        """Name a stop off the request thread.

        ``token`` must be read under ``lock`` together with the mutation
        that placed the stop.
        """
        thread = threading.Thread(
            target=self.name_stop,
            args=(stop_id, coordinates, token),
            daemon=True,
        )
        thread.start()
        return thread

    def reset(self):
        """Stop any playback and clear the trip."""
        self.engine.stop()
        with self.lock:
            self.store.reset()
            self.routes = []
            self.routes_generation = -1


class SessionManager:
    """Manages trip sessions keyed by Flask session id."""

    def __init__(self, start_cleanup: bool = True):
        self.config = get_session_config()
        self.sessions: Dict[str, TripSession] = {}

        # Thread safety
        self.lock = threading.Lock()

        if start_cleanup:
            self.cleanup_thread = threading.Thread(
                target=self._cleanup_loop,
                daemon=True
            )
            self.cleanup_thread.start()

        logger.info("SessionManager initialized")

    def get_or_create(self, flask_session_id: str) -> Optional[TripSession]:
        """Return the trip session for a browser session, creating it if needed.

        Returns None when the server is at capacity.
        """
        with self.lock:
            for session in self.sessions.values():
                if session.flask_session_id == flask_session_id:
                    session.touch()
                    return session

            if len(self.sessions) >= self.config["max_sessions"]:
                logger.warning("Maximum trip sessions reached")
                return None

            session_id = f"trip_{secrets.token_urlsafe(16)}"
            session = TripSession(session_id, flask_session_id)
            self.sessions[session_id] = session
            logger.info(f"Created trip session {session_id}")
            return session

    def get_session(self, session_id: str) -> Optional[TripSession]:
        with self.lock:
            session = self.sessions.get(session_id)
            if session:
                session.touch()
            return session

    def remove_session(self, session_id: str, reason: str = "manual"):
        with self.lock:
            session = self.sessions.pop(session_id, None)
        if session is None:
            return
        session.engine.stop()
        duration = (datetime.now() - session.created_at).total_seconds()
        logger.info(
            f"Removed trip session {session_id} - "
            f"Reason: {reason}, Duration: {duration:.1f}s, "
            f"Stops: {len(session.store)}"
        )

    def get_stats(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "total_sessions": len(self.sessions),
                "playing_sessions": sum(1 for s in self.sessions.values() if s.engine.is_playing),
                "config": {
                    "max_sessions": self.config["max_sessions"],
                    "timeout_seconds": self.config["session_timeout_seconds"],
                },
            }

    def _cleanup_loop(self):
        """Background thread to clean up expired sessions."""
        while True:
            time.sleep(60)
            try:
                self._cleanup_expired_sessions()
            except Exception as e:
                logger.error(f"Error in cleanup loop: {e}")

    def _cleanup_expired_sessions(self):
        """Remove sessions idle past the timeout."""
        cutoff_time = datetime.now() - timedelta(seconds=self.config["session_timeout_seconds"])

        with self.lock:
            expired_sessions = [
                sid for sid, session in self.sessions.items()
                if session.last_activity < cutoff_time and not session.engine.is_playing
            ]

        for sid in expired_sessions:
            self.remove_session(sid, "timeout")

        if expired_sessions:
            logger.info(f"Cleaned up {len(expired_sessions)} expired sessions")


# Global session manager instance
_session_manager = None


def get_session_manager() -> SessionManager:
    """Get the global SessionManager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager
