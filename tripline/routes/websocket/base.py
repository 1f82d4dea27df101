# tripline/routes/websocket/base.py
"""Shared plumbing for the playback namespace handlers."""

import logging
import secrets
from flask import request, session
from flask_socketio import emit

from tripline.routes import NAMESPACE

logger = logging.getLogger(__name__)


class BaseWebSocketHandler:
    """Resolves the caller's trip and reports failures back to the socket."""

    def __init__(self, socketio, namespace=NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit_to_client(self, event, data):
        """Reply on the socket that sent the current event."""
        try:
            emit(event, data, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to emit {event} to {request.sid}: {e}")

    def browser_session_id(self):
        """The Flask session id shared with the REST blueprint."""
        if '_id' not in session:
            session['_id'] = f"anon_{secrets.token_urlsafe(12)}"
        return session['_id']

    def get_trip(self):
        """Return the caller's TripSession, or None at capacity."""
        from tripline.api.playback.session_manager import get_session_manager

        return get_session_manager().get_or_create(self.browser_session_id())

    def require_trip(self, event_name):
        """Like :meth:`get_trip`, but tells the client when there is none."""
        trip = self.get_trip()
        if trip is None:
            self.emit_to_client('error', {'message': 'No trip session', 'event': event_name})
        return trip

    def log_event(self, event_name, data=None):
        suffix = f", Data: {data}" if data else ""
        logger.info(f"[WS] {event_name} - Client: {request.sid}{suffix}")

    def handle_error(self, error, event_name=""):
        logger.error(f"[WS] Error in {event_name} - Client: {request.sid}, Error: {error}")
        self.emit_to_client('error', {'message': str(error), 'event': event_name})
