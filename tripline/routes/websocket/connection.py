# tripline/routes/websocket/connection.py
"""Connect, disconnect and ping for the playback namespace."""

import time
import logging
from flask import request, session
from flask_socketio import disconnect

from .base import BaseWebSocketHandler
from .callback_helpers import SocketPlaybackView
from tripline.routes import NAMESPACE

logger = logging.getLogger(__name__)


class ConnectionHandler(BaseWebSocketHandler):
    """Binds each socket to the caller's trip and its playback engine."""

    def register_handlers(self):

        @self.socketio.on('connect', namespace=NAMESPACE)
        def handle_connect(auth=None):
            self.log_event('connect')
            try:
                trip = self.get_trip()
                if trip is None:
                    logger.error("❌ Refusing socket, trip sessions at capacity")
                    self.emit_to_client('error', {'message': 'Server at capacity'})
                    disconnect()
                    return

                session['trip_session_id'] = trip.session_id
                # engine output goes to the most recently connected tab
                trip.engine.view = SocketPlaybackView(self.socketio, request.sid, self.namespace)
                logger.info(f"🔗 Client {request.sid} bound to {trip.session_id}")

                with trip.lock:
                    stop_count = len(trip.store)
                self.emit_to_client('connected', {
                    'session_id': trip.session_id,
                    'status': 'connected',
                    'stops': stop_count,
                    'speed': trip.engine.speed,
                })
            except Exception as e:
                self.handle_error(e, 'connect')
                disconnect()

        @self.socketio.on('disconnect', namespace=NAMESPACE)
        def handle_disconnect(*args):
            """Stop playback when the tab goes away; the trip itself is kept."""
            session_id = session.get('trip_session_id')
            if not session_id:
                self.log_event('disconnect', {'no_session': True})
                return

            from tripline.api.playback.session_manager import get_session_manager
            trip = get_session_manager().get_session(session_id)
            if trip is not None:
                trip.engine.stop()
            logger.info(f"🔌 {request.sid} disconnected from {session_id}")

        @self.socketio.on('ping', namespace=NAMESPACE)
        def handle_ping(data=None):
            self.emit_to_client('pong', {'timestamp': time.time()})
