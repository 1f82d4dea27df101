# tripline/routes/websocket/__init__.py
"""Socket.IO handlers for the playback namespace."""

import logging

from .connection import ConnectionHandler
from .playback import PlaybackHandler
from tripline.routes import NAMESPACE

logger = logging.getLogger(__name__)

HANDLER_CLASSES = (ConnectionHandler, PlaybackHandler)


def register_websocket_handlers(socketio):
    """Attach every handler class to ``socketio`` on the playback namespace."""
    try:
        for handler_class in HANDLER_CLASSES:
            handler_class(socketio, NAMESPACE).register_handlers()
            logger.info(f"Registered {handler_class.__name__} on {NAMESPACE}")
    except Exception:
        logger.exception("WebSocket registration error:")
        raise


__all__ = ['register_websocket_handlers', 'NAMESPACE']
