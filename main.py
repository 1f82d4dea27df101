"""
Tripline – application entry point

* `create_app()` builds the Flask app, the REST blueprint under `/travel` and
  the Socket.IO playback namespace `/travel/ws`.
* Socket.IO runs in threading mode; each play session gets its own asyncio
  loop inside a background task.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _secret_key():
    key = os.getenv("FLASK_SECRET_KEY")
    if not key:
        logger.warning("No FLASK_SECRET_KEY found. Trip sessions will not survive a restart.")
        key = os.urandom(32).hex()
    return key


def create_app():
    """Return ``(app, socketio)`` with every route and handler registered."""
    from tripline.api.playback.session_manager import get_session_manager
    from tripline.routes.travel import create_travel_blueprint
    from tripline.routes.websocket import register_websocket_handlers

    flask_app = Flask(__name__)
    flask_app.secret_key = _secret_key()
    flask_app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=86400,
    )
    CORS(flask_app, origins="*", supports_credentials=True)

    sio = SocketIO(flask_app, cors_allowed_origins="*", async_mode="threading")
    logger.info("Socket.IO initialised (async_mode=threading)")

    base_dir = os.path.dirname(os.path.abspath(__file__))
    flask_app.register_blueprint(create_travel_blueprint(base_dir))
    register_websocket_handlers(sio)

    @flask_app.route("/debug")
    def debug():
        """Session counts and the main entry points."""
        return {
            "status": "ok",
            "sessions": get_session_manager().get_stats(),
            "endpoints": {
                "itinerary": "/travel/api/itinerary",
                "websocket_namespace": "/travel/ws",
            },
        }

    return flask_app, sio


app, socketio = create_app()

# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    from tripline.api.config import get_port

    port = get_port()
    logger.info("Starting tripline on http://localhost:%d", port)
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)

__all__ = ["app", "socketio", "create_app"]
