"""Trip playback: animation engine, frame scheduling and trip sessions."""

from .engine import PlaybackEngine, PlaybackState, PlaybackView
from .scheduler import AsyncioFrameScheduler, FrameScheduler
from .session_manager import SessionManager, TripSession

__all__ = [
    'PlaybackEngine',
    'PlaybackState',
    'PlaybackView',
    'AsyncioFrameScheduler',
    'FrameScheduler',
    'SessionManager',
    'TripSession',
]
