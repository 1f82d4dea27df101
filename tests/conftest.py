import os

import pytest
from flask import Flask

from tripline.api.models import Coordinates
from tripline.api.playback import session_manager as session_manager_module
from tripline.api.playback.engine import PlaybackView
from tripline.api.playback.scheduler import FrameScheduler
from tripline.api.services.itinerary_service import ItineraryStore


class FixedStepScheduler(FrameScheduler):
    """Returns a constant frame time without waiting on the wall clock."""

    def __init__(self, dt_ms=100.0, on_frame=None):
        self.dt_ms = dt_ms
        self.on_frame = on_frame
        self.frames = 0
        self.resets = 0

    def reset(self):
        self.resets += 1

    async def next_frame(self):
        self.frames += 1
        if self.on_frame is not None:
            self.on_frame(self.frames)
        return self.dt_ms


class RecordingView(PlaybackView):
    """Keeps every playback call as ``(name, args)``."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))

    def named(self, name):
        return [args for call, args in self.calls if call == name]

    def started(self, segments):
        self._record("started", segments)

    def show_token(self, position):
        self._record("show_token", position)

    def move_token(self, position, progress, segment_index):
        self._record("move_token", position, progress, segment_index)

    def center(self, position, animate=False):
        self._record("center", position, animate)

    def update_clock(self, day, hour):
        self._record("update_clock", day, hour)

    def speed_changed(self, multiplier):
        self._record("speed_changed", multiplier)

    def camera_changed(self, locked):
        self._record("camera_changed", locked)

    def hide_clock(self):
        self._record("hide_clock")

    def remove_token(self):
        self._record("remove_token")

    def fit_bounds(self, bounds, padding):
        self._record("fit_bounds", bounds, padding)

    def finished(self, completed):
        self._record("finished", completed)


async def straight_resolver(previous, stop):
    return [previous.coordinates, stop.coordinates]


@pytest.fixture
def store():
    return ItineraryStore()


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def a_to_b():
    """Two stops one degree of longitude apart on the equator."""
    s = ItineraryStore()
    s.add_stop(Coordinates(0.0, 0.0), "A")
    s.add_stop(Coordinates(0.0, 1.0), "B")
    return s


@pytest.fixture
def session_manager(monkeypatch):
    manager = session_manager_module.SessionManager(start_cleanup=False)
    monkeypatch.setattr(session_manager_module, "_session_manager", manager)
    monkeypatch.setattr("tripline.api.geocoding.reverse_geocode", lambda coordinates: None)
    return manager


@pytest.fixture
def client(session_manager):
    """Flask test client with the travel blueprint mounted."""
    from tripline.routes.travel import create_travel_blueprint

    app = Flask(__name__)
    app.secret_key = "test-secret"
    app.register_blueprint(create_travel_blueprint(os.path.dirname(__file__)))
    with app.test_client() as test_client:
        yield test_client
