import pytest

from conftest import FixedStepScheduler, straight_resolver
from tripline.api.models import Coordinates, PlaybackSegment, TravelMethod
from tripline.api.playback.engine import (
    PlaybackEngine,
    PlaybackState,
    SPEED_LADDER,
    clock_label,
    interpolate,
)
from tripline.api.playback.scheduler import AsyncioFrameScheduler
from tripline.api.services.itinerary_service import ItineraryStore


def make_engine(view, scheduler=None, resolver=straight_resolver, sleeps=None):
    async def fake_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return PlaybackEngine(
        view=view,
        scheduler=scheduler or FixedStepScheduler(100),
        resolver=resolver,
        sleep=fake_sleep,
        fit_padding=50,
    )


def short_hop():
    """Two stops ~1.1 km apart: the leg is floored to a 500 ms animation."""
    store = ItineraryStore()
    store.add_stop(Coordinates(0.0, 0.0), "A")
    store.add_stop(Coordinates(0.0, 0.01), "B")
    return store


def segment(points, duration_ms=1000.0):
    return PlaybackSegment(
        geometry=points,
        travel_method=TravelMethod.CAR,
        real_duration_hours=duration_ms / 1000,
        base_animation_duration_ms=duration_ms,
        nights_after=0,
    )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def test_interpolate_two_points_is_linear():
    p = interpolate([Coordinates(0, 0), Coordinates(10, 20)], 0.25)
    assert p == Coordinates(2.5, 5.0)


def test_interpolate_polyline_by_vertex_index():
    line = [Coordinates(0, 0), Coordinates(0, 10), Coordinates(10, 10)]
    assert interpolate(line, 0.5) == Coordinates(0, 10)
    assert interpolate(line, 0.75) == Coordinates(5, 10)
    assert interpolate(line, 1.0) == Coordinates(10, 10)
    assert interpolate(line, 0.0) == Coordinates(0, 0)


def test_clock_label():
    assert clock_label(1, 8.0) == "Day 1, 08:00"
    assert clock_label(3, 17.5) == "Day 3, 17:30"


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------

async def test_segments_carry_timing(view, a_to_b):
    engine = make_engine(view)
    segments = await engine.build_segments(a_to_b.stops)

    assert len(segments) == 1
    seg = segments[0]
    assert seg.real_duration_hours == pytest.approx(1.853, abs=1e-3)
    assert seg.base_animation_duration_ms == pytest.approx(1853, abs=1)
    assert seg.nights_after == 1
    assert seg.geometry == [Coordinates(0.0, 0.0), Coordinates(0.0, 1.0)]


async def test_short_legs_are_floored():
    engine = make_engine(None)
    segments = await engine.build_segments(short_hop().stops)
    assert segments[0].base_animation_duration_ms == 500


# ---------------------------------------------------------------------------
# Full sessions
# ---------------------------------------------------------------------------

async def test_progress_reaches_one_when_duration_elapsed(view):
    store = short_hop()
    scheduler = FixedStepScheduler(100)
    engine = make_engine(view, scheduler)

    assert await engine.play(store.stops) is True

    progresses = [args[1] for args in view.named("move_token")]
    assert progresses == pytest.approx([0.2, 0.4, 0.6, 0.8, 1.0])
    assert progresses.count(1.0) == 1
    assert scheduler.frames == 5
    assert engine.state is PlaybackState.IDLE


async def test_session_start_and_teardown(view):
    store = short_hop()
    engine = make_engine(view)
    await engine.play(store.stops)

    assert view.named("show_token")[0] == (Coordinates(0.0, 0.0),)
    assert view.named("update_clock")[0] == (1, 8.0)
    # arriving at B (1 night) moves the calendar one day on
    assert view.named("update_clock")[-1] == (2, pytest.approx(8.5))

    names = [name for name, _ in view.calls]
    assert names[-4:] == ["remove_token", "hide_clock", "fit_bounds", "finished"]
    bounds, padding = view.named("fit_bounds")[0]
    assert bounds == {"north": 0.0, "south": 0.0, "east": 0.01, "west": 0.0}
    assert padding == 50
    assert view.named("finished") == [(True,)]
    assert engine.token_position is None


async def test_camera_follows_token_without_animation(view):
    engine = make_engine(view)
    await engine.play(short_hop().stops)
    centers = view.named("center")
    assert len(centers) == 1 + 5
    assert all(animate is False for _, animate in centers)


async def test_cancel_mid_segment(view):
    store = short_hop()
    engine = None

    def stop_on_third(frame):
        if frame == 3:
            engine.stop()

    engine = make_engine(view, FixedStepScheduler(100, on_frame=stop_on_third))
    completed = await engine.play(store.stops)

    assert completed is False
    assert len(view.named("move_token")) == 2
    assert view.named("remove_token") == [()]
    assert view.named("hide_clock") == [()]
    assert len(view.named("fit_bounds")) == 1
    assert view.named("finished") == [(False,)]
    assert engine.state is PlaybackState.IDLE
    assert engine.token_position is None


async def test_layover_pause_between_segments(view):
    store = ItineraryStore()
    store.add_stop(Coordinates(0.0, 0.0))
    b = store.add_stop(Coordinates(0.0, 0.01))
    c = store.add_stop(Coordinates(0.0, 0.02))
    store.set_nights(b.id, 2)
    store.set_nights(c.id, 1)

    sleeps = []
    engine = make_engine(view, sleeps=sleeps)
    assert await engine.play(store.stops) is True

    # pause only before the next segment, never after the last
    assert sleeps == [0.5]
    assert engine.current_day == 1 + 2 + 1


async def test_no_pause_without_nights(view):
    store = ItineraryStore()
    store.add_stop(Coordinates(0.0, 0.0))
    b = store.add_stop(Coordinates(0.0, 0.01))
    store.add_stop(Coordinates(0.0, 0.02))
    store.set_nights(b.id, 0)

    sleeps = []
    engine = make_engine(view, sleeps=sleeps)
    await engine.play(store.stops)
    assert sleeps == []


async def test_resolution_failure_aborts_with_teardown(view):
    async def broken_resolver(previous, stop):
        raise RuntimeError("provider exploded")

    engine = make_engine(view, resolver=broken_resolver)
    assert await engine.play(short_hop().stops) is False
    assert view.named("show_token") == []
    assert view.named("remove_token") == [()]
    assert view.named("finished") == [(False,)]
    assert engine.state is PlaybackState.IDLE


async def test_cancel_during_layover_pause(view):
    store = ItineraryStore()
    store.add_stop(Coordinates(0.0, 0.0))
    store.add_stop(Coordinates(0.0, 0.01))
    store.add_stop(Coordinates(0.0, 0.02))

    async def stop_while_resting(seconds):
        engine.stop()

    engine = PlaybackEngine(view=view, scheduler=FixedStepScheduler(100),
                            resolver=straight_resolver, sleep=stop_while_resting,
                            fit_padding=50)
    assert await engine.play(store.stops) is False

    # only the first leg was animated
    assert {args[2] for args in view.named("move_token")} == {0}
    assert view.named("remove_token") == [()]
    assert view.named("hide_clock") == [()]
    assert view.named("finished") == [(False,)]
    assert engine.state is PlaybackState.IDLE


async def test_cancel_while_resolving_legs(view):
    engine = None

    async def stop_during_resolution(previous, stop):
        engine.stop()
        return [previous.coordinates, stop.coordinates]

    engine = make_engine(view, resolver=stop_during_resolution)
    assert await engine.play(short_hop().stops) is False

    assert view.named("show_token") == []
    assert view.named("move_token") == []
    assert view.named("remove_token") == [()]
    assert len(view.named("fit_bounds")) == 1
    assert view.named("finished") == [(False,)]
    assert engine.state is PlaybackState.IDLE


async def test_needs_two_stops(view):
    store = ItineraryStore()
    store.add_stop(Coordinates(0, 0))
    engine = make_engine(view)
    assert await engine.play(store.stops) is False
    assert view.calls == []


async def test_second_start_is_ignored(view):
    engine = make_engine(view)
    engine.state = PlaybackState.PLAYING
    assert await engine.play(short_hop().stops) is False


async def test_session_resets_clock_and_camera(view):
    engine = make_engine(view)
    engine.current_day = 9
    engine.camera_locked = False
    await engine.play(short_hop().stops)
    assert view.named("update_clock")[0] == (1, 8.0)


# ---------------------------------------------------------------------------
# Frame stepping and controls
# ---------------------------------------------------------------------------

def test_speed_ladder_is_clamped(view):
    engine = make_engine(view)
    assert engine.speed == 1
    for _ in range(10):
        engine.speed_up()
    assert engine.speed == SPEED_LADDER[-1] == 5
    for _ in range(10):
        engine.speed_down()
    assert engine.speed == SPEED_LADDER[0] == 0.025
    assert view.named("speed_changed")[-1] == (0.025,)


def test_speed_scales_progress_and_clock(view):
    engine = make_engine(view)
    engine.speed_up()  # 2x
    seg = segment([Coordinates(0, 0), Coordinates(0, 1)], duration_ms=1000)
    engine.advance(seg, 100)
    assert engine.progress == pytest.approx(0.2)
    assert engine.current_hour == pytest.approx(8.2)


def test_clock_carries_whole_days(view):
    engine = make_engine(view)
    seg = segment([Coordinates(0, 0), Coordinates(0, 1)], duration_ms=100000)
    engine.advance(seg, 20000)
    assert engine.current_day == 2
    assert engine.current_hour == pytest.approx(4.0)


def test_progress_divisor_has_a_floor(view):
    engine = make_engine(view)
    seg = segment([Coordinates(0, 0), Coordinates(0, 1)], duration_ms=10)
    engine.advance(seg, 50)
    assert engine.progress == pytest.approx(0.5)


def test_drag_unlocks_and_toggle_recenters(view):
    engine = make_engine(view)
    engine.state = PlaybackState.PLAYING
    seg = segment([Coordinates(0, 0), Coordinates(0, 1)])

    engine.on_map_drag()
    assert engine.camera_locked is False
    engine.advance(seg, 500)
    assert view.named("center") == []

    engine.lock_camera()
    assert engine.camera_locked is True
    assert view.named("center") == [(Coordinates(0, 0.5), False)]
    assert view.named("camera_changed") == [(False,), (True,)]


def test_drag_while_idle_keeps_lock(view):
    engine = make_engine(view)
    engine.on_map_drag()
    assert engine.camera_locked is True


async def test_asyncio_scheduler_measures_frame_time():
    scheduler = AsyncioFrameScheduler(fps=100)
    scheduler.reset()
    first = await scheduler.next_frame()
    second = await scheduler.next_frame()
    assert first > 0
    assert second > 0
