import pytest

from tripline.api.geo import distance, format_distance
from tripline.api.models import Coordinates

PARIS = Coordinates(48.8566, 2.3522)
BERLIN = Coordinates(52.52, 13.405)


def test_distance_is_symmetric():
    assert distance(PARIS, BERLIN) == distance(BERLIN, PARIS)


def test_distance_to_self_is_zero():
    assert distance(PARIS, PARIS) == 0


def test_one_degree_of_longitude_at_equator():
    assert distance(Coordinates(0, 0), Coordinates(0, 1)) == pytest.approx(111195, abs=1)


def test_paris_berlin():
    assert distance(PARIS, BERLIN) / 1000 == pytest.approx(878, abs=2)


@pytest.mark.parametrize("meters, expected", [
    (0, "0 m"),
    (999.4, "999 m"),
    (1000, "1.0 km"),
    (111195, "111.2 km"),
])
def test_format_distance(meters, expected):
    assert format_distance(meters) == expected
