"""Shared data structures for trip itineraries and playback.

The store, the route resolver, the metrics aggregator and the playback
engine all exchange these plain dataclasses, so they live in one module
without importing any service code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class TravelMethod(str, Enum):
    """How the traveller arrived at a stop."""

    CAR = "car"
    TRAIN = "train"
    BUS = "bus"
    WALK = "walk"
    PLANE = "plane"

    @classmethod
    def parse(cls, value: Any) -> "TravelMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown travel method: {value!r}") from None


class StopType(str, Enum):
    START = "start"
    STOP = "stop"
    END = "end"


def derive_type(index: int, length: int) -> StopType:
    """Return the positional type of the stop at ``index``.

    Index 0 is always the start; the last stop is the end only when the
    itinerary has at least two stops.
    """
    if index == 0:
        return StopType.START
    if length >= 2 and index == length - 1:
        return StopType.END
    return StopType.STOP


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in degrees."""

    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class FlightStopover:
    """An intermediate point of a flight leg."""

    name: str = ""
    coordinates: Optional[Coordinates] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
        }


@dataclass
class Stop:
    """A single stop on a trip itinerary.

    ``travel_method`` describes how the traveller arrived here and is
    ignored for the first stop. Only the first ``flight_stop_count``
    entries of ``flight_stopovers`` are active.
    """

    id: int
    coordinates: Optional[Coordinates] = None
    name: Optional[str] = None
    travel_method: TravelMethod = TravelMethod.CAR
    nights: int = 1
    flight_stop_count: int = 0
    flight_stopovers: List[FlightStopover] = field(default_factory=list)

    @property
    def active_stopovers(self) -> List[FlightStopover]:
        if self.travel_method is not TravelMethod.PLANE:
            return []
        return self.flight_stopovers[:self.flight_stop_count]

    def to_dict(self, index: Optional[int] = None, length: Optional[int] = None) -> dict:
        data = {
            "id": self.id,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "name": self.name,
            "travel_method": self.travel_method.value,
            "nights": self.nights,
            "flight_stop_count": self.flight_stop_count,
            "flight_stopovers": [s.to_dict() for s in self.flight_stopovers],
        }
        if index is not None and length is not None:
            data["type"] = derive_type(index, length).value
        return data


@dataclass
class LegSummary:
    """Aggregated figures for the leg arriving at ``to_id``."""

    from_id: int
    to_id: int
    travel_method: TravelMethod
    distance_meters: float
    duration_hours: float
    display_duration: str

    def to_dict(self) -> dict:
        return {
            "from_id": self.from_id,
            "to_id": self.to_id,
            "travel_method": self.travel_method.value,
            "distance_meters": self.distance_meters,
            "duration_hours": self.duration_hours,
            "display_duration": self.display_duration,
        }


@dataclass
class Totals:
    total_stops: int = 0
    total_distance: float = 0.0
    total_distance_display: str = "0 m"
    total_nights: int = 0
    travel_days: float = 0.0
    total_days: float = 0.0
    total_days_display: str = "0"
    legs: List[LegSummary] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_stops": self.total_stops,
            "total_distance": self.total_distance,
            "total_distance_display": self.total_distance_display,
            "total_nights": self.total_nights,
            "travel_days": self.travel_days,
            "total_days": self.total_days,
            "total_days_display": self.total_days_display,
            "legs": [leg.to_dict() for leg in self.legs],
        }


@dataclass
class PlaybackSegment:
    """One animated leg, built when playback starts and dropped when it ends."""

    geometry: List[Coordinates]
    travel_method: TravelMethod
    real_duration_hours: float
    base_animation_duration_ms: float
    nights_after: int
