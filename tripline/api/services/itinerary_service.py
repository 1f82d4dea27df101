# tripline/api/services/itinerary_service.py
"""Service layer for itinerary state and mutations."""

import copy
import itertools
import logging
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from tripline.api.geo import distance
from tripline.api.models import (
    Coordinates,
    FlightStopover,
    Stop,
    TravelMethod,
)

logger = logging.getLogger(__name__)

# Car speed used to pick a default travel method, km/h
SUGGESTION_SPEED_KMH = 60
CAR_MAX_HOURS = 2
TRAIN_MAX_HOURS = 6


class ValidationError(ValueError):
    """A mutation referenced an unknown stop or carried invalid values."""


class UnknownStopError(ValidationError):
    """No stop with the given id exists."""


def suggest_travel_method(previous: Optional[Coordinates], current: Optional[Coordinates]) -> TravelMethod:
    """Pick a travel method from the car-time estimate between two points."""
    if previous is None or current is None:
        return TravelMethod.CAR
    hours = distance(previous, current) / 1000 / SUGGESTION_SPEED_KMH
    if hours < CAR_MAX_HOURS:
        return TravelMethod.CAR
    if hours <= TRAIN_MAX_HOURS:
        return TravelMethod.TRAIN
    return TravelMethod.PLANE


def iter_legs(stops: Sequence[Stop]) -> Iterator[Tuple[Stop, Stop]]:
    """Yield consecutive ``(previous, stop)`` pairs where both are placed."""
    for previous, stop in zip(stops, stops[1:]):
        if previous.coordinates is not None and stop.coordinates is not None:
            yield previous, stop


class ItineraryStore:
    """Owns the ordered stop sequence of one trip.

    Every mutation advances ``generation``. Late
    asynchronous results must carry the generation they were issued at and
    go through :meth:`apply_if_current`.
    """

    def __init__(self):
        self._stops: List[Stop] = []
        self._ids = itertools.count(1)
        self.generation = 0

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def stops(self) -> List[Stop]:
        """The stops in travel order (a shallow copy of the sequence)."""
        return list(self._stops)

    def snapshot(self) -> List[Stop]:
        """Deep copies of the stops, safe to hand to async work."""
        return copy.deepcopy(self._stops)

    def __len__(self) -> int:
        return len(self._stops)

    def get(self, stop_id: int) -> Stop:
        for stop in self._stops:
            if stop.id == stop_id:
                return stop
        raise UnknownStopError(f"Unknown stop id: {stop_id}")

    def index_of(self, stop_id: int) -> int:
        for index, stop in enumerate(self._stops):
            if stop.id == stop_id:
                return index
        raise UnknownStopError(f"Unknown stop id: {stop_id}")

    def to_list(self) -> List[dict]:
        """Serialize all stops with their positional type."""
        length = len(self._stops)
        return [stop.to_dict(index, length) for index, stop in enumerate(self._stops)]

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def _changed(self, action: str) -> None:
        self.generation += 1
        logger.debug(f"Itinerary {action} -> generation {self.generation}")

    def is_current(self, token: int) -> bool:
        return token == self.generation

    def apply_if_current(self, token: int, apply: Callable[[], None]) -> bool:
        """Run ``apply`` only if nothing changed since ``token`` was taken."""
        if not self.is_current(token):
            logger.debug(f"Discarding stale result (token {token}, generation {self.generation})")
            return False
        apply()
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _previous_placed(self, index: int) -> Optional[Coordinates]:
        for stop in reversed(self._stops[:index]):
            if stop.coordinates is not None:
                return stop.coordinates
        return None

    def add_stop(self, coordinates: Optional[Coordinates] = None, name: Optional[str] = None) -> Stop:
        """Append a stop; its travel method is suggested from the last placed stop."""
        method = suggest_travel_method(self._previous_placed(len(self._stops)), coordinates)
        stop = Stop(id=next(self._ids), coordinates=coordinates, name=name, travel_method=method)
        self._stops.append(stop)
        logger.info(f"Added stop {stop.id} ({method.value})")
        self._changed("add")
        return stop

    def remove_stop(self, stop_id: int) -> None:
        index = self.index_of(stop_id)
        del self._stops[index]
        logger.info(f"Removed stop {stop_id}")
        self._changed("remove")

    def reorder(self, new_order: Sequence[int]) -> None:
        """Replace the sequence with a permutation of the current ids."""
        current = sorted(stop.id for stop in self._stops)
        if sorted(new_order) != current:
            raise ValidationError("Reorder must be a permutation of the current stop ids")
        by_id = {stop.id: stop for stop in self._stops}
        self._stops = [by_id[stop_id] for stop_id in new_order]
        self._changed("reorder")

    def set_coordinates_and_name(self, stop_id: int, coordinates: Optional[Coordinates],
                                 name: Optional[str] = None) -> Stop:
        index = self.index_of(stop_id)
        stop = self._stops[index]
        first_placement = stop.coordinates is None and coordinates is not None
        stop.coordinates = coordinates
        if name is not None:
            stop.name = name
        if first_placement and index > 0:
            stop.travel_method = suggest_travel_method(self._previous_placed(index), coordinates)
        self._changed("relocate")
        return stop

    def set_name(self, stop_id: int, name: Optional[str], invalidate: bool = True) -> Stop:
        """Rename a stop.

        With ``invalidate=False`` the generation is left alone, so pending
        route results stay valid; used for names filled in by geocoding.
        """
        stop = self.get(stop_id)
        stop.name = name
        if invalidate:
            self._changed("rename")
        else:
            logger.debug(f"Stop {stop_id} named {name!r}")
        return stop

    def set_travel_method(self, stop_id: int, method) -> Stop:
        stop = self.get(stop_id)
        try:
            stop.travel_method = TravelMethod.parse(method)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        self._changed("method")
        return stop

    def set_nights(self, stop_id: int, nights: int) -> Stop:
        nights = _non_negative(nights, "nights")
        stop = self.get(stop_id)
        stop.nights = nights
        self._changed("nights")
        return stop

    def set_flight_stop_count(self, stop_id: int, count: int) -> Stop:
        """Change how many stopovers are active; stored stopovers are kept."""
        count = _non_negative(count, "flight_stop_count")
        stop = self.get(stop_id)
        stop.flight_stop_count = count
        self._changed("stopover count")
        return stop

    def set_flight_stopover(self, stop_id: int, index: int, stopover: FlightStopover) -> Stop:
        index = _non_negative(index, "stopover index")
        stop = self.get(stop_id)
        while len(stop.flight_stopovers) <= index:
            stop.flight_stopovers.append(FlightStopover())
        stop.flight_stopovers[index] = stopover
        self._changed("stopover")
        return stop

    def reset(self) -> None:
        """Drop every stop and restart id allocation."""
        self._stops = []
        self._ids = itertools.count(1)
        logger.info("Itinerary reset")
        self._changed("reset")


def _non_negative(value, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be an integer") from None
    if number < 0:
        raise ValidationError(f"{label} must be >= 0")
    return number


__all__ = ["ItineraryStore", "UnknownStopError", "ValidationError", "iter_legs", "suggest_travel_method"]
