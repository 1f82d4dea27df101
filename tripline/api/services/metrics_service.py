# tripline/api/services/metrics_service.py
"""Trip distance, duration and day totals."""

import logging
from typing import List, Sequence

from tripline.api.geo import distance, format_distance
from tripline.api.models import Coordinates, LegSummary, Stop, Totals, TravelMethod
from tripline.api.services.itinerary_service import iter_legs

logger = logging.getLogger(__name__)

# Average speeds in km/h
SPEEDS_KMH = {
    TravelMethod.CAR: 60,
    TravelMethod.TRAIN: 80,
    TravelMethod.BUS: 40,
    TravelMethod.WALK: 5,
    TravelMethod.PLANE: 800,
}
DEFAULT_SPEED_KMH = 60


class MetricsService:
    """Aggregates per-leg and whole-trip figures from a stop snapshot."""

    @staticmethod
    def leg_path(previous: Stop, stop: Stop) -> List[Coordinates]:
        """Points a leg passes through for distance purposes.

        Flight legs go through their active stopovers; stopovers that were
        never placed are skipped.
        """
        points = [previous.coordinates]
        for stopover in stop.active_stopovers:
            if stopover.coordinates is not None:
                points.append(stopover.coordinates)
        points.append(stop.coordinates)
        return points

    @staticmethod
    def leg_distance(previous: Stop, stop: Stop) -> float:
        """Distance in meters of the leg arriving at ``stop``."""
        points = MetricsService.leg_path(previous, stop)
        return sum(distance(a, b) for a, b in zip(points, points[1:]))

    @staticmethod
    def leg_hours(distance_meters: float, method) -> float:
        speed = SPEEDS_KMH.get(method, DEFAULT_SPEED_KMH)
        return (distance_meters / 1000) / speed

    @staticmethod
    def format_duration(hours: float) -> str:
        """``"<m> min"`` under an hour, otherwise ``"<h> h <m> min"``."""
        minutes = round(hours * 60)
        if minutes < 60:
            return f"{minutes} min"
        return f"{minutes // 60} h {minutes % 60} min"

    @staticmethod
    def format_days(days: float) -> str:
        if float(days).is_integer():
            return str(int(days))
        return f"{days:.1f}"

    @staticmethod
    def summarize_leg(previous: Stop, stop: Stop) -> LegSummary:
        meters = MetricsService.leg_distance(previous, stop)
        hours = MetricsService.leg_hours(meters, stop.travel_method)
        return LegSummary(
            from_id=previous.id,
            to_id=stop.id,
            travel_method=stop.travel_method,
            distance_meters=meters,
            duration_hours=hours,
            display_duration=MetricsService.format_duration(hours),
        )

    @staticmethod
    def aggregate(stops: Sequence[Stop]) -> Totals:
        """Compute trip totals.

        The first stop's nights never count. Total days blend whole nights
        with fractional travel time: ``nights + sum(leg hours) / 24``.
        """
        legs = [MetricsService.summarize_leg(prev, stop) for prev, stop in iter_legs(stops)]

        total_distance = sum(leg.distance_meters for leg in legs)
        total_nights = sum(stop.nights for stop in stops[1:])
        travel_days = sum(leg.duration_hours for leg in legs) / 24
        total_days = total_nights + travel_days

        return Totals(
            total_stops=len(stops),
            total_distance=total_distance,
            total_distance_display=format_distance(total_distance),
            total_nights=total_nights,
            travel_days=travel_days,
            total_days=total_days,
            total_days_display=MetricsService.format_days(total_days),
            legs=legs,
        )


# Export for use in other modules
__all__ = ['MetricsService', 'SPEEDS_KMH']
