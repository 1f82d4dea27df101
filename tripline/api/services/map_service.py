# tripline/api/services/map_service.py
"""Service layer for map-related operations."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from tripline.api.models import Coordinates, Stop
from tripline.api.routing import resolve_route
from tripline.api.services.itinerary_service import iter_legs

logger = logging.getLogger(__name__)


class MapService:
    """Handles leg geometry and map framing."""

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            True if valid, False otherwise
        """
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def calculate_bounds(stops: Sequence[Stop]) -> Dict[str, Any]:
        """Calculate bounding box for all placed stops.

        Args:
            stops: Stops in travel order

        Returns:
            Dictionary with north, south, east, west bounds (empty if nothing is placed)
        """
        lats = [s.coordinates.lat for s in stops if s.coordinates is not None]
        lngs = [s.coordinates.lng for s in stops if s.coordinates is not None]

        if not lats or not lngs:
            return {}

        return {
            'north': max(lats),
            'south': min(lats),
            'east': max(lngs),
            'west': min(lngs)
        }

    @staticmethod
    async def resolve_leg(previous: Stop, stop: Stop,
                          client: Optional[httpx.AsyncClient] = None) -> List[Coordinates]:
        """Resolve the polyline of the leg arriving at ``stop``."""
        return await resolve_route(
            previous.coordinates,
            stop.coordinates,
            stop.travel_method,
            stop.active_stopovers,
            client=client,
        )

    @staticmethod
    async def resolve_legs(stops: Sequence[Stop]) -> List[Dict[str, Any]]:
        """Resolve every placed leg concurrently.

        Args:
            stops: Stop snapshot in travel order

        Returns:
            One ``{from_id, to_id, travel_method, geometry}`` dict per leg
        """
        legs = list(iter_legs(stops))
        if not legs:
            return []

        async with httpx.AsyncClient() as client:
            geometries = await asyncio.gather(
                *(MapService.resolve_leg(prev, stop, client) for prev, stop in legs)
            )

        logger.info(f"Resolved {len(legs)} legs")
        return [
            {
                'from_id': prev.id,
                'to_id': stop.id,
                'travel_method': stop.travel_method.value,
                'geometry': [[p.lat, p.lng] for p in geometry],
            }
            for (prev, stop), geometry in zip(legs, geometries)
        ]


# Export for use in other modules
__all__ = ['MapService']
