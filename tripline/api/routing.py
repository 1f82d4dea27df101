# tripline/api/routing.py
"""Leg geometry resolution.

Road legs are routed through a chain of OSRM-compatible providers and fall
back to a straight line; flight legs are drawn as bowed quadratic arcs
through their stopovers.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Iterable, List, Optional, Sequence, Union

import httpx

from tripline.api.config import get_routing_config
from tripline.api.models import Coordinates, FlightStopover, TravelMethod

logger = logging.getLogger(__name__)

# OSRM profile per travel method; rail and coach follow the road network
PROFILE_BY_METHOD = {
    TravelMethod.CAR: "driving",
    TravelMethod.BUS: "driving",
    TravelMethod.TRAIN: "driving",
    TravelMethod.WALK: "walking",
}

# Profile names used by the routed-* hosts
OSM_PROFILES = {"driving": "car", "walking": "foot"}

ARC_BOW = 0.2
ARC_STEPS = 20

Waypoint = Union[Coordinates, FlightStopover]


# ---------------------------------------------------------------------------
# Flight arcs
# ---------------------------------------------------------------------------

def build_arc(p1: Coordinates, p2: Coordinates, steps: int = ARC_STEPS) -> List[Coordinates]:
    """Sample a quadratic Bezier between two points.

    The control point sits on the midpoint, pushed north by a fifth of the
    straight-line length measured in degrees. Returns ``steps + 1`` points
    with exact endpoints.
    """
    span = math.hypot(p2.lat - p1.lat, p2.lng - p1.lng)
    ctrl_lat = (p1.lat + p2.lat) / 2 + span * ARC_BOW
    ctrl_lng = (p1.lng + p2.lng) / 2

    points = []
    for i in range(steps + 1):
        t = i / steps
        u = 1 - t
        lat = u * u * p1.lat + 2 * u * t * ctrl_lat + t * t * p2.lat
        lng = u * u * p1.lng + 2 * u * t * ctrl_lng + t * t * p2.lng
        points.append(Coordinates(lat, lng))
    return points


def _waypoint_coordinates(waypoint: Optional[Waypoint]) -> Optional[Coordinates]:
    if isinstance(waypoint, FlightStopover):
        return waypoint.coordinates
    return waypoint


def build_flight_path(start: Coordinates, end: Coordinates,
                      stopovers: Iterable[Waypoint] = ()) -> List[Coordinates]:
    """Concatenate one arc per hop of ``start -> stopovers... -> end``.

    Stopovers without coordinates are skipped.
    """
    points = [start]
    points.extend(c for c in map(_waypoint_coordinates, stopovers) if c is not None)
    points.append(end)

    path: List[Coordinates] = []
    for p1, p2 in zip(points, points[1:]):
        path.extend(build_arc(p1, p2))
    return path


# ---------------------------------------------------------------------------
# Road routing
# ---------------------------------------------------------------------------

def build_provider_url(template: str, profile: str, start: Coordinates, end: Coordinates) -> str:
    coordinates = f"{start.lng},{start.lat};{end.lng},{end.lat}"
    return template.format(
        profile=profile,
        osm_profile=OSM_PROFILES.get(profile, profile),
        coordinates=coordinates,
    )


def parse_route_geometry(payload) -> Optional[List[Coordinates]]:
    """Extract ``routes[0].geometry.coordinates`` as (lat, lng) points.

    Returns None when the body carries no route.
    """
    routes = payload.get("routes") or []
    if not routes:
        return None
    raw = routes[0]["geometry"]["coordinates"]
    path = [Coordinates(float(pair[1]), float(pair[0])) for pair in raw]
    return path or None


async def fetch_road_route(start: Coordinates, end: Coordinates, profile: str, *,
                           client: httpx.AsyncClient,
                           providers: Sequence[str],
                           timeout: float) -> Optional[List[Coordinates]]:
    """Try each provider in order and return the first usable route."""
    for template in providers:
        try:
            url = build_provider_url(template, profile, start, end)
        except (KeyError, ValueError, IndexError) as e:
            logger.warning(f"Skipping routing provider with bad template {template!r}: {e}")
            continue
        try:
            response = await asyncio.wait_for(
                client.get(url, params={"overview": "full", "geometries": "geojson"}),
                timeout=timeout,
            )
            response.raise_for_status()
            path = parse_route_geometry(response.json())
            if path:
                logger.debug(f"Routed {profile} leg via {url} ({len(path)} points)")
                return path
            logger.warning(f"Routing provider returned no route: {url}")

        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Routing provider timed out after {timeout}s: {url}")
        except httpx.HTTPStatusError as e:
            logger.warning(f"Routing provider HTTP {e.response.status_code}: {url}")
        except httpx.RequestError as e:
            logger.warning(f"Routing provider not reachable: {url} ({e})")
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed routing response from {url}: {e}")

    return None


async def resolve_route(start: Coordinates, end: Coordinates, method,
                        active_stopovers: Optional[Sequence[Waypoint]] = None, *,
                        legacy_stopover: Optional[Waypoint] = None,
                        client: Optional[httpx.AsyncClient] = None,
                        providers: Optional[Sequence[str]] = None,
                        timeout: Optional[float] = None) -> List[Coordinates]:
    """Return the polyline for one leg.

    Flight legs never touch the network. Road legs always resolve: when every
    provider fails the result is the straight line ``[start, end]``.
    """
    method = TravelMethod.parse(method)

    if method is TravelMethod.PLANE:
        stopovers = list(active_stopovers or [])
        if not stopovers and legacy_stopover is not None:
            stopovers = [legacy_stopover]
        return build_flight_path(start, end, stopovers)

    cfg = get_routing_config()
    if providers is None:
        providers = cfg["providers"]
    if timeout is None:
        timeout = cfg["timeout_seconds"]

    profile = PROFILE_BY_METHOD[method]
    if client is None:
        async with httpx.AsyncClient() as own_client:
            path = await fetch_road_route(start, end, profile, client=own_client,
                                          providers=providers, timeout=timeout)
    else:
        path = await fetch_road_route(start, end, profile, client=client,
                                      providers=providers, timeout=timeout)

    if path:
        return path

    logger.warning(f"All routing providers failed for {method.value} leg, using straight line")
    return [start, end]


__all__ = [
    "build_arc",
    "build_flight_path",
    "build_provider_url",
    "fetch_road_route",
    "parse_route_geometry",
    "resolve_route",
]
