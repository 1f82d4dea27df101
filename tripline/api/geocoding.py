# tripline/api/geocoding.py
from __future__ import annotations

import logging
from typing import List, Dict, Any, Optional
from functools import lru_cache

import googlemaps
from googlemaps import exceptions as gmaps_exceptions
import requests

from tripline.api.config import get_geocoding_config, get_google_maps_config
from tripline.api.models import Coordinates

logger = logging.getLogger(__name__)

# Reverse-geocoding address keys, most specific locality first
LOCALITY_KEYS = ("city", "town", "village", "hamlet")
GOOGLE_LOCALITY_TYPES = ("locality", "postal_town", "administrative_area_level_3", "sublocality")

NETWORK_ERRORS = (
    requests.RequestException,
    gmaps_exceptions.ApiError,
    gmaps_exceptions.TransportError,
    gmaps_exceptions.Timeout,
)

_gmaps: googlemaps.Client | None = None


def _get_client() -> googlemaps.Client | None:
    """Return a cached googlemaps.Client, or None when no key is configured."""
    global _gmaps
    if _gmaps is None:
        api_key = get_google_maps_config().get("api_key", "")
        if not api_key:
            return None
        try:
            logger.info(f"Initializing Google Maps client with key: {api_key[:10]}...")
            _gmaps = googlemaps.Client(key=api_key)
        except ValueError as e:
            logger.error(f"Failed to initialize Google Maps client: {e}")
            return None
    return _gmaps


def _nominatim_get(path: str, params: Dict[str, Any]) -> Any:
    cfg = get_geocoding_config()
    params = {"format": "json", "accept-language": cfg["language"], **params}
    response = requests.get(
        f"{cfg['base_url']}/{path}",
        params=params,
        headers={"User-Agent": cfg["user_agent"]},
        timeout=cfg["timeout_seconds"],
    )
    response.raise_for_status()
    return response.json()


def short_place_name(address: Optional[Dict[str, Any]], display_name: str = "") -> Optional[str]:
    """Pick a locality from a Nominatim ``address`` block.

    Falls back to the first component of ``display_name``.
    """
    for key in LOCALITY_KEYS:
        value = (address or {}).get(key)
        if value:
            return value
    if display_name:
        return display_name.split(",")[0].strip() or None
    return None


# ---------------------------------------------------------------------------
# Forward search
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1000)
def _search_places_cached(query: str) -> tuple:
    client = _get_client()
    if client is not None:
        results = client.geocode(query, language=get_geocoding_config()["language"])
        return tuple(
            (r["formatted_address"], r["geometry"]["location"]["lat"], r["geometry"]["location"]["lng"])
            for r in results or []
        )

    results = _nominatim_get("search", {"q": query, "limit": get_geocoding_config()["limit"]})
    return tuple(
        (r["display_name"], float(r["lat"]), float(r["lon"]))
        for r in results or []
    )


def search_places(query: str) -> List[Dict[str, Any]]:
    """Resolve free text to a list of ``{name, lat, lng}`` suggestions.

    An empty list means no suggestion; network failures are logged and
    reported the same way.
    """
    query = (query or "").strip()
    if not query:
        return []
    try:
        rows = _search_places_cached(query)
    except NETWORK_ERRORS as e:
        logger.error(f"Geocoding error for '{query}': {e}")
        return []
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Malformed geocoding response for '{query}': {e}")
        return []

    if not rows:
        logger.info(f"No results found for place: {query}")
    return [{"name": name, "lat": lat, "lng": lng} for name, lat, lng in rows]


# ---------------------------------------------------------------------------
# Reverse geocoding
# ---------------------------------------------------------------------------

def _google_locality(results: List[Dict[str, Any]]) -> Optional[str]:
    for result in results:
        for component in result.get("address_components", []):
            if any(t in component.get("types", []) for t in GOOGLE_LOCALITY_TYPES):
                return component.get("long_name")
    if results:
        return results[0].get("formatted_address", "").split(",")[0].strip() or None
    return None


@lru_cache(maxsize=1000)
def _reverse_geocode_cached(lat: float, lng: float) -> Optional[str]:
    client = _get_client()
    if client is not None:
        return _google_locality(client.reverse_geocode((lat, lng)) or [])

    payload = _nominatim_get("reverse", {"lat": lat, "lon": lng, "zoom": 10, "addressdetails": 1})
    if not payload or "error" in payload:
        return None
    return short_place_name(payload.get("address"), payload.get("display_name", ""))


def reverse_geocode(coordinates: Coordinates) -> Optional[str]:
    """Return a short locality name for a point, or None if nothing is known."""
    # Round so map clicks a few meters apart share a cache entry
    lat = round(coordinates.lat, 5)
    lng = round(coordinates.lng, 5)
    try:
        name = _reverse_geocode_cached(lat, lng)
    except NETWORK_ERRORS as e:
        logger.error(f"Reverse geocoding error for {lat},{lng}: {e}")
        return None
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.error(f"Malformed reverse geocoding response for {lat},{lng}: {e}")
        return None

    logger.debug(f"Reverse geocoded {lat},{lng} to {name}")
    return name


# Re-export for clean imports elsewhere
__all__ = [
    "search_places",
    "reverse_geocode",
    "short_place_name",
]
