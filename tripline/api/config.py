# api/config.py
"""Configuration management for the trip planner API."""
import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_ROUTING_PROVIDERS = [
    "https://router.project-osrm.org/route/v1/{profile}/{coordinates}",
    "https://routing.openstreetmap.de/routed-{osm_profile}/route/v1/{profile}/{coordinates}",
]


def get_routing_config():
    """Get routing provider configuration.

    Providers are tried in order. Each template may use ``{profile}``
    (``driving``/``walking``), ``{osm_profile}`` (``car``/``foot``) and
    ``{coordinates}`` in ``lon,lat;lon,lat`` form.
    """
    raw = os.getenv("ROUTING_PROVIDERS", "")
    providers = [p.strip() for p in raw.split(",") if p.strip()] or list(DEFAULT_ROUTING_PROVIDERS)
    return {
        "providers": providers,
        "timeout_seconds": float(os.getenv("ROUTING_TIMEOUT_SECONDS", "2.0")),
    }


def get_geocoding_config():
    """Get Nominatim geocoding configuration."""
    return {
        "base_url": os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/"),
        "user_agent": os.getenv("GEOCODING_USER_AGENT", "tripline/1.0"),
        "timeout_seconds": float(os.getenv("GEOCODING_TIMEOUT_SECONDS", "5")),
        "limit": int(os.getenv("GEOCODING_LIMIT", "5")),
        "language": os.getenv("GEOCODING_LANGUAGE", "en"),
    }


def get_google_maps_config():
    """Get Google Maps configuration.

    When an API key is present, geocoding goes through Google instead of
    Nominatim.
    """
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "client_id": os.getenv("maps_client_id", ""),
        "client_secret": os.getenv("maps_client_secret", "")
    }


def get_playback_config():
    """Get playback configuration."""
    return {
        "fps": int(os.getenv("PLAYBACK_FPS", "30")),
        "fit_padding_px": int(os.getenv("PLAYBACK_FIT_PADDING_PX", "50")),
    }


def get_session_config():
    """Get trip session configuration."""
    return {
        "session_timeout_seconds": int(os.getenv("TRIP_SESSION_TIMEOUT_SECONDS", "3600")),
        "max_sessions": int(os.getenv("MAX_TRIP_SESSIONS", "500")),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))
