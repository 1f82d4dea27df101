# tripline/routes/travel.py
"""Travel routes and blueprint configuration."""

import asyncio
import logging
import os
import secrets

from flask import Blueprint, jsonify, request, session

from tripline.api import geocoding
from tripline.api.config import get_google_maps_config, get_routing_config
from tripline.api.models import Coordinates, FlightStopover, TravelMethod
from tripline.api.playback.engine import SPEED_LADDER
from tripline.api.playback.session_manager import get_session_manager
from tripline.api.services.itinerary_service import UnknownStopError, ValidationError
from tripline.api.services.map_service import MapService
from tripline.api.services.metrics_service import MetricsService

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.status = status


def _coordinates_from(data):
    """Read ``lat``/``lng`` from a JSON body; None when either is missing."""
    lat, lng = data.get("lat"), data.get("lng")
    if lat is None or lng is None:
        return None
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ApiError("lat/lng must be numbers")
    if not MapService.validate_coordinates(lat, lng):
        raise ApiError("lat/lng out of range")
    return Coordinates(lat, lng)


def _count(data, key):
    """Read a non-negative integer field, or None when absent."""
    if key not in data:
        return None
    try:
        value = int(data[key])
    except (TypeError, ValueError):
        raise ApiError(f"{key} must be an integer")
    if value < 0:
        raise ApiError(f"{key} must be >= 0")
    return value


def current_trip():
    """Return the TripSession bound to the caller's Flask session."""
    if "_id" not in session:
        session["_id"] = f"anon_{secrets.token_urlsafe(12)}"
        session.modified = True
    trip = get_session_manager().get_or_create(session["_id"])
    if trip is None:
        raise ApiError("Server at capacity", 503)
    return trip


def itinerary_payload(trip):
    stops = trip.store.stops
    return {
        "stops": trip.store.to_list(),
        "totals": MetricsService.aggregate(stops).to_dict(),
        "bounds": MapService.calculate_bounds(stops),
        "generation": trip.store.generation,
    }


def create_travel_blueprint(base_dir):
    """Create and configure the travel blueprint.

    Args:
        base_dir: Absolute path to the application directory

    Returns:
        Configured Flask Blueprint
    """
    travel_bp = Blueprint(
        "travel",
        __name__,
        static_folder=os.path.join(base_dir, 'static'),
        static_url_path='/static',
        url_prefix="/travel"
    )

    @travel_bp.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify({"error": str(error)}), error.status

    @travel_bp.errorhandler(ValidationError)
    def handle_validation_error(error):
        status = 404 if isinstance(error, UnknownStopError) else 400
        logger.info(f"Rejected itinerary change: {error}")
        return jsonify({"error": str(error)}), status

    @travel_bp.route("/api/config")
    def api_config():
        """Return client configuration."""
        config = get_google_maps_config()
        return jsonify({
            "geocoder": "google" if config.get("api_key") else "nominatim",
            "routing_providers": len(get_routing_config()["providers"]),
            "speed_ladder": list(SPEED_LADDER),
        })

    # ------------------------------------------------------------------
    # Itinerary
    # ------------------------------------------------------------------

    @travel_bp.route("/api/itinerary", methods=["GET"])
    def api_itinerary():
        """Current stops, derived types and totals."""
        trip = current_trip()
        with trip.lock:
            return jsonify(itinerary_payload(trip))

    @travel_bp.route("/api/itinerary/reset", methods=["POST"])
    def api_reset():
        trip = current_trip()
        trip.reset()
        with trip.lock:
            return jsonify(itinerary_payload(trip))

    @travel_bp.route("/api/stops", methods=["POST"])
    def api_add_stop():
        """Append a stop, optionally placed and named."""
        data = request.get_json(silent=True) or {}
        coordinates = _coordinates_from(data)
        name = data.get("name")

        trip = current_trip()
        with trip.lock:
            stop = trip.store.add_stop(coordinates, name)
            token = trip.store.generation
            payload = itinerary_payload(trip)

        if coordinates is not None and not name:
            trip.name_stop_in_background(stop.id, coordinates, token)

        payload["stop_id"] = stop.id
        return jsonify(payload), 201

    @travel_bp.route("/api/stops/<int:stop_id>", methods=["DELETE"])
    def api_remove_stop(stop_id):
        trip = current_trip()
        with trip.lock:
            trip.store.remove_stop(stop_id)
            return jsonify(itinerary_payload(trip))

    @travel_bp.route("/api/stops/order", methods=["PUT"])
    def api_reorder():
        data = request.get_json(silent=True) or {}
        order = data.get("order")
        if not isinstance(order, list):
            raise ApiError("order must be a list of stop ids")
        try:
            order = [int(i) for i in order]
        except (TypeError, ValueError):
            raise ApiError("order must be a list of stop ids")

        trip = current_trip()
        with trip.lock:
            trip.store.reorder(order)
            return jsonify(itinerary_payload(trip))

    @travel_bp.route("/api/stops/<int:stop_id>", methods=["PATCH"])
    def api_update_stop(stop_id):
        """Apply any of: position/name, travel method, nights, stopover count."""
        data = request.get_json(silent=True) or {}
        coordinates = _coordinates_from(data)
        nights = _count(data, "nights")
        stop_count = _count(data, "flight_stop_count")
        method = None
        if data.get("travel_method") is not None:
            try:
                method = TravelMethod.parse(data["travel_method"])
            except ValueError as e:
                raise ApiError(str(e))

        trip = current_trip()
        with trip.lock:
            store = trip.store
            store.get(stop_id)
            if coordinates is not None:
                store.set_coordinates_and_name(stop_id, coordinates, data.get("name"))
            elif "name" in data:
                store.set_name(stop_id, data["name"])
            if method is not None:
                store.set_travel_method(stop_id, method)
            if nights is not None:
                store.set_nights(stop_id, nights)
            if stop_count is not None:
                store.set_flight_stop_count(stop_id, stop_count)
            return jsonify(itinerary_payload(trip))

    @travel_bp.route("/api/stops/<int:stop_id>/stopovers/<int:index>", methods=["PUT"])
    def api_set_stopover(stop_id, index):
        data = request.get_json(silent=True) or {}
        stopover = FlightStopover(name=data.get("name") or "", coordinates=_coordinates_from(data))

        trip = current_trip()
        with trip.lock:
            trip.store.set_flight_stopover(stop_id, index, stopover)
            return jsonify(itinerary_payload(trip))

    # ------------------------------------------------------------------
    # Routes & geocoding
    # ------------------------------------------------------------------

    @travel_bp.route("/api/routes", methods=["GET"])
    def api_routes():
        """Resolve leg geometry for the current itinerary."""
        trip = current_trip()
        fresh = asyncio.run(trip.refresh_routes())
        with trip.lock:
            return jsonify({
                "legs": trip.routes,
                "generation": trip.routes_generation,
                "stale": not fresh,
            })

    @travel_bp.route("/api/geocode/search", methods=["GET"])
    def api_geocode_search():
        query = request.args.get("q", "")
        return jsonify({"results": geocoding.search_places(query)})

    @travel_bp.route("/api/geocode/reverse", methods=["GET"])
    def api_geocode_reverse():
        coordinates = _coordinates_from(request.args)
        if coordinates is None:
            raise ApiError("lat and lng are required")
        return jsonify({"name": geocoding.reverse_geocode(coordinates)})

    @travel_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "travel"})

    return travel_bp


# Export for backward compatibility
__all__ = ['create_travel_blueprint', 'current_trip']
