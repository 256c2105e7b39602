from dataclasses import dataclass
from math import radians, sin, cos, sqrt, atan2, isfinite
from typing import Any, Iterable, Optional, Tuple

EARTH_RADIUS_M = 6371000


class InvalidCoordinatesError(ValueError):
    pass


def haversine_dist(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    R = EARTH_RADIUS_M
    φ1, φ2 = radians(lat1), radians(lat2)
    Δφ = radians(lat2 - lat1)
    Δλ = radians(lng2 - lng1)

    a = sin(Δφ/2)**2 + cos(φ1) * cos(φ2) * sin(Δλ/2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return R * c

def is_within_radius(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float
) -> bool:

    return haversine_dist(lat, lng, center_lat, center_lng) <= radius_m


def validate_coordinates(lat: Any, lng: Any) -> Tuple[float, float]:
    """
    Coerce a GPS fix to floats.

    Accepts numbers or numeric strings. Raises InvalidCoordinatesError for
    missing, non-numeric, non-finite or out-of-range values.
    """
    if lat is None or lng is None or isinstance(lat, bool) or isinstance(lng, bool):
        raise InvalidCoordinatesError("Valid GPS coordinates are required.")
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        raise InvalidCoordinatesError("Valid GPS coordinates are required.")

    if not isfinite(lat_f) or not isfinite(lng_f):
        raise InvalidCoordinatesError("Valid GPS coordinates are required.")
    if not -90 <= lat_f <= 90 or not -180 <= lng_f <= 180:
        raise InvalidCoordinatesError("GPS coordinates out of range.")
    return lat_f, lng_f


@dataclass
class GeofenceMatch:
    location: Optional[Any] = None
    distance_meters: Optional[float] = None
    adhoc_location: Optional[Any] = None

    @property
    def effective_location(self) -> Optional[Any]:
        return self.location if self.location is not None else self.adhoc_location


def find_matching_location(lat: float, lng: float, locations: Iterable[Any]) -> GeofenceMatch:
    """
    Nearest location whose geofence contains (lat, lng).

    `locations` are rows with lat, lng and radius_meters, already filtered to
    active ones. Locations with radius <= 0 never match by distance; the first
    of them is kept as the ADHOC fallback. On equal distances the first
    location encountered wins.
    """
    best = None
    best_distance = None
    adhoc = None

    for loc in locations:
        radius = loc.radius_meters or 0
        if radius <= 0:
            if adhoc is None:
                adhoc = loc
            continue

        distance = haversine_dist(lat, lng, loc.lat, loc.lng)
        if distance <= radius and (best_distance is None or distance < best_distance):
            best = loc
            best_distance = distance

    return GeofenceMatch(location=best, distance_meters=best_distance, adhoc_location=adhoc)
