"""
Proximity resolution for "stolen near me" searches.

Turns a location string and a radius into a bounding box. Every way
this can go wrong (no location, "anywhere", no client IP, geocoder
down or timing out, a location that doesn't geocode) is a soft
failure: resolve() returns None and the caller falls back to the
default stolenness instead of surfacing an error.
"""

import math
from typing import Any, Optional

from config.patterns import (
    ANYWHERE_PATTERN,
    IP_LOCATION_SENTINELS,
    DEFAULT_DISTANCE,
    DISTANCE_PATTERN,
    ALPHABETIC_COMPONENT_PATTERN,
    has_pattern,
)
from core.context import BoundingBox, ProximityResult
from core.geocoding import Geocoder, GeocodingError
from core.structured_logging import get_logger, log_geocode_failure

_logger = get_logger("core.proximity")


def coerce_distance(raw: Any) -> int:
    """
    Parse a raw distance into whole miles, defaulting when unusable.

    Examples:
        coerce_distance("25")     # 25
        coerce_distance("12.9mi") # 12
        coerce_distance(None)     # 100
        coerce_distance("-5")     # 100
    """
    if isinstance(raw, bool):
        return DEFAULT_DISTANCE
    if isinstance(raw, (int, float)):
        value = raw if math.isfinite(raw) else 0
    else:
        match = DISTANCE_PATTERN.match(str(raw)) if raw is not None else None
        value = float(match.group(1)) if match else 0
    distance = int(value)
    return distance if distance > 0 else DEFAULT_DISTANCE


def is_anywhere(location: Optional[str]) -> bool:
    """True when the location means "no geographic constraint"."""
    return has_pattern(location, ANYWHERE_PATTERN)


def is_ip_sentinel(location: str) -> bool:
    """True when the location means "use the requester's IP location"."""
    return location.strip().lower() in IP_LOCATION_SENTINELS


class ProximityResolver:
    """
    Resolves a location and radius to a bounding box.

    Example:
        resolver = ProximityResolver(HTTPGeocoder())
        result = resolver.resolve("Chicago, IL", "25", client_ip=None)
        if result:
            result.bounding_box  # BoundingBox(south=41.5..., ...)
    """

    def __init__(self, geocoder: Geocoder):
        self.geocoder = geocoder

    def resolve(
        self,
        location: Any,
        distance: Any = None,
        client_ip: Optional[str] = None,
    ) -> Optional[ProximityResult]:
        """
        Resolve a proximity request.

        Args:
            location: Address, or "ip"/"you"/"" for the requester's location
            distance: Radius in miles (any value; defaults to 100)
            client_ip: Requester's network address

        Returns:
            ProximityResult, or None on soft failure
        """
        if location is None:
            return None
        location = str(location)
        if is_anywhere(location):
            return None

        if is_ip_sentinel(location):
            if not client_ip:
                _logger.debug(
                    "IP location requested without a client IP",
                    extra={"event": "proximity_skipped", "failure_reason": "no_client_ip"},
                )
                return None
            location = self._locate_ip(client_ip)
            if not location:
                return None

        effective_distance = coerce_distance(distance)
        bounding_box = self._bounding_box(location, effective_distance)
        if bounding_box is None:
            return None

        return ProximityResult(
            bounding_box=bounding_box,
            location=location,
            distance=effective_distance,
        )

    def _locate_ip(self, client_ip: str) -> Optional[str]:
        """Place name for an IP address, or None if it can't be located."""
        try:
            places = self.geocoder.search(client_ip)
        except GeocodingError as e:
            log_geocode_failure(client_ip, str(e), geocoder=type(self.geocoder).__name__)
            return None
        if not places:
            log_geocode_failure(client_ip, "no_results", geocoder=type(self.geocoder).__name__)
            return None

        place = places[0]
        if isinstance(place.address_components, list):
            # Postal codes and other numeric fragments geocode badly; keep names only
            components = [
                str(c) for c in reversed(place.address_components)
                if c is not None and ALPHABETIC_COMPONENT_PATTERN.match(str(c))
            ]
            if components:
                return ", ".join(components)
        if place.display_name:
            return place.display_name
        return f"{place.latitude}, {place.longitude}"

    def _bounding_box(self, location: str, distance: int) -> Optional[BoundingBox]:
        try:
            coords = self.geocoder.bounding_box(location, distance)
        except GeocodingError as e:
            log_geocode_failure(location, str(e), geocoder=type(self.geocoder).__name__)
            return None

        try:
            values = [float(c) for c in coords]
        except (TypeError, ValueError):
            values = []
        if len(values) != 4 or any(math.isnan(v) or math.isinf(v) for v in values):
            log_geocode_failure(location, "nan_bounding_box", geocoder=type(self.geocoder).__name__)
            return None
        return BoundingBox.from_sequence(values)
