"""
Geocoding collaborators for proximity search.

Two operations are needed:
- search(target): place candidates for an address or an IP address
- bounding_box(location, radius): (south, west, north, east) around a
  location, NaN coordinates when the location can't be geocoded

The HTTP geocoder talks to a Nominatim-compatible address search and an
ip-api-compatible IP lookup, with a hard timeout on every request.
Transport failures raise GeocodingError; callers that want soft
failure (the proximity resolver) catch it.
"""

import ipaddress
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import requests

from core.structured_logging import get_logger, Timer

_logger = get_logger("core.geocoding")

NAN = float("nan")

# Mean earth radius by unit
EARTH_RADII = {
    "km": 6371.0,
    "mi": 6371.0 * 0.621371,
}


class GeocodingError(Exception):
    """Raised when the geocoding provider can't be reached or answers garbage."""
    pass


@dataclass
class Place:
    """
    Geocoding candidate.

    Attributes:
        latitude: Degrees north
        longitude: Degrees east
        display_name: Provider's formatted name for the place
        address_components: Structured breakdown, most specific first
                            (e.g. ["Chicago", "Illinois", "60666", "United States"]).
                            None when the provider has no breakdown.
    """
    latitude: float
    longitude: float
    display_name: str = ""
    address_components: Optional[list] = None
    raw: dict = field(default_factory=dict)

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass
class GeocoderConfig:
    """
    Configuration for the HTTP geocoder.

    Attributes:
        search_url: Nominatim-compatible /search endpoint
        ip_lookup_url: IP lookup endpoint; "{ip}" is replaced with the address
        user_agent: Sent with every request (Nominatim requires one)
        connect_timeout: Seconds to wait for a connection
        read_timeout: Seconds to wait for a response
        units: Distance units for radii ("mi" or "km")
    """
    search_url: str = "https://nominatim.openstreetmap.org/search"
    ip_lookup_url: str = "http://ip-api.com/json/{ip}"
    user_agent: str = "bikesearch/1.0"
    connect_timeout: float = 3.0
    read_timeout: float = 5.0
    units: str = "mi"


def is_ip_address(target: str) -> bool:
    """Check whether a string is an IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(str(target).strip())
    except ValueError:
        return False
    return True


def bounding_box_around(
    latitude: float,
    longitude: float,
    radius: float,
    units: str = "mi",
) -> tuple[float, float, float, float]:
    """
    Square box around a point, `radius` away from it in each direction.

    Longitude degrees shrink with latitude, so the east/west extent is
    divided by cos(latitude). NaN input gives NaN output.

    Args:
        latitude: Center latitude in degrees
        longitude: Center longitude in degrees
        radius: Distance from the center to each edge
        units: "mi" or "km"

    Returns:
        (south, west, north, east)
    """
    radius = float(radius)
    latitude_degree = 2 * math.pi * EARTH_RADII[units] / 360
    longitude_degree = latitude_degree * math.cos(math.radians(latitude))
    lat_offset = radius / latitude_degree
    lon_offset = radius / longitude_degree if longitude_degree else NAN
    return (
        latitude - lat_offset,
        longitude - lon_offset,
        latitude + lat_offset,
        longitude + lon_offset,
    )


class Geocoder(ABC):
    """
    Geocoding provider interface.

    Subclasses implement search(); bounding boxes are computed here
    from the first candidate's coordinates.
    """

    units: str = "mi"

    @abstractmethod
    def search(self, target: str) -> list[Place]:
        """
        Geocode an address or IP address.

        Returns:
            Candidates, best first (empty when nothing matched)

        Raises:
            GeocodingError: Provider unreachable, timed out, or bad response
        """

    def coordinates(self, location: str) -> tuple[float, float]:
        """Coordinates of the best candidate, (NaN, NaN) when there is none."""
        places = self.search(location) if location and location.strip() else []
        if not places:
            return (NAN, NAN)
        return places[0].coordinates

    def bounding_box(self, location: str, radius: float) -> tuple[float, float, float, float]:
        """
        Bounding box `radius` around a location.

        Returns:
            (south, west, north, east); all NaN when the location doesn't geocode
        """
        latitude, longitude = self.coordinates(location)
        return bounding_box_around(latitude, longitude, radius, units=self.units)


class HTTPGeocoder(Geocoder):
    """
    Geocoder backed by Nominatim (addresses) and ip-api (IP addresses).

    Example:
        geocoder = HTTPGeocoder(GeocoderConfig(read_timeout=2.0))
        geocoder.bounding_box("Chicago, IL", 25)
        # (41.52..., -88.01..., 42.24..., -87.26...)
    """

    def __init__(
        self,
        config: Optional[GeocoderConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or GeocoderConfig()
        self.units = self.config.units
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.config.user_agent)

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.config.connect_timeout, self.config.read_timeout)

    def search(self, target: str) -> list[Place]:
        target = str(target).strip()
        if not target:
            return []
        with Timer() as t:
            if is_ip_address(target):
                places = self._search_ip(target)
            else:
                places = self._search_address(target)
        _logger.debug(
            f"Geocoded {target!r}: {len(places)} candidates",
            extra={
                "event": "geocode",
                "geocode_target": target,
                "results_found": len(places),
                "geocode_latency_ms": round(t.elapsed_ms, 2),
            }
        )
        return places

    def _get_json(self, url: str, params: Optional[dict] = None):
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            raise GeocodingError(f"Geocoding timed out: {url}") from e
        except requests.RequestException as e:
            raise GeocodingError(f"Geocoding request failed: {e}") from e
        except ValueError as e:
            raise GeocodingError(f"Geocoding returned invalid JSON: {url}") from e

    def _search_address(self, address: str) -> list[Place]:
        data = self._get_json(
            self.config.search_url,
            params={"q": address, "format": "jsonv2", "limit": 1},
        )
        if data is None:
            return []
        if not isinstance(data, list):
            raise GeocodingError(f"Unexpected address search payload: {type(data).__name__}")
        places = []
        for item in data:
            try:
                places.append(Place(
                    latitude=float(item["lat"]),
                    longitude=float(item["lon"]),
                    display_name=item.get("display_name", ""),
                    raw=item,
                ))
            except (KeyError, TypeError, ValueError):
                continue
        return places

    def _search_ip(self, ip: str) -> list[Place]:
        data = self._get_json(self.config.ip_lookup_url.format(ip=ip))
        if not isinstance(data, dict) or data.get("status") != "success":
            return []
        try:
            latitude, longitude = float(data["lat"]), float(data["lon"])
        except (KeyError, TypeError, ValueError):
            return []
        components = [
            data.get("city"),
            data.get("regionName"),
            data.get("zip"),
            data.get("country"),
        ]
        return [Place(
            latitude=latitude,
            longitude=longitude,
            display_name=", ".join(c for c in components if c),
            address_components=components,
            raw=data,
        )]
