"""
Shared fixtures: a small bike registry, reference tables and a fake geocoder.

Registry serials around "WTU045C":
    1  WTU045C   exact
    2  WTU045CX  contains it (also one edit away)
    3  WTU046C   one edit away
    4  WTX946C   three edits away
    5  WTX045D   two edits away
"""

import math

import pandas as pd
import pytest

from core.context import ReferenceEntity
from core.geocoding import Geocoder, GeocodingError, Place
from core.references import ReferenceTable, build_resolvers, MANUFACTURER_CATEGORY
from core.serials import normalize_serial
from core.store import AssetStore

CHICAGO = (41.88, -87.63)
MILWAUKEE = (43.04, -87.91)
PORTLAND = (45.52, -122.68)

SURLY, TREK, SPECIALIZED, BH = 14, 47, 30, 201
BLACK, BLUE, RED, WHITE = 1, 2, 8, 12


class FakeGeocoder(Geocoder):
    """
    In-memory geocoder.

    Args:
        places: Target string -> list of Place
        error_targets: Targets that raise GeocodingError
    """

    def __init__(self, places=None, error_targets=()):
        self.places = places or {}
        self.error_targets = set(error_targets)
        self.calls = []

    def search(self, target):
        self.calls.append(target)
        if target in self.error_targets:
            raise GeocodingError(f"Provider down for {target}")
        return self.places.get(target, [])


def _asset(id, serial, manufacturer, colors, status, coords=None, name="", model="", year=None):
    colors = list(colors) + [None] * (3 - len(colors))
    lat, lon = coords if coords else (math.nan, math.nan)
    return {
        "id": id,
        "serial_number": serial,
        "serial_normalized": normalize_serial(serial),
        "manufacturer_id": manufacturer,
        "primary_frame_color_id": colors[0],
        "secondary_frame_color_id": colors[1],
        "tertiary_frame_color_id": colors[2],
        "status": status,
        "latitude": lat,
        "longitude": lon,
        "manufacturer_name": name,
        "frame_model": model,
        "year": year,
    }


@pytest.fixture
def asset_frame():
    """Eight-record registry."""
    return pd.DataFrame([
        _asset(1, "WTU045C", SURLY, [BLACK], "stolen", CHICAGO, "Surly", "Cross-Check", 2015),
        _asset(2, "WTU045CX", SURLY, [BLUE], "stolen", (41.90, -87.70), "Surly", "Long Haul Trucker", 2016),
        _asset(3, "WTU046C", SURLY, [BLACK, WHITE], "impounded", MILWAUKEE, "Surly", "Pugsley", 2014),
        _asset(4, "WTX946C", SURLY, [BLACK], "stolen", CHICAGO, "Surly", "Karate Monkey", 2012),
        _asset(5, "WTX045D", TREK, [RED], "stolen", PORTLAND, "Trek", "Domane", 2020),
        _asset(6, "ABC123", TREK, [WHITE, BLACK], "with_owner", None, "Trek", "FX 3", 2019),
        _asset(7, None, TREK, [BLUE], "impounded", None, "Trek", "Marlin 5", 2018),
        _asset(8, "XYZ 789", SPECIALIZED, [RED], "stolen", PORTLAND, "Specialized", "Sirrus", 2021),
    ])


@pytest.fixture
def store(asset_frame):
    return AssetStore(asset_frame)


@pytest.fixture
def manufacturer_table():
    return ReferenceTable([
        ReferenceEntity(id=SURLY, name="Surly", slug="surly", category=MANUFACTURER_CATEGORY),
        ReferenceEntity(id=TREK, name="Trek", slug="trek", category=MANUFACTURER_CATEGORY),
        ReferenceEntity(
            id=SPECIALIZED, name="Specialized", slug="specialized",
            category=MANUFACTURER_CATEGORY, aliases=("Specialized Bicycle Components",),
        ),
        ReferenceEntity(id=BH, name="BH", slug="bh", category=MANUFACTURER_CATEGORY),
    ])


@pytest.fixture
def resolvers(manufacturer_table):
    return build_resolvers(manufacturer_table)


@pytest.fixture
def geocoder():
    """Geocoder that knows Chicago, Portland and one client IP."""
    return FakeGeocoder(places={
        "Chicago, IL": [Place(*CHICAGO, display_name="Chicago, Illinois, United States")],
        "Portland, OR": [Place(*PORTLAND, display_name="Portland, Oregon, United States")],
        "203.0.113.9": [Place(
            *CHICAGO,
            display_name="Chicago, Illinois, 60666, United States",
            address_components=["Chicago", "Illinois", "60666", "United States"],
        )],
        "United States, Illinois, Chicago": [Place(*CHICAGO)],
    })


@pytest.fixture
def fake_geocoder():
    """The FakeGeocoder class, for tests that build their own."""
    return FakeGeocoder
