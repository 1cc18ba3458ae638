"""Core search logic for the bike registry."""

from core.context import (
    Stolenness,
    AssetStatus,
    BoundingBox,
    SearchCriteria,
    ReferenceEntity,
    AutocompleteOption,
    Asset,
    SerialSearchResult,
)
from core.serials import SerialNormalizer, normalize_serial
from core.references import ReferenceTable, build_resolvers
from core.geocoding import Geocoder, HTTPGeocoder, GeocoderConfig, GeocodingError
from core.proximity import ProximityResolver
from core.interpreter import QueryInterpreter
from core.store import AssetStore
from core.predicates import compose
from core.fuzzy import FuzzySerialMatcher
from core.search import BikeSearch, SearchConfig, run_search

__all__ = [
    "Stolenness",
    "AssetStatus",
    "BoundingBox",
    "SearchCriteria",
    "ReferenceEntity",
    "AutocompleteOption",
    "Asset",
    "SerialSearchResult",
    "SerialNormalizer",
    "normalize_serial",
    "ReferenceTable",
    "build_resolvers",
    "Geocoder",
    "HTTPGeocoder",
    "GeocoderConfig",
    "GeocodingError",
    "ProximityResolver",
    "QueryInterpreter",
    "AssetStore",
    "compose",
    "FuzzySerialMatcher",
    "BikeSearch",
    "SearchConfig",
    "run_search",
]
