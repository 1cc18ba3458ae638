"""
Core data models for the bike registry search.

Defines the data structures passed between the interpreter, the
predicate composer and the fuzzy serial matcher. These are plain
dataclasses and enums with no external dependencies.
"""

from dataclasses import dataclass, field, asdict, replace
from typing import Optional, Any, Union
from enum import Enum


class Stolenness(Enum):
    """
    Theft-status filter dimension.

    FOUND and IMPOUNDED are two spellings of the same category; whichever
    the caller sent is kept so it can be echoed back.
    """
    ALL = "all"
    NON = "non"
    STOLEN = "stolen"
    FOUND = "found"
    IMPOUNDED = "impounded"
    PROXIMITY = "proximity"

    @property
    def is_impounded_category(self) -> bool:
        return self in (Stolenness.FOUND, Stolenness.IMPOUNDED)


class AssetStatus(Enum):
    """Status category stored on each registry record."""
    WITH_OWNER = "with_owner"
    STOLEN = "stolen"
    IMPOUNDED = "impounded"


# Statuses the default ("stolen") search covers
STOLEN_OR_IMPOUNDED = (AssetStatus.STOLEN, AssetStatus.IMPOUNDED)


@dataclass(frozen=True)
class BoundingBox:
    """
    Rectangular geographic region in degrees.

    When west > east the box crosses the antimeridian.
    """
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_sequence(cls, values) -> "BoundingBox":
        south, west, north, east = (float(v) for v in values)
        return cls(south=south, west=west, north=north, east=east)

    def as_tuple(self) -> tuple:
        return (self.south, self.west, self.north, self.east)

    @property
    def wraps_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check whether a point falls inside the box (edges inclusive)."""
        if not (self.south <= latitude <= self.north):
            return False
        if self.wraps_antimeridian:
            return longitude >= self.west or longitude <= self.east
        return self.west <= longitude <= self.east


@dataclass(frozen=True)
class ProximityResult:
    """
    Successful proximity resolution.

    Attributes:
        bounding_box: Region to search
        location: Effective location string that was geocoded
        distance: Radius in miles (already defaulted)
    """
    bounding_box: BoundingBox
    location: str
    distance: int


ManufacturerRef = Union[int, tuple[int, ...]]


@dataclass(frozen=True)
class SearchCriteria:
    """
    Normalized search specification produced by the interpreter.

    Attributes:
        stolenness: Theft-status category (always set)
        serial: Normalized serial, used by the serial predicates
        raw_serial: Serial exactly as supplied, for display only
        query: Free-text query
        manufacturer: Single manufacturer id, or a tuple when several resolved
        colors: Color ids, any of which may match any color slot
        bounding_box: Proximity region (only with stolenness=proximity)
        location: Location that produced the bounding box
        distance: Radius in miles that produced the bounding box
    """
    stolenness: Stolenness = Stolenness.STOLEN
    serial: Optional[str] = None
    raw_serial: Optional[str] = None
    query: Optional[str] = None
    manufacturer: Optional[ManufacturerRef] = None
    colors: Optional[tuple[int, ...]] = None
    bounding_box: Optional[BoundingBox] = None
    location: Optional[str] = None
    distance: Optional[int] = None

    @property
    def manufacturer_ids(self) -> list[int]:
        """Manufacturer criterion as a list, whatever its stored shape."""
        if self.manufacturer is None:
            return []
        if isinstance(self.manufacturer, tuple):
            return list(self.manufacturer)
        return [self.manufacturer]

    def has_search_terms(self) -> bool:
        """True when anything other than stolenness narrows the search."""
        return any(
            value is not None
            for key, value in self.to_dict().items()
            if key != "stolenness"
        )

    def without_serial(self) -> "SearchCriteria":
        """Copy of these criteria with the serial fields cleared."""
        return replace(self, serial=None, raw_serial=None)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to plain values (for logging and echoing params back)."""
        data = asdict(self)
        data["stolenness"] = self.stolenness.value
        if self.colors is not None:
            data["colors"] = list(self.colors)
        if isinstance(self.manufacturer, tuple):
            data["manufacturer"] = list(self.manufacturer)
        if self.bounding_box is not None:
            data["bounding_box"] = list(self.bounding_box.as_tuple())
        return data


@dataclass(frozen=True)
class TextToken:
    """Untagged query item; joined into the free-text query."""
    text: str


@dataclass(frozen=True)
class ManufacturerToken:
    """Query item tagged as a manufacturer reference ("m_14")."""
    ref: str


@dataclass(frozen=True)
class ColorToken:
    """Query item tagged as a color reference ("c_3")."""
    ref: str


QueryToken = Union[TextToken, ManufacturerToken, ColorToken]


@dataclass(frozen=True)
class ReferenceEntity:
    """
    Manufacturer or color from a reference table.

    Attributes:
        id: Stable integer id
        name: Display name
        slug: Comparison key derived from the name
        category: Autocomplete category tag ("colors", "frame_mnfg", ...)
        aliases: Other names this entity is found by
        data: Auxiliary autocomplete data (display color, priority, ...)
    """
    id: int
    name: str
    slug: str
    category: str
    aliases: tuple[str, ...] = ()
    data: dict = field(default_factory=dict, hash=False, compare=False)

    def autocomplete_option(self) -> "AutocompleteOption":
        return AutocompleteOption(
            id=self.id,
            text=self.name,
            category=self.category,
            data={"slug": self.slug, **self.data},
        )


@dataclass
class AutocompleteOption:
    """Selectable option for the search input."""
    id: int
    text: str
    category: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Asset:
    """
    Registry record as returned to callers.

    Attributes:
        id: Record id
        serial_number: Serial as registered
        serial_normalized: Normalized serial the matchers compare against
        manufacturer_id: Manufacturer reference
        status: Status category
        color_ids: Primary, secondary and tertiary color ids (None for empty slots)
        latitude: Last-known latitude (stolen records only)
        longitude: Last-known longitude (stolen records only)
        metadata: Remaining columns from the registry export
    """
    id: int
    serial_number: str
    serial_normalized: str
    manufacturer_id: Optional[int]
    status: AssetStatus
    color_ids: tuple = (None, None, None)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get metadata value safely."""
        return self.metadata.get(key, default)

    @property
    def is_stolen(self) -> bool:
        return self.status == AssetStatus.STOLEN


@dataclass
class SerialSearchResult:
    """
    Tiered serial search result.

    The three tiers never share a record: exact matches come first,
    then serials containing the query, then serials within a small
    edit distance.
    """
    criteria: SearchCriteria
    exact: list[Asset] = field(default_factory=list)
    containing: list[Asset] = field(default_factory=list)
    near: list[Asset] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.exact) + len(self.containing) + len(self.near)

    def all_assets(self) -> list[Asset]:
        """Every asset, exact matches first."""
        return self.exact + self.containing + self.near
