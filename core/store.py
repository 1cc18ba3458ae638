"""
In-memory asset store backed by a pandas DataFrame.

The store holds one row per registry record and exposes the matching
operations the predicates are built from. Each operation takes the
frame to evaluate (usually already narrowed by earlier predicates) and
returns a boolean mask aligned to it:

- equals / isin / any_column_isin   equality and OR-of-equality
- full_text                          every query term appears in the search document
- serial_text_match                  every serial segment appears as a token
- contains                           substring match
- edit_distance_below                Levenshtein distance under a threshold
- within_bounding_box                point inside a (possibly wrapping) box

Errors from pandas propagate; the store never hides them.
"""

import re
from typing import Any, Iterable, Optional

import pandas as pd
from rapidfuzz.distance import Levenshtein

from core.context import Asset, AssetStatus, BoundingBox

# Canonical column names
ID_COLUMN = "id"
SERIAL_COLUMN = "serial_normalized"
RAW_SERIAL_COLUMN = "serial_number"
MANUFACTURER_COLUMN = "manufacturer_id"
COLOR_COLUMNS = (
    "primary_frame_color_id",
    "secondary_frame_color_id",
    "tertiary_frame_color_id",
)
STATUS_COLUMN = "status"
LATITUDE_COLUMN = "latitude"
LONGITUDE_COLUMN = "longitude"
SEARCH_TEXT_COLUMN = "search_text"

REQUIRED_COLUMNS = (ID_COLUMN, SERIAL_COLUMN, STATUS_COLUMN)

# Columns that make up the default full-text document
DEFAULT_TEXT_COLUMNS = (
    "manufacturer_name",
    "frame_model",
    "year",
    "description",
    RAW_SERIAL_COLUMN,
)

_TERM_PATTERN = re.compile(r'\w+')


class StoreSchemaError(ValueError):
    """Raised when a frame is missing columns the store needs."""
    pass


def query_terms(query: str) -> list[str]:
    """Lowercased word terms of a full-text query."""
    return _TERM_PATTERN.findall(str(query).lower())


class AssetStore:
    """
    DataFrame-backed asset collection.

    Example:
        store = AssetStore(pd.DataFrame([
            {"id": 1, "serial_normalized": "WTU 45", "status": "stolen"},
        ]))
        frame = store.frame
        frame[store.contains(frame, SERIAL_COLUMN, "45")]
    """

    def __init__(self, frame: pd.DataFrame):
        missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
        if missing:
            raise StoreSchemaError(f"Asset frame missing columns: {missing}")

        frame = frame.copy()
        for col in (MANUFACTURER_COLUMN, *COLOR_COLUMNS, LATITUDE_COLUMN, LONGITUDE_COLUMN):
            if col not in frame.columns:
                frame[col] = None
        if RAW_SERIAL_COLUMN not in frame.columns:
            frame[RAW_SERIAL_COLUMN] = frame[SERIAL_COLUMN]
        frame[SERIAL_COLUMN] = frame[SERIAL_COLUMN].fillna("").astype(str)
        frame[STATUS_COLUMN] = frame[STATUS_COLUMN].astype(str)
        for col in (LATITUDE_COLUMN, LONGITUDE_COLUMN):
            frame[col] = pd.to_numeric(frame[col], errors="coerce")
        if SEARCH_TEXT_COLUMN not in frame.columns:
            frame[SEARCH_TEXT_COLUMN] = build_search_text(frame)
        frame[SEARCH_TEXT_COLUMN] = frame[SEARCH_TEXT_COLUMN].fillna("").astype(str).str.lower()

        self._frame = frame.reset_index(drop=True)

    def __len__(self) -> int:
        return len(self._frame)

    @property
    def frame(self) -> pd.DataFrame:
        """All records. Treat as read-only."""
        return self._frame

    def empty(self) -> pd.DataFrame:
        """Zero-row frame with the store's columns."""
        return self._frame.iloc[0:0]

    # === Matching operations ===

    @staticmethod
    def equals(frame: pd.DataFrame, column: str, value: Any) -> pd.Series:
        return frame[column] == value

    @staticmethod
    def isin(frame: pd.DataFrame, column: str, values: Iterable[Any]) -> pd.Series:
        return frame[column].isin(list(values))

    @staticmethod
    def any_column_isin(
        frame: pd.DataFrame,
        columns: Iterable[str],
        values: Iterable[Any],
    ) -> pd.Series:
        """True where any of the columns holds any of the values."""
        values = list(values)
        mask = pd.Series(False, index=frame.index)
        for column in columns:
            mask |= frame[column].isin(values)
        return mask

    @staticmethod
    def full_text(frame: pd.DataFrame, query: str) -> pd.Series:
        """
        True where every query term starts a word of the search document.

        "surl cross" matches "Surly Cross-Check".
        """
        mask = pd.Series(True, index=frame.index)
        for term in query_terms(query):
            pattern = rf'\b{re.escape(term)}'
            mask &= frame[SEARCH_TEXT_COLUMN].str.contains(pattern, regex=True)
        return mask

    @staticmethod
    def serial_text_match(frame: pd.DataFrame, serial: str) -> pd.Series:
        """True where every segment of `serial` is a segment of the stored serial."""
        mask = pd.Series(True, index=frame.index)
        for segment in dict.fromkeys(str(serial).split()):
            pattern = rf'(?:^|\s){re.escape(segment)}(?:\s|$)'
            mask &= frame[SERIAL_COLUMN].str.contains(pattern, regex=True)
        return mask

    @staticmethod
    def contains(frame: pd.DataFrame, column: str, substring: str) -> pd.Series:
        return frame[column].astype(str).str.contains(substring, regex=False)

    @staticmethod
    def edit_distance_below(
        frame: pd.DataFrame,
        column: str,
        value: str,
        threshold: int,
    ) -> pd.Series:
        """True where the Levenshtein distance to `value` is strictly below threshold."""
        cutoff = max(threshold - 1, 0)
        return frame[column].map(
            lambda s: Levenshtein.distance(str(s), value, score_cutoff=cutoff) < threshold
        ).astype(bool)

    @staticmethod
    def within_bounding_box(frame: pd.DataFrame, box: BoundingBox) -> pd.Series:
        """True where the record's coordinates fall inside the box."""
        lat = frame[LATITUDE_COLUMN]
        lon = frame[LONGITUDE_COLUMN]
        mask = lat.notna() & lon.notna() & lat.between(box.south, box.north)
        if box.wraps_antimeridian:
            return mask & ((lon >= box.west) | (lon <= box.east))
        return mask & lon.between(box.west, box.east)

    # === Helpers ===

    @staticmethod
    def ids(frame: pd.DataFrame) -> list:
        return frame[ID_COLUMN].tolist()

    @staticmethod
    def exclude_ids(frame: pd.DataFrame, ids: Iterable[Any]) -> pd.DataFrame:
        return frame[~frame[ID_COLUMN].isin(list(ids))]

    def to_assets(self, frame: pd.DataFrame, limit: Optional[int] = None) -> list[Asset]:
        """Convert rows to Asset objects (all remaining columns go in metadata)."""
        if limit is not None:
            frame = frame.head(limit)
        core_columns = {
            ID_COLUMN, SERIAL_COLUMN, RAW_SERIAL_COLUMN, MANUFACTURER_COLUMN,
            STATUS_COLUMN, LATITUDE_COLUMN, LONGITUDE_COLUMN, SEARCH_TEXT_COLUMN,
            *COLOR_COLUMNS,
        }
        assets = []
        for record in frame.to_dict(orient="records"):
            metadata = {
                key: value for key, value in record.items()
                if key not in core_columns and not _is_missing(value)
            }
            assets.append(Asset(
                id=record[ID_COLUMN],
                serial_number="" if _is_missing(record.get(RAW_SERIAL_COLUMN)) else str(record[RAW_SERIAL_COLUMN]),
                serial_normalized=record[SERIAL_COLUMN],
                manufacturer_id=_optional_int(record.get(MANUFACTURER_COLUMN)),
                status=_status(record[STATUS_COLUMN]),
                color_ids=tuple(_optional_int(record.get(col)) for col in COLOR_COLUMNS),
                latitude=_optional_float(record.get(LATITUDE_COLUMN)),
                longitude=_optional_float(record.get(LONGITUDE_COLUMN)),
                metadata=metadata,
            ))
        return assets


def build_search_text(frame: pd.DataFrame, columns: Iterable[str] = DEFAULT_TEXT_COLUMNS) -> pd.Series:
    """Join the text columns present in `frame` into one lowercased document per row."""
    present = [col for col in columns if col in frame.columns]
    if not present or frame.empty:
        return pd.Series("", index=frame.index, dtype=object)
    parts = frame[present].astype("string").fillna("")
    return parts.apply(" ".join, axis=1).astype(str).str.lower()


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _optional_int(value: Any) -> Optional[int]:
    if _is_missing(value):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any) -> Optional[float]:
    if _is_missing(value):
        return None
    return float(value)


def _status(value: Any) -> AssetStatus:
    try:
        return AssetStatus(value)
    except ValueError:
        return AssetStatus.WITH_OWNER
