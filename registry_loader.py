"""
Registry loader for bike records and reference tables.

Reads CSV or Excel exports with pandas and maps them onto the asset
store's schema.

Architecture: load every column, normalize the ones the search needs.
- Headers are normalized (lowercased, underscored) and aliased
- Serials are normalized once at load time
- Status values are mapped onto with_owner / stolen / impounded
- Rows without a usable id or status are skipped and counted
- All other columns are kept and end up in Asset.metadata
"""

from pathlib import Path
from typing import Optional, Any

import pandas as pd

from config.patterns import slugify, ABSENT_SERIAL
from core.context import AssetStatus, ReferenceEntity
from core.references import ReferenceTable, MANUFACTURER_CATEGORY
from core.serials import normalize_serial
from core.store import (
    AssetStore,
    ID_COLUMN,
    SERIAL_COLUMN,
    RAW_SERIAL_COLUMN,
    MANUFACTURER_COLUMN,
    COLOR_COLUMNS,
    STATUS_COLUMN,
    LATITUDE_COLUMN,
    LONGITUDE_COLUMN,
)
from core.structured_logging import get_logger, log_error

_logger = get_logger("registry_loader")


# =============================================================================
# COLUMN NORMALIZATION MAPPINGS
# =============================================================================
# Keys are headers after _normalize_header(); unlisted headers keep that form

COLUMN_ALIASES = {
    # Identification
    'bike_id': ID_COLUMN,
    'serial': RAW_SERIAL_COLUMN,
    'serial_no': RAW_SERIAL_COLUMN,

    # Manufacturer
    'manufacturer': 'manufacturer_name',
    'mnfg_name': 'manufacturer_name',
    'mnfg_id': MANUFACTURER_COLUMN,

    # Colors
    'primary_color_id': COLOR_COLUMNS[0],
    'secondary_color_id': COLOR_COLUMNS[1],
    'tertiary_color_id': COLOR_COLUMNS[2],

    # Description
    'model': 'frame_model',
    'frame_model_name': 'frame_model',

    # Location
    'lat': LATITUDE_COLUMN,
    'lng': LONGITUDE_COLUMN,
    'lon': LONGITUDE_COLUMN,
}

STATUS_ALIASES = {
    'with_owner': AssetStatus.WITH_OWNER,
    'status_with_owner': AssetStatus.WITH_OWNER,
    'registered': AssetStatus.WITH_OWNER,
    'not_stolen': AssetStatus.WITH_OWNER,
    'stolen': AssetStatus.STOLEN,
    'status_stolen': AssetStatus.STOLEN,
    'impounded': AssetStatus.IMPOUNDED,
    'status_impounded': AssetStatus.IMPOUNDED,
    'found': AssetStatus.IMPOUNDED,
}

# Separator for multiple aliases in a reference table cell
ALIAS_SEPARATOR = ";"

# Max row errors kept for the load summary
MAX_REPORTED_ERRORS = 10


class LoaderError(Exception):
    """Raised when a registry file can't be read."""
    pass


def _normalize_header(header: Any) -> str:
    key = slugify(str(header)).replace("-", "_")
    return COLUMN_ALIASES.get(key, key)


def read_table(path: str) -> pd.DataFrame:
    """
    Read a CSV or Excel file into a DataFrame with normalized headers.

    Cells are read as text so serials keep their leading zeros.

    Raises:
        LoaderError: Missing file, unsupported extension, or unparseable content
    """
    path = Path(path)
    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            df = pd.read_csv(path, dtype=str)
        elif suffix in (".xlsx", ".xls"):
            df = pd.read_excel(path, dtype=str)
        else:
            raise LoaderError(f"Unsupported registry file type: {path.name}")
    except FileNotFoundError as e:
        log_error(e, context="Registry file not found", source_path=str(path))
        raise LoaderError(f"Registry file not found: {path}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        log_error(e, context="Could not parse registry file", source_path=str(path))
        raise LoaderError(f"Could not parse {path.name}: {e}") from e

    df = df.rename(columns=_normalize_header)
    # Two headers may alias to the same name; keep the first
    return df.loc[:, ~df.columns.duplicated()]


def parse_status(value: Any) -> Optional[AssetStatus]:
    """Map a raw status cell onto a status category (None if unrecognized)."""
    if value is None or pd.isna(value):
        return None
    return STATUS_ALIASES.get(slugify(str(value)).replace("-", "_"))


def _parse_id(value: Any) -> int:
    if value is None or pd.isna(value):
        raise ValueError("No id")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"Non-integer id {value!r}")
    return int(number)


def _clean(value: Any) -> Any:
    if value is None or (not isinstance(value, (list, tuple)) and pd.isna(value)):
        return None
    # numpy scalars to Python types
    if hasattr(value, 'item'):
        return value.item()
    return value


# =============================================================================
# MAIN LOADERS
# =============================================================================

def load_asset_frame(
    path: str,
    manufacturers: Optional[ReferenceTable] = None,
) -> pd.DataFrame:
    """
    Load registry records into a frame in the asset store's schema.

    Args:
        path: CSV or Excel export
        manufacturers: Manufacturer table, used to fill manufacturer_name
                       where the export only has ids

    Returns:
        DataFrame with normalized serials and status categories
    """
    df = read_table(path)
    _logger.info(
        f"Loading registry from {path}: {len(df)} rows, {len(df.columns)} columns",
        extra={"event": "registry_load_start", "source_path": str(path)},
    )

    records = []
    skipped = 0
    errors = []

    for idx, row in df.iterrows():
        try:
            record = {col: _clean(row[col]) for col in df.columns}
            record[ID_COLUMN] = _parse_id(row.get(ID_COLUMN))

            status = parse_status(row.get(STATUS_COLUMN))
            if status is None:
                raise ValueError(f"Unknown status {row.get(STATUS_COLUMN)!r}")
            record[STATUS_COLUMN] = status.value

            raw_serial = record.get(RAW_SERIAL_COLUMN)
            record[RAW_SERIAL_COLUMN] = "" if raw_serial is None else str(raw_serial)
            record[SERIAL_COLUMN] = normalize_serial(raw_serial)

            for col in (MANUFACTURER_COLUMN, *COLOR_COLUMNS):
                if record.get(col) is not None:
                    record[col] = int(float(record[col]))

            if manufacturers is not None and not record.get("manufacturer_name"):
                entity = manufacturers.get(record.get(MANUFACTURER_COLUMN))
                if entity is not None:
                    record["manufacturer_name"] = entity.name

            records.append(record)

        except (ValueError, TypeError) as e:
            skipped += 1
            if len(errors) < MAX_REPORTED_ERRORS:
                errors.append(f"Row {idx}: {e}")
            continue

    _logger.info(
        f"Loaded {len(records)} records",
        extra={
            "event": "registry_loaded",
            "source_path": str(path),
            "rows_loaded": len(records),
            "rows_skipped": skipped,
        },
    )
    for err in errors[:5]:
        _logger.warning(f"Skipped row: {err}", extra={"event": "registry_row_skipped"})

    if not records:
        return pd.DataFrame(columns=[ID_COLUMN, SERIAL_COLUMN, STATUS_COLUMN])
    return pd.DataFrame.from_records(records)


def load_assets(path: str, manufacturers: Optional[ReferenceTable] = None) -> AssetStore:
    """Load a registry export straight into an AssetStore."""
    return AssetStore(load_asset_frame(path, manufacturers))


def load_reference_table(path: str, category: str = MANUFACTURER_CATEGORY) -> ReferenceTable:
    """
    Load a manufacturer (or other reference) table.

    Expects "id" and "name" columns; "slug" and "aliases" (separated by
    ";") are optional. Rows without an id or name are skipped.

    Args:
        path: CSV or Excel file
        category: Autocomplete category for the entities

    Returns:
        ReferenceTable
    """
    df = read_table(path)
    entities = []
    skipped = 0

    for _, row in df.iterrows():
        name = _clean(row.get("name"))
        try:
            entity_id = _parse_id(row.get(ID_COLUMN))
        except (ValueError, TypeError):
            skipped += 1
            continue
        if name is None or not str(name).strip():
            skipped += 1
            continue

        name = str(name).strip()
        slug = _clean(row.get("slug")) or slugify(name)
        raw_aliases = _clean(row.get("aliases"))
        aliases = tuple(
            a.strip() for a in str(raw_aliases).split(ALIAS_SEPARATOR) if a.strip()
        ) if raw_aliases else ()
        data = {
            key: _clean(row[key]) for key in df.columns
            if key not in (ID_COLUMN, "name", "slug", "aliases") and _clean(row[key]) is not None
        }
        entities.append(ReferenceEntity(
            id=entity_id,
            name=name,
            slug=str(slug),
            category=category,
            aliases=aliases,
            data=data,
        ))

    _logger.info(
        f"Loaded {len(entities)} {category} entities",
        extra={
            "event": "reference_table_loaded",
            "source_path": str(path),
            "rows_loaded": len(entities),
            "rows_skipped": skipped,
        },
    )
    return ReferenceTable(entities)


def get_registry_statistics(store: AssetStore) -> dict:
    """
    Get statistics about a loaded registry.

    Returns dict with:
    - total: Record count
    - by_status: Count by status category
    - with_serial: Records with a serial (not "absent")
    - with_manufacturer: Records with a manufacturer id
    - with_location: Records with coordinates
    - manufacturers: Distinct manufacturer ids
    """
    frame = store.frame
    stats = {
        'total': len(frame),
        'by_status': {status.value: 0 for status in AssetStatus},
        'with_serial': 0,
        'with_manufacturer': 0,
        'with_location': 0,
        'manufacturers': 0,
    }
    if frame.empty:
        return stats

    for status, count in frame[STATUS_COLUMN].value_counts().items():
        stats['by_status'][status] = int(count)
    stats['with_serial'] = int((frame[SERIAL_COLUMN] != ABSENT_SERIAL).sum())
    stats['with_manufacturer'] = int(frame[MANUFACTURER_COLUMN].notna().sum())
    stats['with_location'] = int(
        (frame[LATITUDE_COLUMN].notna() & frame[LONGITUDE_COLUMN].notna()).sum()
    )
    stats['manufacturers'] = int(frame[MANUFACTURER_COLUMN].nunique(dropna=True))
    return stats
