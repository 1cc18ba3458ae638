"""Configuration for the bike registry search."""

from config.colors import FRAME_COLORS, COLOR_ALIASES
from config.patterns import (
    PERMITTED_SEARCH_PARAMS,
    MANUFACTURER_TOKEN_PREFIX,
    COLOR_TOKEN_PREFIX,
    VERBATIM_STOLENNESS,
    DEFAULT_STOLENNESS,
    DEFAULT_DISTANCE,
    ABSENT_SERIAL,
    SERIAL_CONFUSABLES,
    slugify,
    has_pattern,
)

__all__ = [
    "FRAME_COLORS",
    "COLOR_ALIASES",
    "PERMITTED_SEARCH_PARAMS",
    "MANUFACTURER_TOKEN_PREFIX",
    "COLOR_TOKEN_PREFIX",
    "VERBATIM_STOLENNESS",
    "DEFAULT_STOLENNESS",
    "DEFAULT_DISTANCE",
    "ABSENT_SERIAL",
    "SERIAL_CONFUSABLES",
    "slugify",
    "has_pattern",
]
