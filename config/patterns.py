"""
Patterns and sentinel values for search parameter interpretation.

Contains the fixed tables the interpreter and normalizers read:
token prefixes, stolenness/location sentinels, serial separators
and the confusable-character substitution table.
"""

import re

# === Request Parameters ===

# Raw parameter names the interpreter reads; anything else is ignored
PERMITTED_SEARCH_PARAMS = (
    "query",
    "manufacturer",
    "location",
    "distance",
    "serial",
    "stolenness",
    "query_items",
    "colors",
)


# === Query Item Tokens ===

# Autocomplete selections arrive tagged: "m_14" is a manufacturer, "c_3" a color
MANUFACTURER_TOKEN_PREFIX = "m_"
COLOR_TOKEN_PREFIX = "c_"

# Digits only, surrounding whitespace allowed (" 14 " is an id)
NUMERIC_ID_PATTERN = re.compile(r'\A\s*\d+\s*\Z')


# === Stolenness ===

# Values used verbatim when supplied
VERBATIM_STOLENNESS = ("all", "non", "found", "impounded")

PROXIMITY_STOLENNESS = "proximity"
DEFAULT_STOLENNESS = "stolen"


# === Proximity ===

# Location meaning "no geographic constraint"
ANYWHERE_PATTERN = re.compile(r'anywhere', re.IGNORECASE)

# Locations meaning "wherever the requester's IP says they are"
IP_LOCATION_SENTINELS = ("", "ip", "you")

# Miles
DEFAULT_DISTANCE = 100

# Leading number of a distance value ("25", "25.5", "25mi")
DISTANCE_PATTERN = re.compile(r'\A\s*(-?\d+(?:\.\d+)?)')

# Address components made only of non-digits ("Chicago", not "60608")
ALPHABETIC_COMPONENT_PATTERN = re.compile(r'\A\D+\Z')


# === Serial Normalization ===

# Blank serials normalize to this
ABSENT_SERIAL = "absent"

# Visually confusable characters and their canonical replacement
SERIAL_CONFUSABLES = {
    "O": "0",
    "|": "1",
    "I": "1",
    "L": "1",
    "S": "5",
    "Z": "2",
    "B": "8",
}

# Everything that is not a letter or digit separates serial segments
SERIAL_SEPARATOR_PATTERN = re.compile(r'[^A-Z0-9]+')

LEADING_ZEROS_PATTERN = re.compile(r'\A0+')


# === Reference Names ===

# Characters ignored when comparing names and slugs ("Surly Bikes" == "surly-bikes")
NAME_PUNCTUATION_PATTERN = re.compile(r'[^a-z0-9]+')

# Parenthesized qualifiers in manufacturer names
PARENTHETICAL_PATTERN = re.compile(r"\([^)]*\)")


def slugify(text: str) -> str:
    """
    Reduce a display name to its comparison key.

    Example:
        >>> slugify("Cargo Bike (front storage)")
        'cargo-bike-front-storage'
    """
    return NAME_PUNCTUATION_PATTERN.sub("-", str(text).lower()).strip("-")


def has_pattern(text: str, pattern: re.Pattern) -> bool:
    """Check whether a compiled pattern matches anywhere in text."""
    return bool(pattern.search(text or ""))
