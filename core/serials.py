"""
Serial number normalization.

Registry serials are typed by hand, read off worn frames and OCR'd
from photos, so the same serial shows up in many spellings. Every
serial is reduced to a comparison form before matching:

- Uppercased
- Confusable characters merged (O->0, I/L->1, S->5, Z->2, B->8)
- Separators (anything not a letter or digit) collapsed to single spaces
- Leading zeros dropped

The normalized form keeps spaces between segments so the exact-match
predicate can match segment by segment.
"""

from typing import Optional

from config.patterns import (
    ABSENT_SERIAL,
    SERIAL_CONFUSABLES,
    SERIAL_SEPARATOR_PATTERN,
    LEADING_ZEROS_PATTERN,
)

_CONFUSABLE_TABLE = str.maketrans(SERIAL_CONFUSABLES)


class SerialNormalizer:
    """
    Canonicalizes raw serial strings.

    Example:
        normalizer = SerialNormalizer()
        normalizer.normalize("O0-II1")   # "111"
        normalizer.normalize("wtu 4S.Bl") # "WTU 45 81"
    """

    def normalize(self, raw: Optional[str]) -> str:
        """
        Normalize a raw serial. Never fails.

        Args:
            raw: Serial as supplied (any value; None and blanks allowed)

        Returns:
            Normalized serial, or "absent" when nothing usable was given
        """
        if raw is None:
            return ABSENT_SERIAL
        text = str(raw).strip()
        if not text or text.lower() == ABSENT_SERIAL:
            return ABSENT_SERIAL

        normed = text.upper().translate(_CONFUSABLE_TABLE)
        normed = SERIAL_SEPARATOR_PATTERN.sub(" ", normed)
        normed = LEADING_ZEROS_PATTERN.sub("", normed)
        normed = " ".join(normed.split())
        return normed or ABSENT_SERIAL

    def segments(self, raw: Optional[str]) -> list[str]:
        """
        Unique normalized segments of a serial, in order of appearance.

        Returns an empty list for absent serials.
        """
        normalized = self.normalize(raw)
        if normalized == ABSENT_SERIAL:
            return []
        return list(dict.fromkeys(normalized.split(" ")))


_default_normalizer = SerialNormalizer()


def normalize_serial(raw: Optional[str]) -> str:
    """Normalize a serial with the shared normalizer."""
    return _default_normalizer.normalize(raw)


def normalized_segments(raw: Optional[str]) -> list[str]:
    """Segments of a serial with the shared normalizer."""
    return _default_normalizer.segments(raw)
