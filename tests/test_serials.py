"""
Tests for serial normalization.

Run with: pytest tests/test_serials.py -v
"""

import pytest

from core.serials import SerialNormalizer, normalize_serial, normalized_segments


@pytest.fixture
def normalizer():
    return SerialNormalizer()


class TestNormalize:
    """Test the canonical comparison form."""

    def test_confusables_merge(self, normalizer):
        """Test that O/0 and I/1 spellings collapse to one form."""
        assert normalizer.normalize("O0-II1") == "111"
        assert normalizer.normalize("00-111") == "111"
        assert normalizer.normalize("oO 1Il") == "111"

    def test_uppercases(self, normalizer):
        assert normalizer.normalize("wtu45c") == "WTU45C"

    def test_full_confusable_table(self, normalizer):
        """Test S->5, Z->2, B->8, L->1 and | ->1."""
        assert normalizer.normalize("SZBL|") == "52811"

    def test_separators_become_single_spaces(self, normalizer):
        assert normalizer.normalize("wtu 4S.Bl") == "WTU 45 81"
        assert normalizer.normalize("AB--CD__EF") == "A8 CD EF"

    def test_leading_zeros_dropped(self, normalizer):
        """Test that only zeros at the very start are dropped."""
        assert normalizer.normalize("00045") == "45"
        assert normalizer.normalize("X 0045") == "X 0045"

    @pytest.mark.parametrize("raw", [None, "", "   ", "absent", "ABSENT", "---", "000"])
    def test_absent(self, normalizer, raw):
        """Test that nothing usable normalizes to 'absent'."""
        assert normalizer.normalize(raw) == "absent"

    def test_non_string_input(self, normalizer):
        """Test that numbers from spreadsheets are handled."""
        assert normalizer.normalize(12345) == "12345"

    def test_idempotent(self, normalizer):
        once = normalizer.normalize("wtu-0o45 c")
        assert normalizer.normalize(once) == once

    def test_punctuation_variants_compare_equal(self, normalizer):
        assert normalizer.normalize("WTU.045/C") == normalizer.normalize("wtu 045 c")


class TestSegments:
    """Test segment extraction."""

    def test_segments_in_order(self, normalizer):
        assert normalizer.segments("wtu 4S.Bl") == ["WTU", "45", "81"]

    def test_duplicate_segments_removed(self, normalizer):
        assert normalizer.segments("AB AB CD") == ["A8", "CD"]

    def test_absent_has_no_segments(self, normalizer):
        assert normalizer.segments(None) == []
        assert normalizer.segments("  ") == []


class TestModuleFunctions:
    """Test the shared-normalizer shortcuts."""

    def test_normalize_serial(self):
        assert normalize_serial("O0-II1") == "111"

    def test_normalized_segments(self):
        assert normalized_segments("x-1") == ["X", "1"]
