"""
Tests for close-serial matching.

Run with: pytest tests/test_fuzzy.py -v
"""

import pytest

from core.context import SearchCriteria, Stolenness
from core.fuzzy import FuzzySerialMatcher, CLOSE_SERIAL_MAX_DISTANCE


def ids(frame):
    return sorted(frame["id"].tolist())


@pytest.fixture
def matcher(store):
    return FuzzySerialMatcher(store)


@pytest.fixture
def criteria():
    return SearchCriteria(serial="WTU045C", raw_serial="wtu045c", stolenness=Stolenness.ALL)


class TestNoSerial:
    """Test that serial-less criteria short-circuit."""

    @pytest.mark.parametrize("serial", [None, "", "absent"])
    def test_empty_results(self, matcher, serial):
        criteria = SearchCriteria(serial=serial, stolenness=Stolenness.ALL)

        assert matcher.near_matches(criteria).empty
        assert matcher.containing_matches(criteria).empty

    def test_no_serial_exact_is_empty(self, matcher):
        assert matcher.exact_matches(SearchCriteria()).empty


class TestContainingMatches:

    def test_contains_query_serial(self, matcher, criteria):
        assert ids(matcher.containing_matches(criteria)) == [2]

    def test_excludes_exact(self, matcher, criteria):
        exact = ids(matcher.exact_matches(criteria))
        containing = ids(matcher.containing_matches(criteria))

        assert exact == [1]
        assert not set(exact) & set(containing)

    def test_substring_anywhere(self, matcher):
        criteria = SearchCriteria(serial="045", stolenness=Stolenness.ALL)
        assert ids(matcher.containing_matches(criteria)) == [1, 2, 5]

    def test_non_serial_predicates_apply(self, matcher):
        criteria = SearchCriteria(serial="045", manufacturer=47, stolenness=Stolenness.ALL)
        assert ids(matcher.containing_matches(criteria)) == [5]


class TestNearMatches:

    def test_threshold(self):
        assert CLOSE_SERIAL_MAX_DISTANCE == 3

    def test_distance_boundary(self, matcher, criteria):
        """Test that distance 1 and 2 are included and distance 3 is not."""
        near = ids(matcher.near_matches(criteria))

        assert 3 in near   # WTU046C, distance 1
        assert 5 in near   # WTX045D, distance 2
        assert 4 not in near  # WTX946C, distance 3
        assert near == [3, 5]

    def test_excludes_exact(self, matcher, criteria):
        assert 1 not in ids(matcher.near_matches(criteria))

    def test_excludes_containing(self, matcher, criteria):
        """Test that WTU045CX (distance 1 but containing) is only in containing."""
        near = set(ids(matcher.near_matches(criteria)))
        containing = set(ids(matcher.containing_matches(criteria)))

        assert 2 in containing
        assert not near & containing

    def test_non_serial_predicates_apply(self, matcher):
        criteria = SearchCriteria(serial="WTU045C", manufacturer=14, stolenness=Stolenness.ALL)
        assert ids(matcher.near_matches(criteria)) == [3]

    def test_stolenness_applies(self, matcher):
        criteria = SearchCriteria(serial="WTU045C", stolenness=Stolenness.IMPOUNDED)
        assert ids(matcher.near_matches(criteria)) == [3]

    def test_no_candidates(self, matcher):
        criteria = SearchCriteria(serial="WTU045C", stolenness=Stolenness.NON)
        assert matcher.near_matches(criteria).empty
        assert matcher.containing_matches(criteria).empty


class TestTierDisjointness:
    """Test that no record lands in two tiers."""

    @pytest.mark.parametrize("serial", ["WTU045C", "WTU04", "045", "A8C123", "XY2 789", "ZZZ"])
    def test_tiers_disjoint(self, matcher, serial):
        criteria = SearchCriteria(serial=serial, stolenness=Stolenness.ALL)
        exact = set(ids(matcher.exact_matches(criteria)))
        containing = set(ids(matcher.containing_matches(criteria)))
        near = set(ids(matcher.near_matches(criteria)))

        assert not exact & containing
        assert not exact & near
        assert not containing & near
