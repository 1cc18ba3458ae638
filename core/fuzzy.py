"""
Close-serial matching.

Serial searches come back in three tiers that never share a record:

1. exact       every segment of the normalized serial matches
2. containing  the stored serial contains the normalized serial
3. near        stored serial is within a small edit distance

Containing and near candidates are the records that pass every
non-serial predicate (manufacturer, colors, stolenness, query) minus
the exact matches. Near matches also drop anything already containing.
"""

import pandas as pd

from config.patterns import ABSENT_SERIAL
from core.context import SearchCriteria
from core.predicates import compose, compose_non_serial
from core.store import AssetStore, SERIAL_COLUMN
from core.structured_logging import get_logger

_logger = get_logger("core.fuzzy")

# Edit distance must be strictly below this
CLOSE_SERIAL_MAX_DISTANCE = 3


def _has_serial(criteria: SearchCriteria) -> bool:
    return bool(criteria.serial) and criteria.serial != ABSENT_SERIAL


class FuzzySerialMatcher:
    """
    Finds containing and near serial matches for a set of criteria.

    Example:
        matcher = FuzzySerialMatcher(store)
        matcher.containing_matches(criteria)  # DataFrame
        matcher.near_matches(criteria)        # DataFrame, disjoint from the above
    """

    def __init__(self, store: AssetStore):
        self.store = store

    def exact_matches(self, criteria: SearchCriteria) -> pd.DataFrame:
        """Records matching every predicate, serial included."""
        if not criteria.serial:
            return self.store.empty()
        return compose(criteria).apply(self.store)

    def containing_matches(self, criteria: SearchCriteria) -> pd.DataFrame:
        """Non-exact records whose normalized serial contains the query serial."""
        if not _has_serial(criteria):
            return self.store.empty()
        candidates = self._candidates(criteria)
        if candidates.empty:
            return candidates
        matches = candidates[self.store.contains(candidates, SERIAL_COLUMN, criteria.serial)]
        self._log("containing", criteria, candidates, matches)
        return matches

    def near_matches(self, criteria: SearchCriteria) -> pd.DataFrame:
        """Non-exact, non-containing records within the edit-distance threshold."""
        if not _has_serial(criteria):
            return self.store.empty()
        candidates = self._candidates(criteria)
        if candidates.empty:
            return candidates

        containing = candidates[self.store.contains(candidates, SERIAL_COLUMN, criteria.serial)]
        remaining = self.store.exclude_ids(candidates, self.store.ids(containing))
        if remaining.empty:
            return remaining

        close = self.store.edit_distance_below(
            remaining, SERIAL_COLUMN, criteria.serial, CLOSE_SERIAL_MAX_DISTANCE
        )
        matches = remaining[close]
        self._log("near", criteria, remaining, matches)
        return matches

    def _candidates(self, criteria: SearchCriteria) -> pd.DataFrame:
        """Records passing the non-serial predicates, exact matches removed."""
        filtered = compose_non_serial(criteria).apply(self.store)
        if filtered.empty:
            return filtered
        exact_ids = self.store.ids(self.exact_matches(criteria))
        return self.store.exclude_ids(filtered, exact_ids)

    @staticmethod
    def _log(tier: str, criteria: SearchCriteria, scanned: pd.DataFrame, matches: pd.DataFrame):
        _logger.debug(
            f"{tier} serial matches for {criteria.serial!r}: {len(matches)}",
            extra={
                "event": f"serial_{tier}",
                "serial": criteria.serial,
                "candidates_scanned": len(scanned),
                "results_found": len(matches),
            }
        )
