"""
Registry search facade.

Runs interpreted criteria against the asset store:
- search(): every predicate applied (the "exact" tier for serial searches)
- search_serials_containing() / search_close_serials(): looser serial tiers
- serial_search(): all three tiers at once, mutually exclusive
- run_search(): interpretation plus serial_search for one request

Results are lists of Asset, in store order, capped at max_results.
"""

from typing import Any, Mapping, Optional
from dataclasses import dataclass

import pandas as pd

from core.context import Asset, SearchCriteria, SerialSearchResult
from core.fuzzy import FuzzySerialMatcher
from core.interpreter import QueryInterpreter
from core.predicates import compose
from core.store import AssetStore
from core.structured_logging import get_logger, log_search, timed, Timer, LogContext

# Module-level logger
_logger = get_logger("core.search")


@dataclass
class SearchConfig:
    """
    Configuration for search behavior.

    Attributes:
        max_results: Maximum records per result list (None for no limit)
        include_close_serials: Run the containing/near tiers in serial_search
    """
    max_results: Optional[int] = None
    include_close_serials: bool = True


class BikeSearch:
    """
    Search over a registry of bikes.

    Example:
        search = BikeSearch(store)
        criteria = interpreter.interpret({"serial": "WTU-0O45", "stolenness": "all"})

        search.search(criteria)            # [Asset(...)] exact matches
        result = search.serial_search(criteria)
        result.exact, result.containing, result.near
    """

    def __init__(self, store: AssetStore, config: Optional[SearchConfig] = None):
        """
        Initialize the search facade.

        Args:
            store: Asset store to search
            config: Search configuration (uses defaults if None)
        """
        self.store = store
        self.config = config or SearchConfig()
        self.matcher = FuzzySerialMatcher(store)

    def search_frame(self, criteria: SearchCriteria) -> pd.DataFrame:
        """Matching rows as a DataFrame (every predicate applied)."""
        chain = compose(criteria)
        if chain.matches_everything:
            _logger.debug(
                "Search has no active predicates, returning every record",
                extra={"event": "search_unfiltered"},
            )
        return chain.apply(self.store)

    @timed("search")
    def search(self, criteria: SearchCriteria, request_id: Optional[str] = None) -> list[Asset]:
        """
        Records matching every criterion.

        Args:
            criteria: Interpreted criteria
            request_id: Request identifier for logging

        Returns:
            Matching assets
        """
        with Timer() as t:
            frame = self.search_frame(criteria)
        assets = self._assets(frame)
        log_search(
            criteria.to_dict(),
            results_found=len(assets),
            search_latency_ms=t.elapsed_ms,
            request_id=request_id,
            candidates_scanned=len(self.store),
        )
        return assets

    def search_serials_containing(self, criteria: SearchCriteria) -> list[Asset]:
        """Non-exact records whose serial contains the searched serial."""
        return self._assets(self.matcher.containing_matches(criteria))

    def search_close_serials(self, criteria: SearchCriteria) -> list[Asset]:
        """Records whose serial is a few edits away (excluding exact and containing)."""
        return self._assets(self.matcher.near_matches(criteria))

    def serial_search(
        self,
        criteria: SearchCriteria,
        request_id: Optional[str] = None,
    ) -> SerialSearchResult:
        """
        Tiered serial search: exact, then containing, then near.

        Without a serial only the exact tier (a plain search) is filled.
        """
        with Timer() as t:
            exact = self._assets(self.search_frame(criteria))
            containing: list[Asset] = []
            near: list[Asset] = []
            if criteria.serial and self.config.include_close_serials:
                containing = self.search_serials_containing(criteria)
                near = self.search_close_serials(criteria)

        result = SerialSearchResult(
            criteria=criteria,
            exact=exact,
            containing=containing,
            near=near,
        )
        log_search(
            criteria.to_dict(),
            results_found=result.total_count,
            search_latency_ms=t.elapsed_ms,
            request_id=request_id,
            exact_count=len(exact),
            containing_count=len(containing),
            near_count=len(near),
        )
        return result

    def _assets(self, frame: pd.DataFrame) -> list[Asset]:
        return self.store.to_assets(frame, limit=self.config.max_results)


def run_search(
    interpreter: QueryInterpreter,
    search: BikeSearch,
    raw_params: Optional[Mapping[str, Any]],
    client_ip: Optional[str] = None,
    request_id: Optional[str] = None,
) -> SerialSearchResult:
    """
    Interpret raw request params and run a tiered serial search.

    Every log line for the request carries the same request_id. Errors
    are logged with it and re-raised.

    Example:
        result = run_search(interpreter, search, {"serial": "WTU 045C"}, client_ip=ip)
        result.exact, result.containing, result.near
    """
    with LogContext(request_id) as ctx:
        criteria = interpreter.interpret(raw_params, client_ip=client_ip)
        ctx.log_criteria(criteria.to_dict())
        result = search.serial_search(criteria, request_id=ctx.request_id)
        ctx.log_response(
            results_found=result.total_count,
            exact_count=len(result.exact),
            containing_count=len(result.containing),
            near_count=len(result.near),
        )
    return result
