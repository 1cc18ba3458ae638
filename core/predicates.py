"""
Predicate composition for registry searches.

compose(criteria) turns SearchCriteria into a PredicateChain: one
predicate per filter dimension, each a no-op when its criterion is
absent. Predicates only ever narrow the frame they're given, so the
chain is order-independent; it runs selective predicates first
(serial, manufacturer) so the broad ones (free text) scan fewer rows.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

import pandas as pd

from core.context import (
    SearchCriteria,
    Stolenness,
    BoundingBox,
    AssetStatus,
    STOLEN_OR_IMPOUNDED,
)
from core.store import (
    AssetStore,
    MANUFACTURER_COLUMN,
    COLOR_COLUMNS,
    STATUS_COLUMN,
)
from core.structured_logging import get_logger

_logger = get_logger("core.predicates")


class Predicate(ABC):
    """
    A single filter over the asset frame.

    Subclasses implement mask(); apply() narrows a frame with it.
    No-op predicates leave the frame untouched.
    """

    name: str = "predicate"

    @property
    @abstractmethod
    def is_noop(self) -> bool:
        """True when this predicate has nothing to filter on."""

    @abstractmethod
    def mask(self, store: AssetStore, frame: pd.DataFrame) -> pd.Series:
        """Boolean mask over `frame` of rows that pass."""

    def apply(self, store: AssetStore, frame: pd.DataFrame) -> pd.DataFrame:
        if self.is_noop or frame.empty:
            return frame
        return frame[self.mask(store, frame)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({'noop' if self.is_noop else 'active'})"


class SerialPredicate(Predicate):
    """Exact match on the normalized serial, segment by segment."""

    name = "serial"

    def __init__(self, serial: Optional[str]):
        self.serial = serial

    @property
    def is_noop(self) -> bool:
        return not self.serial

    def mask(self, store, frame):
        return store.serial_text_match(frame, self.serial)


class ManufacturerPredicate(Predicate):
    """Manufacturer id equality (membership when several ids were resolved)."""

    name = "manufacturer"

    def __init__(self, manufacturer_ids: Iterable[int]):
        self.manufacturer_ids = list(manufacturer_ids)

    @property
    def is_noop(self) -> bool:
        return not self.manufacturer_ids

    def mask(self, store, frame):
        if len(self.manufacturer_ids) == 1:
            return store.equals(frame, MANUFACTURER_COLUMN, self.manufacturer_ids[0])
        return store.isin(frame, MANUFACTURER_COLUMN, self.manufacturer_ids)


class ColorPredicate(Predicate):
    """Any requested color in any of the three color slots."""

    name = "colors"

    def __init__(self, color_ids: Optional[Iterable[int]]):
        self.color_ids = list(color_ids or [])

    @property
    def is_noop(self) -> bool:
        return not self.color_ids

    def mask(self, store, frame):
        return store.any_column_isin(frame, COLOR_COLUMNS, self.color_ids)


class StolennessPredicate(Predicate):
    """
    Theft-status filter.

    - all: no-op
    - non: records still with their owner
    - found / impounded: impounded records only
    - proximity: stolen or impounded, inside the bounding box
    - stolen (default): stolen or impounded
    """

    name = "stolenness"

    def __init__(self, stolenness: Stolenness, bounding_box: Optional[BoundingBox] = None):
        self.stolenness = stolenness
        self.bounding_box = bounding_box

    @property
    def is_noop(self) -> bool:
        return self.stolenness == Stolenness.ALL

    def mask(self, store, frame):
        if self.stolenness == Stolenness.NON:
            return store.equals(frame, STATUS_COLUMN, AssetStatus.WITH_OWNER.value)
        if self.stolenness.is_impounded_category:
            return store.equals(frame, STATUS_COLUMN, AssetStatus.IMPOUNDED.value)

        mask = store.isin(frame, STATUS_COLUMN, [s.value for s in STOLEN_OR_IMPOUNDED])
        if self.stolenness == Stolenness.PROXIMITY and self.bounding_box is not None:
            mask &= store.within_bounding_box(frame, self.bounding_box)
        return mask


class QueryPredicate(Predicate):
    """Full-text search over the record's search document."""

    name = "query"

    def __init__(self, query: Optional[str]):
        self.query = query

    @property
    def is_noop(self) -> bool:
        return not (self.query and self.query.strip())

    def mask(self, store, frame):
        return store.full_text(frame, self.query)


class PredicateChain:
    """
    Ordered list of predicates, applied as successive narrowing.

    Example:
        chain = compose(criteria)
        matches = chain.apply(store)   # DataFrame of matching records
    """

    def __init__(self, predicates: Iterable[Predicate]):
        self.predicates = list(predicates)

    def __iter__(self):
        return iter(self.predicates)

    def __len__(self) -> int:
        return len(self.predicates)

    @property
    def active(self) -> list[Predicate]:
        return [p for p in self.predicates if not p.is_noop]

    @property
    def active_names(self) -> list[str]:
        return [p.name for p in self.active]

    @property
    def matches_everything(self) -> bool:
        return not self.active

    def apply(self, store: AssetStore, frame: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Narrow `frame` (all records if None) by every active predicate.

        Returns:
            Matching rows, in store order
        """
        result = store.frame if frame is None else frame
        for predicate in self.active:
            result = predicate.apply(store, result)
            if result.empty:
                break
        return result


def compose(criteria: SearchCriteria) -> PredicateChain:
    """
    Build the predicate chain for a set of criteria.

    Selective predicates come first: serial, manufacturer, colors,
    stolenness, then free text.
    """
    chain = PredicateChain([
        SerialPredicate(criteria.serial),
        ManufacturerPredicate(criteria.manufacturer_ids),
        ColorPredicate(criteria.colors),
        StolennessPredicate(criteria.stolenness, criteria.bounding_box),
        QueryPredicate(criteria.query),
    ])
    _logger.debug(
        f"Composed predicates: {chain.active_names}",
        extra={"event": "predicates_composed", "predicates": chain.active_names},
    )
    return chain


def compose_non_serial(criteria: SearchCriteria) -> PredicateChain:
    """Chain for everything except the serial (used by the fuzzy matcher)."""
    return compose(criteria.without_serial())
