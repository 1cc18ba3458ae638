"""
Search parameter interpretation.

Turns raw request params into a SearchCriteria:
- Serial normalization (raw serial kept for display)
- Query items split into free text, manufacturer and color tokens
- Manufacturer and color references resolved to ids
- Stolenness defaulted, with proximity resolved to a bounding box

Interpretation never raises on bad input. Anything unusable is
dropped, and stolenness always ends up set.

Example:
    interpreter = QueryInterpreter(resolvers, ProximityResolver(geocoder))
    criteria = interpreter.interpret({"query_items": ["blue bike", "m_14", "c_3"]})
    # SearchCriteria(query="blue bike", manufacturer=14, colors=(3,), stolenness=STOLEN)
"""

from typing import Any, Mapping, Optional

from config.patterns import (
    PERMITTED_SEARCH_PARAMS,
    MANUFACTURER_TOKEN_PREFIX,
    COLOR_TOKEN_PREFIX,
    VERBATIM_STOLENNESS,
    PROXIMITY_STOLENNESS,
    DEFAULT_STOLENNESS,
    ABSENT_SERIAL,
)
from core.context import (
    SearchCriteria,
    Stolenness,
    QueryToken,
    TextToken,
    ManufacturerToken,
    ColorToken,
)
from core.references import ReferenceResolver
from core.proximity import ProximityResolver
from core.serials import SerialNormalizer
from core.structured_logging import get_logger, log_interpretation, Timer

_logger = get_logger("core.interpreter")


def _present(value: Any) -> bool:
    """Blank strings, empty collections and None are not present."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


def _as_list(value: Any) -> list:
    """Scalars become one-element lists; comma-separated strings are split."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [item for item in value if item is not None]
    return [value]


def tokenize_query_items(items: Any) -> list[QueryToken]:
    """
    Split autocomplete query items into tagged tokens.

    Items prefixed "m_" are manufacturer references and "c_" color
    references; everything else is free text.

    Example:
        >>> tokenize_query_items(["blue bike", "m_14", "c_3"])
        [TextToken(text='blue bike'), ManufacturerToken(ref='14'), ColorToken(ref='3')]
    """
    if items is None:
        return []
    if isinstance(items, str):
        items = [items]
    elif not isinstance(items, (list, tuple)):
        items = [items]

    tokens: list[QueryToken] = []
    for item in items:
        if item is None:
            continue
        text = str(item)
        if text.startswith(MANUFACTURER_TOKEN_PREFIX):
            tokens.append(ManufacturerToken(ref=text[len(MANUFACTURER_TOKEN_PREFIX):]))
        elif text.startswith(COLOR_TOKEN_PREFIX):
            tokens.append(ColorToken(ref=text[len(COLOR_TOKEN_PREFIX):]))
        else:
            tokens.append(TextToken(text=text))
    return tokens


class QueryInterpreter:
    """
    Interprets raw search params into SearchCriteria.

    Args:
        resolvers: Reference resolvers keyed by kind ("manufacturer", "color"),
                   as built by core.references.build_resolvers
        proximity: Resolver used when stolenness is "proximity"
        normalizer: Serial normalizer (default instance if None)
    """

    def __init__(
        self,
        resolvers: Mapping[str, ReferenceResolver],
        proximity: ProximityResolver,
        normalizer: Optional[SerialNormalizer] = None,
    ):
        self.manufacturers = resolvers["manufacturer"]
        self.colors = resolvers["color"]
        self.proximity = proximity
        self.normalizer = normalizer or SerialNormalizer()

    def interpret(
        self,
        raw_params: Optional[Mapping[str, Any]],
        client_ip: Optional[str] = None,
    ) -> SearchCriteria:
        """
        Build SearchCriteria from raw request params.

        Args:
            raw_params: Request params; only PERMITTED_SEARCH_PARAMS are read
            client_ip: Requester's address, for "ip"/"you" proximity searches

        Returns:
            SearchCriteria with stolenness always set
        """
        with Timer() as t:
            params = self._permitted(raw_params)
            tokens = tokenize_query_items(params.get("query_items"))

            values: dict[str, Any] = {}
            values.update(self._serial(params))
            values.update(self._query(params, tokens))
            values.update(self._manufacturer(params, tokens))
            values.update(self._colors(params, tokens))
            values.update(self._stolenness(params, client_ip))
            criteria = SearchCriteria(**values)

        log_interpretation(criteria.to_dict(), interpretation_ms=t.elapsed_ms)
        return criteria

    def selected_query_items_options(self, criteria: SearchCriteria) -> list:
        """
        Initial selections for the search input, rebuilt from criteria.

        The free-text query comes first (as a plain string), then
        manufacturer and color options. Ids that no longer exist in the
        reference tables are skipped.
        """
        items: list = []
        if _present(criteria.query):
            items.append(criteria.query)
        items.extend(self.manufacturers.options_for(criteria.manufacturer_ids))
        items.extend(self.colors.options_for(criteria.colors or ()))
        return items

    # === Individual params ===

    @staticmethod
    def _permitted(raw_params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        if not raw_params:
            return {}
        try:
            return {key: raw_params.get(key) for key in PERMITTED_SEARCH_PARAMS}
        except AttributeError:
            _logger.debug(
                f"Ignoring non-mapping search params: {type(raw_params).__name__}",
                extra={"event": "params_ignored"},
            )
            return {}

    def _serial(self, params: dict) -> dict:
        raw_serial = params.get("serial")
        if not _present(raw_serial):
            return {}
        raw_serial = str(raw_serial)
        serial = self.normalizer.normalize(raw_serial)
        # "000" and "--" leave nothing to match on
        if serial == ABSENT_SERIAL:
            return {}
        return {"serial": serial, "raw_serial": raw_serial}

    @staticmethod
    def _query(params: dict, tokens: list[QueryToken]) -> dict:
        if _present(params.get("query")):
            return {"query": str(params["query"])}
        query = " ".join(
            t.text for t in tokens if isinstance(t, TextToken) and t.text.strip()
        )
        return {"query": query} if query.strip() else {}

    def _manufacturer(self, params: dict, tokens: list[QueryToken]) -> dict:
        if _present(params.get("manufacturer")):
            refs = _as_list(params["manufacturer"])
        else:
            refs = [t.ref for t in tokens if isinstance(t, ManufacturerToken)]
        ids = self.manufacturers.resolve_all(refs)
        if not ids:
            return {}
        # Normally a single manufacturer; lists come from multi-select
        return {"manufacturer": ids[0] if len(ids) == 1 else tuple(ids)}

    def _colors(self, params: dict, tokens: list[QueryToken]) -> dict:
        if _present(params.get("colors")):
            refs = _as_list(params["colors"])
        else:
            refs = [t.ref for t in tokens if isinstance(t, ColorToken)]
        ids = self.colors.resolve_all(refs)
        return {"colors": tuple(ids)} if ids else {}

    def _stolenness(self, params: dict, client_ip: Optional[str]) -> dict:
        raw = params.get("stolenness")
        value = str(raw).strip().lower() if raw is not None else ""

        if value in VERBATIM_STOLENNESS:
            return {"stolenness": Stolenness(value)}

        if value == PROXIMITY_STOLENNESS:
            result = self.proximity.resolve(
                params.get("location"),
                params.get("distance"),
                client_ip=client_ip,
            )
            if result is not None:
                return {
                    "stolenness": Stolenness.PROXIMITY,
                    "bounding_box": result.bounding_box,
                    "location": result.location,
                    "distance": result.distance,
                }

        return {"stolenness": Stolenness(DEFAULT_STOLENNESS)}
