"""
Tests for the search facade.

Run with: pytest tests/test_search.py -v
"""

import pytest

from core.context import SearchCriteria, Stolenness, SerialSearchResult
from core.interpreter import QueryInterpreter
from core.proximity import ProximityResolver
from core.search import BikeSearch, SearchConfig, run_search


@pytest.fixture
def search(store):
    """Create a search facade over the shared registry."""
    return BikeSearch(store)


@pytest.fixture
def interpreter(resolvers, geocoder):
    return QueryInterpreter(resolvers, ProximityResolver(geocoder))


class TestSearch:
    """Test plain searches."""

    def test_returns_assets(self, search):
        assets = search.search(SearchCriteria(manufacturer=47, stolenness=Stolenness.ALL))

        assert [a.id for a in assets] == [5, 6, 7]
        assert assets[0].manufacturer_id == 47

    def test_asset_fields(self, search):
        asset = search.search(SearchCriteria(serial="WTU045C"))[0]

        assert asset.is_stolen
        assert asset.serial_number == "WTU045C"
        assert asset.color_ids == (1, None, None)
        assert asset.latitude == pytest.approx(41.88)
        assert asset.get("frame_model") == "Cross-Check"
        assert asset.get("missing", "n/a") == "n/a"

    def test_default_stolenness_hides_owned_bikes(self, search):
        assets = search.search(SearchCriteria(manufacturer=47))
        assert [a.id for a in assets] == [5, 7]

    def test_max_results(self, store):
        search = BikeSearch(store, SearchConfig(max_results=2))
        assert len(search.search(SearchCriteria(stolenness=Stolenness.ALL))) == 2

    def test_search_frame(self, search):
        frame = search.search_frame(SearchCriteria(colors=(8,)))
        assert sorted(frame["id"]) == [5, 8]

    def test_search_is_logged(self, search, caplog):
        with caplog.at_level("INFO", logger="bikesearch"):
            search.search(SearchCriteria(query="surly"), request_id="req-1")

        records = [r for r in caplog.records if getattr(r, "event", None) == "search_results"]
        assert records
        assert records[0].request_id == "req-1"
        assert records[0].results_found == 4


class TestSerialSearch:
    """Test the three-tier serial search."""

    def test_tiers(self, search):
        result = search.serial_search(SearchCriteria(serial="WTU045C", stolenness=Stolenness.ALL))

        assert isinstance(result, SerialSearchResult)
        assert [a.id for a in result.exact] == [1]
        assert [a.id for a in result.containing] == [2]
        assert [a.id for a in result.near] == [3, 5]
        assert result.total_count == 4
        assert [a.id for a in result.all_assets()] == [1, 2, 3, 5]

    def test_without_serial(self, search):
        result = search.serial_search(SearchCriteria(query="trek", stolenness=Stolenness.ALL))

        assert [a.id for a in result.exact] == [5, 6, 7]
        assert result.containing == []
        assert result.near == []

    def test_close_serials_disabled(self, store):
        search = BikeSearch(store, SearchConfig(include_close_serials=False))
        result = search.serial_search(SearchCriteria(serial="WTU045C", stolenness=Stolenness.ALL))

        assert [a.id for a in result.exact] == [1]
        assert result.containing == []
        assert result.near == []

    def test_search_close_serials(self, search):
        criteria = SearchCriteria(serial="WTU045C", stolenness=Stolenness.ALL)
        assert [a.id for a in search.search_close_serials(criteria)] == [3, 5]

    def test_search_serials_containing(self, search):
        criteria = SearchCriteria(serial="WTU045C", stolenness=Stolenness.ALL)
        assert [a.id for a in search.search_serials_containing(criteria)] == [2]


class TestEndToEnd:
    """Test interpretation followed by search."""

    def test_run_search(self, interpreter, search):
        result = run_search(interpreter, search, {"serial": "wtuO45c", "stolenness": "all"})

        assert [a.id for a in result.exact] == [1]
        assert [a.id for a in result.containing] == [2]
        assert [a.id for a in result.near] == [3, 5]

    def test_run_search_logs_request(self, interpreter, search, caplog):
        with caplog.at_level("INFO", logger="bikesearch"):
            run_search(interpreter, search, {"serial": "WTU045C"}, request_id="req-7")

        completed = [r for r in caplog.records if getattr(r, "event", None) == "search_completed"]
        assert completed[0].request_id == "req-7"
        assert completed[0].exact_count == 1
        assert any(
            getattr(r, "event", None) == "search_results" and r.request_id == "req-7"
            for r in caplog.records
        )

    def test_run_search_logs_and_reraises(self, interpreter, search, caplog):
        search.store.frame.drop(columns=["search_text"], inplace=True)
        with pytest.raises(KeyError):
            run_search(interpreter, search, {"query": "surly"}, request_id="req-8")

        errors = [r for r in caplog.records if getattr(r, "event", None) == "error"]
        assert errors[-1].request_id == "req-8"

    def test_typed_serial(self, interpreter, search):
        criteria = interpreter.interpret({"serial": "wtu-O45c", "stolenness": "all"})
        result = search.serial_search(criteria)

        # Punctuation splits the serial into segments, so there is no exact hit
        assert criteria.serial == "WTU 045C"
        assert result.exact == []

    def test_confusable_serial(self, interpreter, search):
        criteria = interpreter.interpret({"serial": "wtuO45c", "stolenness": "all"})
        result = search.serial_search(criteria)

        assert [a.id for a in result.exact] == [1]
        assert [a.id for a in result.near] == [3, 5]

    def test_query_items(self, interpreter, search):
        criteria = interpreter.interpret({"query_items": ["cross", "m_Surly", "c_black"]})
        assert [a.id for a in search.search(criteria)] == [1]

    def test_proximity(self, interpreter, search):
        criteria = interpreter.interpret({
            "stolenness": "proximity",
            "location": "Chicago, IL",
            "distance": 25,
        })
        assert [a.id for a in search.search(criteria)] == [1, 2, 4]

    def test_proximity_fallback(self, interpreter, search):
        criteria = interpreter.interpret({"stolenness": "proximity", "location": "Atlantis"})
        assets = search.search(criteria)

        assert criteria.stolenness == Stolenness.STOLEN
        assert [a.id for a in assets] == [1, 2, 3, 4, 5, 7, 8]

    def test_store_errors_propagate(self, search):
        search.store.frame.drop(columns=["search_text"], inplace=True)
        with pytest.raises(KeyError):
            search.search(SearchCriteria(query="surly"))
