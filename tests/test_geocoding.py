"""
Tests for the geocoding collaborators.

HTTP calls are patched out; nothing here touches the network.

Run with: pytest tests/test_geocoding.py -v
"""

import math
from unittest.mock import MagicMock

import pytest
import requests

from core.geocoding import (
    HTTPGeocoder,
    GeocoderConfig,
    GeocodingError,
    Place,
    bounding_box_around,
    is_ip_address,
)


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


class TestBoundingBoxAround:
    """Test the bounding box math."""

    def test_latitude_extent(self):
        """Test that 69.1 miles is about one degree of latitude."""
        south, west, north, east = bounding_box_around(0.0, 0.0, 69.09)
        assert north == pytest.approx(1.0, abs=0.01)
        assert south == pytest.approx(-1.0, abs=0.01)
        assert east == pytest.approx(1.0, abs=0.01)

    def test_longitude_widens_with_latitude(self):
        south, west, north, east = bounding_box_around(60.0, 0.0, 69.09)
        # cos(60) = 0.5, so the box is twice as wide in degrees
        assert east == pytest.approx(2.0, abs=0.02)
        assert west == pytest.approx(-2.0, abs=0.02)

    def test_kilometers(self):
        _, _, north, _ = bounding_box_around(0.0, 0.0, 111.19, units="km")
        assert north == pytest.approx(1.0, abs=0.01)

    def test_nan_propagates(self):
        box = bounding_box_around(math.nan, math.nan, 25)
        assert all(math.isnan(v) for v in box)


class TestIsIpAddress:

    @pytest.mark.parametrize("target", ["203.0.113.9", "2001:db8::1", " 10.0.0.1 "])
    def test_ip(self, target):
        assert is_ip_address(target)

    @pytest.mark.parametrize("target", ["Chicago, IL", "", "999.1.1.1"])
    def test_not_ip(self, target):
        assert not is_ip_address(target)


class TestGeocoderBase:
    """Test the bounding box built on top of search()."""

    def test_bounding_box_from_first_candidate(self, fake_geocoder):
        geocoder = fake_geocoder(places={"Here": [Place(10.0, 20.0), Place(50.0, 50.0)]})
        south, west, north, east = geocoder.bounding_box("Here", 10)
        assert south < 10.0 < north
        assert west < 20.0 < east

    def test_unknown_location_gives_nan(self, fake_geocoder):
        box = fake_geocoder().bounding_box("Nowhere", 10)
        assert all(math.isnan(v) for v in box)

    def test_blank_location_skips_search(self, fake_geocoder):
        geocoder = fake_geocoder()
        assert math.isnan(geocoder.coordinates("  ")[0])
        assert geocoder.calls == []


class TestHTTPGeocoder:
    """Test the Nominatim / ip-api client."""

    def test_sets_user_agent(self, session):
        HTTPGeocoder(GeocoderConfig(user_agent="test-agent"), session=session)
        assert session.headers["User-Agent"] == "test-agent"

    def test_address_search(self, session):
        session.get.return_value = _response([
            {"lat": "41.88", "lon": "-87.63", "display_name": "Chicago, Illinois"},
        ])
        geocoder = HTTPGeocoder(session=session)
        places = geocoder.search("Chicago, IL")

        assert len(places) == 1
        assert places[0].coordinates == (41.88, -87.63)
        assert places[0].display_name == "Chicago, Illinois"
        _, kwargs = session.get.call_args
        assert kwargs["params"]["q"] == "Chicago, IL"
        assert kwargs["timeout"] == (3.0, 5.0)

    def test_address_search_skips_bad_items(self, session):
        session.get.return_value = _response([{"lat": "north"}, {"display_name": "x"}])
        assert HTTPGeocoder(session=session).search("Somewhere") == []

    @pytest.mark.parametrize("payload", [5, True, {"error": "Unable to geocode"}, "Chicago"])
    def test_non_list_address_payload_raises_geocoding_error(self, session, payload):
        session.get.return_value = _response(payload)
        with pytest.raises(GeocodingError, match="Unexpected address search payload"):
            HTTPGeocoder(session=session).search("Chicago, IL")

    def test_null_address_payload_is_no_result(self, session):
        session.get.return_value = _response(None)
        assert HTTPGeocoder(session=session).search("Chicago, IL") == []

    def test_ip_search(self, session):
        session.get.return_value = _response({
            "status": "success", "lat": 41.88, "lon": -87.63,
            "city": "Chicago", "regionName": "Illinois", "zip": "60666",
            "country": "United States",
        })
        geocoder = HTTPGeocoder(session=session)
        places = geocoder.search("203.0.113.9")

        url, = session.get.call_args[0]
        assert url == "http://ip-api.com/json/203.0.113.9"
        assert places[0].address_components == ["Chicago", "Illinois", "60666", "United States"]

    def test_ip_lookup_failure_is_no_result(self, session):
        session.get.return_value = _response({"status": "fail", "message": "private range"})
        assert HTTPGeocoder(session=session).search("10.0.0.1") == []

    def test_blank_target(self, session):
        assert HTTPGeocoder(session=session).search("  ") == []
        session.get.assert_not_called()

    def test_timeout_raises_geocoding_error(self, session):
        session.get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(GeocodingError, match="timed out"):
            HTTPGeocoder(session=session).search("Chicago, IL")

    def test_http_error_raises_geocoding_error(self, session):
        response = _response(None)
        response.raise_for_status.side_effect = requests.HTTPError("503")
        session.get.return_value = response
        with pytest.raises(GeocodingError):
            HTTPGeocoder(session=session).search("Chicago, IL")

    def test_invalid_json_raises_geocoding_error(self, session):
        response = _response(None)
        response.json.side_effect = ValueError("no json")
        session.get.return_value = response
        with pytest.raises(GeocodingError, match="invalid JSON"):
            HTTPGeocoder(session=session).search("Chicago, IL")
