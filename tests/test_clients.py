"""Tests for GeocodeClient and TransitClient."""

import unittest

import requests

from support import make_http, make_response, route_payload, stop_payload

from smartshuttle.errors import TransitApiError, TransitHttpError, TransitNetworkError
from smartshuttle.geocode_client import (
    FALLBACK_LOCATION_NAME,
    GeocodeClient,
    classify,
    order_transit_first,
    shorten_display_name,
    to_search_result,
)
from smartshuttle.models import SourceCategory
from smartshuttle.transit_client import TransitClient


def candidate(name, lat="40.44", lon="-79.94", osm_class="place", osm_type="house", **extra):
    data = {"display_name": name, "lat": lat, "lon": lon, "class": osm_class, "type": osm_type}
    data.update(extra)
    return data


class TestShortenDisplayName(unittest.TestCase):
    """Test display name shortening for reverse lookups."""

    def test_first_two_segments(self):
        self.assertEqual(shorten_display_name("Forbes Ave, Oakland, Pittsburgh, PA, USA"), "Forbes Ave, Oakland")

    def test_exactly_two_segments(self):
        self.assertEqual(shorten_display_name("Forbes Ave, Oakland"), "Forbes Ave, Oakland")

    def test_single_segment(self):
        self.assertEqual(shorten_display_name("Pittsburgh"), "Pittsburgh")

    def test_empty(self):
        self.assertEqual(shorten_display_name(""), FALLBACK_LOCATION_NAME)
        self.assertEqual(shorten_display_name(None), FALLBACK_LOCATION_NAME)


class TestClassify(unittest.TestCase):
    """Test transit stop classification of geocoder candidates."""

    def test_bus_stop_type(self):
        self.assertEqual(classify(candidate("Stop 12", osm_class="highway", osm_type="bus_stop")),
                         SourceCategory.TRANSIT_STOP)

    def test_bus_stop_in_name(self):
        self.assertEqual(classify(candidate("Forbes Bus Stop, Pittsburgh")), SourceCategory.TRANSIT_STOP)

    def test_stop_in_name_needs_stop_class(self):
        self.assertEqual(classify(candidate("Stop & Shop", osm_class="shop")), SourceCategory.OTHER)
        self.assertEqual(classify(candidate("Fifth Ave Stop", osm_class="amenity")), SourceCategory.TRANSIT_STOP)

    def test_other_categories(self):
        self.assertEqual(classify(candidate("Forbes Ave", osm_class="highway", osm_type="primary")),
                         SourceCategory.HIGHWAY)
        self.assertEqual(classify(candidate("Library", osm_class="amenity", osm_type="library")),
                         SourceCategory.AMENITY)

    def test_invalid_candidates(self):
        self.assertIsNone(to_search_result(candidate("Nowhere", lat="abc")))
        self.assertIsNone(to_search_result(candidate("Off the map", lat="95")))
        self.assertIsNone(to_search_result({"lat": "40", "lon": "-79"}))

    def test_order_is_stable(self):
        results = [to_search_result(c) for c in (
            candidate("Place A"),
            candidate("Bus Stop 1"),
            candidate("Place B"),
            candidate("Bus Stop 2"),
        )]
        ordered = [r.display_name for r in order_transit_first(results)]
        self.assertEqual(ordered, ["Bus Stop 1", "Bus Stop 2", "Place A", "Place B"])


class TestGeocodeClient(unittest.IsolatedAsyncioTestCase):
    """Test forward search and reverse lookup."""

    async def test_forward_search_puts_stops_first(self):
        http = make_http()

        async def fake_get(url, params=None, **kwargs):
            if params["q"].endswith(" bus stop"):
                return make_response([candidate("Forbes Ave Bus Stop, Oakland", state="Pennsylvania")])
            return make_response([
                candidate("Forbes Avenue, Oakland", osm_class="highway", osm_type="primary"),
                candidate("Broken", lat=None),
                candidate("Fifth Ave Stop", osm_class="highway", osm_type="bus_stop"),
            ])

        http.get.side_effect = fake_get
        client = GeocodeClient(http, "https://nominatim.test")

        results = await client.forward_search("Forbes")

        self.assertEqual([r.display_name for r in results], [
            "Forbes Ave Bus Stop, Oakland",
            "Fifth Ave Stop",
            "Forbes Avenue, Oakland",
        ])
        queries = sorted(call.kwargs["params"]["q"] for call in http.get.await_args_list)
        self.assertEqual(queries, ["Forbes", "Forbes bus stop"])
        for call in http.get.await_args_list:
            self.assertEqual(call.kwargs["params"]["countrycodes"], "US")
            self.assertEqual(call.kwargs["params"]["limit"], 10)

    async def test_forward_search_survives_one_failed_lookup(self):
        http = make_http()

        async def fake_get(url, params=None, **kwargs):
            if params["q"].endswith(" bus stop"):
                raise requests.ConnectionError("connection reset")
            return make_response([candidate("Oakland, Pittsburgh")])

        http.get.side_effect = fake_get
        results = await GeocodeClient(http).forward_search("Oakland")

        self.assertEqual([r.display_name for r in results], ["Oakland, Pittsburgh"])

    async def test_reverse_lookup(self):
        http = make_http(make_response({"display_name": "Forbes Ave, Oakland, Pittsburgh, PA, USA"}))

        name = await GeocodeClient(http).reverse_lookup(40.4443, -79.9436)

        self.assertEqual(name, "Forbes Ave, Oakland")
        self.assertTrue(http.get.await_args.args[0].endswith("/reverse"))

    async def test_reverse_lookup_fails_open(self):
        http = make_http()
        http.get.side_effect = requests.Timeout("timed out")
        self.assertEqual(await GeocodeClient(http).reverse_lookup(40.0, -80.0), FALLBACK_LOCATION_NAME)

        http = make_http(make_response({"error": "Unable to geocode"}, status=500))
        self.assertEqual(await GeocodeClient(http).reverse_lookup(40.0, -80.0), FALLBACK_LOCATION_NAME)

        http = make_http(make_response({"error": "Unable to geocode"}))
        self.assertEqual(await GeocodeClient(http).reverse_lookup(40.0, -80.0), FALLBACK_LOCATION_NAME)


class TestTransitClient(unittest.IsolatedAsyncioTestCase):
    """Test the nearby routes lookup."""

    async def test_nearby_routes(self):
        http = make_http(make_response({"routes": [route_payload(), route_payload("71A")]}))
        client = TransitClient(http, "https://transit.test/v3", api_key="secret")

        response = await client.nearby_routes(40.4406, -79.9951)

        self.assertEqual([r.short_name for r in response.routes], ["61C", "71A"])
        url = http.get.await_args.args[0]
        kwargs = http.get.await_args.kwargs
        self.assertEqual(url, "https://transit.test/v3/public/nearby_routes")
        self.assertEqual(kwargs["headers"]["apiKey"], "secret")
        self.assertEqual(kwargs["params"]["max_distance"], 1500)
        self.assertEqual(kwargs["params"]["should_update_realtime"], "true")

    async def test_proxy_base_sends_no_key(self):
        http = make_http(make_response({"routes": []}))
        client = TransitClient(http, "http://localhost:8080/api/transit/")

        response = await client.nearby_routes(40.0, -80.0)

        self.assertEqual(response.routes, [])
        self.assertNotIn("apiKey", http.get.await_args.kwargs["headers"])
        self.assertEqual(http.get.await_args.args[0], "http://localhost:8080/api/transit/public/nearby_routes")

    async def test_missing_routes_field_is_empty(self):
        http = make_http(make_response({"unexpected": True}))
        response = await TransitClient(http, "https://transit.test/v3").nearby_routes(40.0, -80.0)
        self.assertEqual(response.routes, [])

    async def test_http_error(self):
        http = make_http(make_response({"error": "boom"}, status=500))

        with self.assertRaises(TransitHttpError) as ctx:
            await TransitClient(http, "https://transit.test/v3").nearby_routes(40.0, -80.0)

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIsNone(ctx.exception.cause)

    async def test_network_error(self):
        http = make_http()
        http.get.side_effect = requests.ConnectionError("unreachable")

        with self.assertRaises(TransitApiError) as ctx:
            await TransitClient(http, "https://transit.test/v3").nearby_routes(40.0, -80.0)

        self.assertIsInstance(ctx.exception, TransitNetworkError)
        self.assertIsNone(ctx.exception.status_code)
        self.assertEqual(ctx.exception.cause, "network")

    async def test_search_stops(self):
        http = make_http(make_response({"results": [stop_payload("Fifth Ave at Craig"), {"stop_name": "No position"}]}))

        results = await TransitClient(http, "https://transit.test/v3").search_stops("Fifth", 40.44, -79.95)

        self.assertEqual(len(results), 1)
        self.assertTrue(results[0].is_transit_stop)
        self.assertEqual(results[0].display_name, "Fifth Ave at Craig")
        self.assertEqual(http.get.await_args.kwargs["params"]["query"], "Fifth")


if __name__ == "__main__":
    unittest.main()
