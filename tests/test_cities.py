import unittest
from unittest.mock import Mock, patch

import requests

from sidus import cities


class FifoCacheTest(unittest.TestCase):
    def test_evicts_oldest_inserted(self):
        cache = cities.FifoCache(capacity=3)
        for key in ("a", "b", "c"):
            cache.put(key, [key])
        cache.get("a")  # reads do not refresh position
        cache.put("d", ["d"])
        self.assertEqual(len(cache), 3)
        self.assertNotIn("a", cache)
        self.assertIn("d", cache)

    def test_clear(self):
        cache = cities.FifoCache(capacity=2)
        cache.put("a", [])
        cache.clear()
        self.assertEqual(len(cache), 0)

    def test_capacity_must_be_positive(self):
        with self.assertRaises(ValueError):
            cities.FifoCache(capacity=0)


class CitySearchTest(unittest.TestCase):
    def test_short_queries_skip_fetcher(self):
        fetcher = Mock(return_value=["x"])
        search = cities.CitySearch(fetcher=fetcher)
        self.assertEqual(search.search(""), [])
        self.assertEqual(search.search(None), [])
        self.assertEqual(search.search("L"), [])
        self.assertEqual(search.search(" a "), [])
        fetcher.assert_not_called()

    def test_results_cached_by_normalised_query(self):
        fetcher = Mock(return_value=["London, England, United Kingdom"])
        search = cities.CitySearch(fetcher=fetcher, cache=cities.FifoCache(capacity=10))
        self.assertEqual(search.search("London"), ["London, England, United Kingdom"])
        self.assertEqual(search.search(" london "), ["London, England, United Kingdom"])
        fetcher.assert_called_once_with("London")

    def test_callers_cannot_mutate_cached_results(self):
        fetcher = Mock(return_value=["Rome, Lazio, Italy"])
        search = cities.CitySearch(fetcher=fetcher)
        search.search("Rome").append("junk")
        search.search("rome").clear()
        self.assertEqual(search.search("ROME"), ["Rome, Lazio, Italy"])
        fetcher.assert_called_once_with("Rome")

    def test_cache_is_bounded(self):
        fetcher = Mock(side_effect=lambda q: [q.title()])
        search = cities.CitySearch(fetcher=fetcher, cache=cities.FifoCache(capacity=2))
        search.search("aa")
        search.search("bb")
        search.search("cc")
        search.search("aa")
        self.assertEqual(fetcher.call_count, 4)

    def test_failure_returns_empty_and_is_not_cached(self):
        fetcher = Mock(side_effect=[requests.ConnectionError("down"), ["Oslo, Norway"]])
        search = cities.CitySearch(fetcher=fetcher)
        self.assertEqual(search.search("Oslo"), [])
        self.assertEqual(search.search("Oslo"), ["Oslo, Norway"])

    def test_instances_do_not_share_cache(self):
        a = cities.CitySearch(fetcher=Mock(return_value=["A"]))
        b = cities.CitySearch(fetcher=Mock(return_value=["B"]))
        self.assertEqual(a.search("zz"), ["A"])
        self.assertEqual(b.search("zz"), ["B"])


class NominatimTest(unittest.TestCase):
    def test_format_place(self):
        item = {"address": {"city": "Austin", "state": "Texas", "country": "United States"}}
        self.assertEqual(cities.format_place(item), "Austin, Texas, United States")
        self.assertEqual(
            cities.format_place({"name": "Monaco", "address": {"country": "Monaco"}}), "Monaco, Monaco"
        )
        self.assertIsNone(cities.format_place({"address": {}}))

    def test_fetch_formats_and_dedupes(self):
        response = Mock()
        response.json.return_value = [
            {"address": {"town": "Springfield", "state": "Illinois", "country": "United States"}},
            {"address": {"town": "Springfield", "state": "Illinois", "country": "United States"}},
            {"address": {"city": "Springfield", "state": "Missouri", "country": "United States"}},
        ]
        with patch("sidus.cities.requests.get", return_value=response) as get:
            result = cities.fetch_nominatim("Springfield")
        self.assertEqual(
            result,
            ["Springfield, Illinois, United States", "Springfield, Missouri, United States"],
        )
        self.assertEqual(get.call_args.kwargs["params"]["q"], "Springfield")
        self.assertIn("User-Agent", get.call_args.kwargs["headers"])


if __name__ == "__main__":
    unittest.main()
