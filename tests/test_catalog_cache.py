"""
Tests for catalog_cache.py with a fake clock.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from quote_core.catalog_cache import CatalogCache, catalog_fetcher


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class CountingFetcher:

    def __init__(self):
        self.calls = 0
        self.fail = False

    def __call__(self):
        self.calls += 1
        if self.fail:
            raise ConnectionError("catalog offline")
        return {"version": self.calls}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return CountingFetcher()


class TestCatalogCache:

    def test_fetches_once_within_ttl(self, clock, fetcher):
        cache = CatalogCache(fetcher, ttl_seconds=300, clock=clock)
        assert cache.get() == {"version": 1}
        clock.now = 299
        assert cache.get() == {"version": 1}
        assert fetcher.calls == 1

    def test_refetches_after_ttl(self, clock, fetcher):
        cache = CatalogCache(fetcher, ttl_seconds=300, clock=clock)
        cache.get()
        clock.now = 300
        assert not cache.is_fresh()
        assert cache.get() == {"version": 2}

    def test_stale_data_served_when_refresh_fails(self, clock, fetcher):
        cache = CatalogCache(fetcher, ttl_seconds=300, clock=clock)
        cache.get()
        fetcher.fail = True
        clock.now = 1000
        assert cache.get() == {"version": 1}
        assert not cache.is_fresh()

    def test_error_propagates_when_empty(self, clock, fetcher):
        fetcher.fail = True
        cache = CatalogCache(fetcher, clock=clock)
        with pytest.raises(ConnectionError):
            cache.get()
        assert not cache.has_data

    def test_clear(self, clock, fetcher):
        cache = CatalogCache(fetcher, clock=clock)
        cache.get()
        cache.clear()
        assert not cache.has_data
        assert cache.get() == {"version": 2}


class TestCatalogFetcher:

    def test_json_file_keyed_by_sku(self, tmp_path):
        source = tmp_path / "catalog.json"
        source.write_text(json.dumps([
            {"sku": "brk-100", "description": "Bracket", "unit_price": "5.00"},
            {"sku": "", "description": "No SKU"},
            {"description": "Missing SKU"},
        ]), encoding="utf-8")

        catalog = catalog_fetcher(str(source))()
        assert list(catalog) == ["BRK-100"]
        assert catalog["BRK-100"]["description"] == "Bracket"

    @patch("quote_core.catalog_cache.requests.get")
    def test_http_source(self, mock_get):
        resp = MagicMock()
        resp.json.return_value = [{"sku": "A1", "description": "Anchor"}]
        mock_get.return_value = resp

        catalog = catalog_fetcher("https://example.test/catalog.json", timeout=5)()
        mock_get.assert_called_once_with("https://example.test/catalog.json", timeout=5)
        resp.raise_for_status.assert_called_once()
        assert catalog == {"A1": {"sku": "A1", "description": "Anchor"}}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            catalog_fetcher(str(tmp_path / "nope.json"))()
