"""
Unit tests for the soft response cache.
"""

import pytest

from crm_http.app.caching.soft_cache import SoftResponseCache
from crm_http.test_helpers import ManualClock


class TestSoftResponseCache:
    """Test cases for SoftResponseCache."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def bypass(self):
        """Mutable bypass flag."""
        return {"on": False}

    @pytest.fixture
    def cache(self, clock, bypass):
        return SoftResponseCache(clock, lambda: bypass["on"])

    def test_set_then_get_returns_value(self, cache):
        cache.set("leads:list", [{"id": "l1"}], 30000)

        assert cache.get("leads:list") == [{"id": "l1"}]

    def test_entry_expires_after_ttl(self, cache, clock):
        cache.set("leads:list", [{"id": "l1"}], 30000)

        clock.advance(29.999)
        assert cache.get("leads:list") == [{"id": "l1"}]

        clock.advance(0.002)
        assert cache.get("leads:list") is None
        assert len(cache) == 0

    def test_entry_is_absent_exactly_at_expiry(self, cache, clock):
        cache.set("k", "v", 1000)
        clock.advance(1.0)

        assert cache.get("k") is None

    @pytest.mark.parametrize("ttl_ms", [0, -1, -30000])
    def test_non_positive_ttl_is_noop(self, cache, ttl_ms):
        cache.set("k", "v", ttl_ms)

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_if_current_skips_after_clear(self, cache):
        generation = cache.generation
        cache.clear()

        assert cache.set_if_current("leads:list", ["old"], 30000, generation) is False
        assert cache.get("leads:list") is None

    def test_set_if_current_stores_without_clear(self, cache):
        generation = cache.generation

        assert cache.set_if_current("leads:list", ["fresh"], 30000, generation) is True
        assert cache.get("leads:list") == ["fresh"]

    def test_missing_key_returns_none(self, cache):
        assert cache.get("projects:p1") is None

    def test_clear_removes_everything(self, cache):
        cache.set("a", 1, 5000)
        cache.set("b", 2, 5000)

        cache.clear()

        assert cache.get("a") is None
        assert cache.get("b") is None
        assert len(cache) == 0

    def test_bypass_disables_reads_and_writes(self, cache, bypass):
        cache.set("a", 1, 5000)
        bypass["on"] = True

        assert cache.get("a") is None
        cache.set("b", 2, 5000)

        bypass["on"] = False
        assert cache.get("a") == 1
        assert cache.get("b") is None

    def test_clear_still_runs_in_bypass(self, cache, bypass):
        cache.set("a", 1, 5000)
        bypass["on"] = True

        cache.clear()

        bypass["on"] = False
        assert cache.get("a") is None

    def test_contains(self, cache, clock):
        cache.set("a", {"x": 1}, 1000)
        assert "a" in cache

        clock.advance(2)
        assert "a" not in cache
