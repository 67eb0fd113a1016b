"""
Test Module: test_analysis_cache.py
Description: Unit tests for the analysis result cache.

Tests:
    - Hit/miss and key components
    - TTL expiry and lazy eviction
    - Sweep on growth past the threshold
    - Fingerprint properties

Author: MoneyWise Team
"""

import pytest

from services.analysis_cache import AnalysisCache, fingerprint


DATA = {
    "budgets": [{"category": "FOOD", "amount": 500}],
    "expenses": [{"category": "FOOD", "amount": 42.5}],
}


@pytest.fixture
def cache(clock):
    return AnalysisCache(ttl_seconds=3600, sweep_threshold=1000, clock=clock)


# =============================================================================
# Lookup Tests
# =============================================================================

class TestGetSet:
    """Tests for basic cache lookups."""

    def test_set_then_get_returns_value(self, cache):
        cache.set("u1", "How am I doing?", DATA, "Great")
        assert cache.get("u1", "How am I doing?", DATA) == "Great"

    def test_missing_key_returns_none(self, cache):
        assert cache.get("u1", "anything", DATA) is None

    def test_key_includes_user_prompt_and_data(self, cache):
        cache.set("u1", "prompt", DATA, "answer")

        assert cache.get("u2", "prompt", DATA) is None
        assert cache.get("u1", "Prompt", DATA) is None
        assert cache.get("u1", "prompt", {"budgets": [], "expenses": []}) is None

    def test_set_overwrites(self, cache):
        cache.set("u1", "p", DATA, "first")
        cache.set("u1", "p", DATA, "second")
        assert cache.get("u1", "p", DATA) == "second"
        assert len(cache) == 1


# =============================================================================
# Expiry Tests
# =============================================================================

class TestExpiry:
    """Tests for TTL handling."""

    def test_entry_valid_just_before_ttl(self, cache, clock):
        cache.set("u1", "p", DATA, "answer")
        clock.advance(3599)
        assert cache.get("u1", "p", DATA) == "answer"

    def test_entry_expires_at_ttl_and_is_removed(self, cache, clock):
        cache.set("u1", "p", DATA, "answer")
        clock.advance(3600)

        assert cache.get("u1", "p", DATA) is None
        assert len(cache) == 0

    def test_expired_entries_linger_until_touched(self, cache, clock):
        cache.set("u1", "p", DATA, "answer")
        clock.advance(7200)
        assert len(cache) == 1

    def test_sweep_runs_when_size_exceeds_threshold(self, clock):
        cache = AnalysisCache(ttl_seconds=10, sweep_threshold=5, clock=clock)
        for i in range(5):
            cache.set("u1", f"old-{i}", DATA, "stale")
        clock.advance(10)

        for i in range(3):
            cache.set("u1", f"new-{i}", DATA, "fresh")

        # The 6th entry triggered a sweep of the five expired ones
        assert len(cache) == 3

    def test_no_sweep_at_threshold(self, clock):
        cache = AnalysisCache(ttl_seconds=10, sweep_threshold=5, clock=clock)
        for i in range(4):
            cache.set("u1", f"old-{i}", DATA, "stale")
        clock.advance(10)
        cache.set("u1", "new", DATA, "fresh")

        assert len(cache) == 5

    def test_sweep_keeps_live_entries_past_threshold(self, clock):
        cache = AnalysisCache(ttl_seconds=100, sweep_threshold=3, clock=clock)
        for i in range(6):
            cache.set("u1", f"p{i}", DATA, "live")
        assert len(cache) == 6

    def test_clear(self, cache):
        cache.set("u1", "p", DATA, "answer")
        cache.clear()
        assert len(cache) == 0


# =============================================================================
# Fingerprint Tests
# =============================================================================

class TestFingerprint:
    """Tests for the payload fingerprint."""

    def test_deterministic(self):
        assert fingerprint(DATA) == fingerprint({
            "budgets": [{"category": "FOOD", "amount": 500}],
            "expenses": [{"category": "FOOD", "amount": 42.5}],
        })

    def test_order_sensitive(self):
        reordered = {"expenses": DATA["expenses"], "budgets": DATA["budgets"]}
        assert fingerprint(DATA) != fingerprint(reordered)

    def test_known_values(self):
        # "{}" -> 123*31 + 125
        assert fingerprint({}) == "31e"
        assert fingerprint([]) == "28y"

    def test_wraps_to_signed_32_bit(self):
        long_payload = {"text": "z" * 200}
        value = int(fingerprint(long_payload), 36)
        assert -(2 ** 31) <= value < 2 ** 31
