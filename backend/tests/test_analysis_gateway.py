"""
Test Module: test_analysis_gateway.py
Description: Tests for the rate-limited, cached analysis flow.

Author: MoneyWise Team
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.analysis_cache import AnalysisCache
from services.analysis_gateway import AnalysisGateway
from services.ai_service import GenerationFailed
from services.observability import metrics
from services.rate_limiter import RateLimiter, RateLimited


DATA = {"budgets": [{"category": "FOOD", "amount": 300}], "expenses": []}


@pytest.fixture
def ai_service():
    service = MagicMock()
    service.generate_financial_analysis = AsyncMock(return_value="Spend less on takeout.")
    return service


@pytest.fixture
def gateway(clock, ai_service):
    return AnalysisGateway(
        rate_limiter=RateLimiter(max_requests=3, window_seconds=60, clock=clock),
        cache=AnalysisCache(ttl_seconds=3600, clock=clock),
        ai_service=ai_service,
    )


class TestAcquireAndAnalyze:
    """Tests for gate orchestration order and failure handling."""

    def test_miss_calls_model_and_caches(self, gateway, ai_service):
        result = asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))

        assert result.analysis == "Spend less on takeout."
        assert result.cached is False
        ai_service.generate_financial_analysis.assert_awaited_once_with("prompt", DATA)
        assert gateway.cache.get("u1", "prompt", DATA) == "Spend less on takeout."

    def test_store_records_cache_size_gauge(self, gateway):
        asyncio.run(gateway.acquire_and_analyze("u1", "first", DATA))
        asyncio.run(gateway.acquire_and_analyze("u1", "second", DATA))

        assert metrics.gauges["analysis.cache_entries"] == 2

    def test_hit_skips_model(self, gateway, ai_service):
        asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))
        result = asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))

        assert result.cached is True
        assert ai_service.generate_financial_analysis.await_count == 1

    def test_cache_hits_still_consume_quota(self, gateway):
        for _ in range(3):
            asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))

        with pytest.raises(RateLimited) as exc:
            asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))
        assert exc.value.retry_after == pytest.approx(60)

    def test_rate_limited_request_never_reaches_cache_or_model(self, gateway, ai_service):
        gateway.cache.get = MagicMock(wraps=gateway.cache.get)
        for i in range(3):
            asyncio.run(gateway.acquire_and_analyze("u1", f"p{i}", DATA))
        gateway.cache.get.reset_mock()

        with pytest.raises(RateLimited):
            asyncio.run(gateway.acquire_and_analyze("u1", "new prompt", DATA))

        gateway.cache.get.assert_not_called()
        assert ai_service.generate_financial_analysis.await_count == 3

    def test_generation_failure_is_not_cached(self, gateway, ai_service):
        ai_service.generate_financial_analysis.side_effect = GenerationFailed("upstream down")

        with pytest.raises(GenerationFailed):
            asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))

        assert len(gateway.cache) == 0

    def test_quota_resets_after_window(self, gateway, clock):
        for _ in range(3):
            asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))
        clock.advance(60)

        result = asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))
        assert result.cached is True

    def test_close_drops_state(self, gateway):
        asyncio.run(gateway.acquire_and_analyze("u1", "prompt", DATA))
        gateway.close()

        assert len(gateway.cache) == 0
        assert gateway.rate_limiter.remaining("u1") == 3
