"""
Rate-limited, cached entry point for AI analysis requests.

Order of checks for every request: quota, cache, upstream generation,
cache store. Only successful generations are cached.

Author: MoneyWise Team
"""

from dataclasses import dataclass
from typing import Any

from .ai_service import AIService, GenerationFailed
from .analysis_cache import AnalysisCache
from .rate_limiter import RateLimiter, RateLimited
from .observability import metrics, log_analysis_request, log_rate_limited, timed


@dataclass
class AnalysisResult:
    analysis: str
    cached: bool


class AnalysisGateway:
    """Owns the limiter and cache for the lifetime of the application."""

    def __init__(self, rate_limiter: RateLimiter, cache: AnalysisCache, ai_service: AIService):
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.ai_service = ai_service

    @timed("analysis.request")
    async def acquire_and_analyze(self, user_id: str, prompt: str, data: Any) -> AnalysisResult:
        """
        Serve one analysis request for an authenticated user.

        Raises:
            RateLimited: The user's quota for the current window is spent.
            GenerationFailed: The upstream model produced no usable answer.
        """
        if not self.rate_limiter.try_acquire(user_id):
            retry_after = self.rate_limiter.retry_after(user_id)
            log_rate_limited(user_id, retry_after)
            raise RateLimited(retry_after)

        cached = self.cache.get(user_id, prompt, data)
        if cached is not None:
            log_analysis_request(user_id, len(prompt), cached=True)
            return AnalysisResult(analysis=cached, cached=True)

        analysis = await self.ai_service.generate_financial_analysis(prompt, data)

        self.cache.set(user_id, prompt, data, analysis)
        metrics.gauge("analysis.cache_entries", len(self.cache))
        log_analysis_request(user_id, len(prompt), cached=False)
        return AnalysisResult(analysis=analysis, cached=False)

    def close(self) -> None:
        """Drop all in-memory limiter and cache state."""
        self.rate_limiter.reset()
        self.cache.clear()


__all__ = ["AnalysisGateway", "AnalysisResult", "RateLimited", "GenerationFailed"]
