"""
Test Module: test_ai_service.py
Description: Unit tests for prompt templating and the OpenAI retry loop.

Author: MoneyWise Team
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from services.ai_service import (
    AIService, GenerationFailed, PROMPT_TEMPLATES,
    jaccard_similarity, select_template, prepare_prompt, budget_utilization
)


DATA = {
    "budgets": [
        {"category": "FOOD", "amount": 400},
        {"category": "HOUSING", "amount": 1200},
        {"category": "TRAVEL", "amount": 0},
    ],
    "expenses": [
        {"category": "FOOD", "amount": 100},
        {"category": "FOOD", "amount": 100},
        {"category": "HOUSING", "amount": 1200},
    ],
}


def completion(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(total_tokens=42),
    )


@pytest.fixture
def service(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    svc = AIService()
    svc.client = MagicMock()
    svc.client.chat.completions.create = AsyncMock()
    return svc


# =============================================================================
# Prompt Templating Tests
# =============================================================================

class TestPromptTemplating:
    """Tests for template selection and the data summary."""

    def test_jaccard_similarity(self):
        assert jaccard_similarity("a b", "a b") == 1.0
        assert jaccard_similarity("a b", "c") == 0.0
        assert jaccard_similarity("a b c", "a") == pytest.approx(1 / 3)

    def test_recommendation_prompt_selects_savings_template(self):
        template = select_template("Recommendations")
        assert template is PROMPT_TEMPLATES["savingsSuggestions"]

    def test_unrelated_prompt_falls_back_to_spending_habits(self):
        assert select_template("how much did I spend") is PROMPT_TEMPLATES["spendingHabits"]

    def test_analysis_tie_keeps_first_template(self):
        assert select_template("analysis") is PROMPT_TEMPLATES["spendingHabits"]

    def test_budget_utilization_handles_zero_budget(self):
        utilization = budget_utilization(DATA["budgets"], DATA["expenses"])
        assert utilization == {"FOOD": 50.0, "HOUSING": 100.0, "TRAVEL": 0.0}

    def test_prepare_prompt_includes_summary_and_user_prompt(self):
        prompt = prepare_prompt("Where can I cut back?", DATA)

        assert prompt.startswith(PROMPT_TEMPLATES["spendingHabits"]["template"])
        assert "Total Budget: $1600" in prompt
        assert "Total Expenses: $1400" in prompt
        assert "Budget Utilization: 87.5%" in prompt
        assert '"FOOD": 200.0' in prompt
        assert prompt.rstrip().endswith("Where can I cut back?")

    def test_prepare_prompt_with_no_data(self):
        prompt = prepare_prompt("anything", {"budgets": [], "expenses": []})
        assert "Budget Utilization: 0.0%" in prompt


# =============================================================================
# Completion Tests
# =============================================================================

class TestComplete:
    """Tests for retry and failure classification."""

    def test_returns_completion_text(self, service):
        service.client.chat.completions.create.return_value = completion("You spend a lot on food.")

        result = asyncio.run(service.complete("prompt"))

        assert result == "You spend a lot on food."
        assert service.get_usage_stats()["total_tokens"] == 42

    def test_retries_transient_failures_with_backoff(self, service):
        service.client.chat.completions.create.side_effect = [
            Exception("503 Service Unavailable"),
            Exception("timeout"),
            completion("ok"),
        ]

        with patch("services.ai_service.asyncio.sleep", new=AsyncMock()) as sleep:
            result = asyncio.run(service.complete("prompt"))

        assert result == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    def test_three_failures_raise_generation_failed(self, service):
        service.client.chat.completions.create.side_effect = Exception("502 Bad Gateway")

        with patch("services.ai_service.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(GenerationFailed):
                asyncio.run(service.complete("prompt"))

        assert service.client.chat.completions.create.await_count == 3

    def test_malformed_response_is_not_retried(self, service):
        service.client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None)

        with pytest.raises(GenerationFailed):
            asyncio.run(service.complete("prompt"))

        assert service.client.chat.completions.create.await_count == 1

    def test_empty_content_fails(self, service):
        service.client.chat.completions.create.return_value = completion("")

        with pytest.raises(GenerationFailed):
            asyncio.run(service.complete("prompt"))

    def test_unconfigured_client_fails(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        svc = AIService()

        assert svc.client is None
        with pytest.raises(GenerationFailed):
            asyncio.run(svc.generate_financial_analysis("prompt", DATA))
        assert asyncio.run(svc.check_connection()) is False
