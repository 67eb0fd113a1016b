"""
OpenAI wrapper for budget and spending analysis.

Features:
    - Prompt templating with a financial data summary
    - Exponential backoff retry for transient failures
    - Token usage tracking

Author: MoneyWise Team
"""

import os
import json
import time
import asyncio
from dotenv import load_dotenv

from .observability import logger, log_openai_call

load_dotenv()


class GenerationFailed(Exception):
    """Raised when no analysis could be produced for a request."""


# =============================================================================
# Prompt Templates
# =============================================================================

PROMPT_TEMPLATES = {
    "spendingHabits": {
        "type": "analysis",
        "template": """Analyze the spending habits based on the provided expenses and budgets. Focus on:
1. Top spending categories
2. Budget adherence
3. Spending trends
4. Areas of concern
5. Potential savings opportunities""",
    },
    "budgetStatus": {
        "type": "analysis",
        "template": """Evaluate the current budget status:
1. Budget utilization by category
2. Over/under budget areas
3. Remaining budget analysis
4. Budget effectiveness
5. Recommendations for adjustments""",
    },
    "savingsSuggestions": {
        "type": "recommendations",
        "template": """Based on the spending patterns and budget allocation, suggest ways to save money:
1. Identify potential areas of overspending
2. Specific actionable recommendations
3. Category-specific saving strategies
4. Budget reallocation suggestions
5. Long-term saving opportunities""",
    },
}


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set Jaccard similarity of two strings."""
    set_a = set(a.split(" "))
    set_b = set(b.split(" "))
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def select_template(user_prompt: str) -> dict:
    """Pick the template whose type is closest to the prompt; earlier templates win ties."""
    prompt = user_prompt.lower()
    best = PROMPT_TEMPLATES["spendingHabits"]
    best_score = jaccard_similarity(prompt, best["type"].lower())
    for candidate in PROMPT_TEMPLATES.values():
        score = jaccard_similarity(prompt, candidate["type"].lower())
        if score > best_score:
            best, best_score = candidate, score
    return best


def group_expenses_by_category(expenses: list[dict]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for expense in expenses:
        category = expense.get("category", "Other")
        totals[category] = totals.get(category, 0.0) + float(expense.get("amount", 0))
    return totals


def budget_utilization(budgets: list[dict], expenses: list[dict]) -> dict[str, float]:
    """Percent of each budget consumed; a zero budget reports 0."""
    by_category = group_expenses_by_category(expenses)
    utilization = {}
    for budget in budgets:
        amount = float(budget.get("amount", 0))
        spent = by_category.get(budget.get("category"), 0.0)
        utilization[budget.get("category")] = (spent / amount * 100) if amount else 0.0
    return utilization


def prepare_prompt(user_prompt: str, data: dict) -> str:
    """Build the full completion prompt from a template, the data summary and the user's prompt."""
    template = select_template(user_prompt)
    budgets = data.get("budgets", []) or []
    expenses = data.get("expenses", []) or []

    total_expenses = sum(float(e.get("amount", 0)) for e in expenses)
    total_budget = sum(float(b.get("amount", 0)) for b in budgets)
    overall = (total_expenses / total_budget * 100) if total_budget else 0.0

    processed = {
        "totalExpenses": total_expenses,
        "totalBudget": total_budget,
        "expensesByCategory": group_expenses_by_category(expenses),
        "budgetUtilization": budget_utilization(budgets, expenses),
    }

    return f"""{template["template"]}

Financial Data Summary:
Total Budget: ${total_budget:g}
Total Expenses: ${total_expenses:g}
Budget Utilization: {overall:.1f}%

Detailed Data:
{json.dumps(processed, indent=2)}

{user_prompt}"""


# =============================================================================
# AI Service
# =============================================================================

class AIService:
    """
    Wrapper for the OpenAI chat-completions API.

    Transport failures are retried with exponential backoff; anything that
    still fails surfaces as GenerationFailed.
    """

    MAX_ATTEMPTS = 3
    INITIAL_DELAY = 1.0
    REQUEST_TIMEOUT = 30

    def __init__(self):
        raw_key = os.getenv("OPENAI_API_KEY", "")
        self.api_key = raw_key.strip() if raw_key else None
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.client = None

        self.total_tokens_used = 0
        self.request_count = 0

        if self.api_key:
            from openai import AsyncOpenAI
            self.client = AsyncOpenAI(api_key=self.api_key)
            logger.info("OpenAI client initialized", model=self.model)
        else:
            logger.warning("OpenAI API key not configured. AI analysis is unavailable.")

    def _track_usage(self, response) -> None:
        usage = getattr(response, "usage", None)
        if usage:
            self.total_tokens_used += usage.total_tokens
            self.request_count += 1

    def get_usage_stats(self) -> dict:
        return {
            "total_tokens": self.total_tokens_used,
            "request_count": self.request_count,
            "avg_tokens_per_request": (
                self.total_tokens_used / self.request_count
                if self.request_count > 0 else 0
            ),
        }

    async def _call_with_retry(self, prompt: str):
        """
        Call the completion endpoint, retrying on any transport error.

        Waits INITIAL_DELAY * 2**attempt between attempts and re-raises the
        last error once MAX_ATTEMPTS calls have failed.
        """
        last_exception = None

        for attempt in range(self.MAX_ATTEMPTS):
            try:
                start = time.perf_counter()
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    timeout=self.REQUEST_TIMEOUT,
                )
                self._track_usage(response)
                usage = getattr(response, "usage", None)
                log_openai_call(
                    getattr(usage, "total_tokens", 0) or 0,
                    (time.perf_counter() - start) * 1000,
                )
                return response
            except Exception as e:
                last_exception = e
                if attempt < self.MAX_ATTEMPTS - 1:
                    delay = self.INITIAL_DELAY * (2 ** attempt)
                    logger.warning(
                        "OpenAI call failed, retrying",
                        delay=f"{delay:.1f}s",
                        attempt=f"{attempt + 1}/{self.MAX_ATTEMPTS}",
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        raise last_exception

    async def complete(self, prompt: str) -> str:
        """Return the completion text for prompt."""
        if not self.client:
            raise GenerationFailed("AI service is not configured")

        try:
            response = await self._call_with_retry(prompt)
        except Exception as e:
            logger.error("OpenAI call failed after retries", error=str(e))
            raise GenerationFailed("Failed to generate financial analysis") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise GenerationFailed("Malformed completion response") from e
        if not content:
            raise GenerationFailed("Empty completion response")
        return content

    async def generate_financial_analysis(self, prompt: str, data: dict) -> str:
        """Analyze budgets and expenses according to the user's prompt."""
        return await self.complete(prepare_prompt(prompt, data))

    async def check_connection(self) -> bool:
        """Check if OpenAI API is accessible."""
        if not self.client:
            return False
        try:
            await self.client.models.list()
            return True
        except Exception:
            return False
