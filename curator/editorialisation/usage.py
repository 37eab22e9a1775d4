"""AI token budget and cost accounting.

Usage is not counted separately: it is the token sum over completed
editorialisations, scoped to a tenant when one is given.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from curator.editorialisation.config import EditorialisationConfig
from curator.editorialisation.repository import EditorialisationRepository
from curator.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# Cents per 1M tokens
MODEL_COSTS: dict[str, dict[str, float]] = {
    "gpt-4o-mini": {"input": 15, "output": 60},
    "gpt-4o": {"input": 250, "output": 1000},
    "gpt-4-turbo": {"input": 1000, "output": 3000},
    "default": {"input": 15, "output": 60},
}

# Input/output split assumed when a provider reports only a total
_INPUT_SHARE = 0.7


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def estimate_cost_cents(tokens_in: int, tokens_out: int, model: str) -> float:
    costs = MODEL_COSTS.get(model)
    if costs is None:
        # Dated snapshots ("gpt-4o-mini-2024-07-18") price like their base model
        costs = next(
            (c for name, c in MODEL_COSTS.items() if model.startswith(name) and name != "default"),
            MODEL_COSTS["default"],
        )
    cost = tokens_in / 1_000_000 * costs["input"] + tokens_out / 1_000_000 * costs["output"]
    return round(cost, 4)


def split_tokens(tokens_in: int | None, tokens_out: int | None, total: int | None) -> tuple[int, int]:
    """Input/output tokens, estimated from the total when not reported."""
    if tokens_in or tokens_out:
        return tokens_in or 0, tokens_out or 0
    total = total or 0
    estimated_in = round(total * _INPUT_SHARE)
    return estimated_in, total - estimated_in


class AIUsageTracker:
    """Monthly token limit with a soft daily limit, per tenant."""

    def __init__(
        self,
        repository: EditorialisationRepository,
        config: EditorialisationConfig | None = None,
    ) -> None:
        self._repo = repository
        self._config = config or EditorialisationConfig()

    @staticmethod
    def _month_start(now: datetime) -> datetime:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    @staticmethod
    def _day_start(now: datetime) -> datetime:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)

    async def monthly_used(self, tenant_id: int | None = None, now: datetime | None = None) -> int:
        usage = await self._repo.usage_since(self._month_start(now or _utc_now()), tenant_id)
        return usage["tokens"]

    async def daily_used(self, tenant_id: int | None = None, now: datetime | None = None) -> int:
        usage = await self._repo.usage_since(self._day_start(now or _utc_now()), tenant_id)
        return usage["tokens"]

    async def can_make_request(self, tenant_id: int | None = None, now: datetime | None = None) -> bool:
        """False once the monthly or daily budget is spent."""
        monthly = await self.monthly_used(tenant_id, now)
        if monthly >= self._config.monthly_token_limit:
            logger.warning(
                "AI monthly token limit reached for tenant %s (%d/%d)",
                tenant_id, monthly, self._config.monthly_token_limit,
            )
            return False
        daily = await self.daily_used(tenant_id, now)
        if daily >= self._config.effective_daily_limit:
            logger.warning(
                "AI daily token limit reached for tenant %s (%d/%d)",
                tenant_id, daily, self._config.effective_daily_limit,
            )
            return False
        return True

    async def track(
        self,
        editorialisation_id: int,
        tokens_in: int | None,
        tokens_out: int | None,
        model: str,
        tokens_used: int | None = None,
    ) -> dict[str, Any]:
        """Record the cost of one completion on its editorialisation."""
        tokens_in, tokens_out = split_tokens(tokens_in, tokens_out, tokens_used)
        cost = estimate_cost_cents(tokens_in, tokens_out, model)
        await self._repo.set_cost(editorialisation_id, cost)
        get_metrics().record_ai_tokens(model, tokens_in, tokens_out)
        logger.info(
            "AI usage: in=%d out=%d model=%s cost=%.4f cents (editorialisation %s)",
            tokens_in, tokens_out, model, cost, editorialisation_id,
        )
        return {"tokens_in": tokens_in, "tokens_out": tokens_out, "cost_cents": cost}

    async def usage_stats(self, tenant_id: int | None = None, now: datetime | None = None) -> dict[str, Any]:
        now = now or _utc_now()
        monthly = await self._repo.usage_since(self._month_start(now), tenant_id)
        daily = await self._repo.usage_since(self._day_start(now), tenant_id)
        monthly_limit = self._config.monthly_token_limit
        daily_limit = self._config.effective_daily_limit
        return {
            "monthly": {
                "used": monthly["tokens"],
                "limit": monthly_limit,
                "remaining": max(0, monthly_limit - monthly["tokens"]),
                "percent_used": round(monthly["tokens"] / monthly_limit * 100, 1),
                "requests": monthly["requests"],
                "cost_cents": monthly["cost_cents"],
            },
            "daily": {
                "used": daily["tokens"],
                "soft_limit": daily_limit,
                "remaining": max(0, daily_limit - daily["tokens"]),
                "cost_cents": daily["cost_cents"],
            },
        }
