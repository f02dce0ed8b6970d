"""Usage and cost accounting for completion calls.

Rates are USD per 1K tokens. The provider cost is marked up by a fixed
percentage to produce the customer price; both are rounded so aggregated
reports don't accumulate floating-point noise.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from functools import lru_cache

from agentrag.core.config import DEFAULT_MODEL_PRICING, get_settings


@dataclass(frozen=True)
class UsageCost:
    """Token counts and money for a single completion call."""
    model: str
    pricing_model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    customer_price: float
    markup: float

    def as_dict(self) -> dict:
        return asdict(self)


class UsageAccountant:
    """Computes provider cost and customer price from a static price table."""

    def __init__(
        self,
        pricing: dict[str, tuple[float, float]] | None = None,
        markup: float = 0.30,
        default_model: str = "gpt-3.5-turbo",
        precision: int = 6,
    ) -> None:
        self.pricing = dict(pricing if pricing is not None else DEFAULT_MODEL_PRICING)
        if default_model not in self.pricing:
            raise ValueError(f"Default pricing model {default_model!r} missing from price table")
        self.markup = markup
        self.default_model = default_model
        self.precision = precision

    def get_pricing(self, model: str) -> tuple[str, tuple[float, float]]:
        """Return (model used for pricing, (prompt_per_1K, completion_per_1K))."""
        if model in self.pricing:
            return model, self.pricing[model]
        return self.default_model, self.pricing[self.default_model]

    def calculate_cost(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
    ) -> UsageCost:
        """Calculate cost and marked-up price for a model and token counts."""
        prompt_tokens = max(int(prompt_tokens or 0), 0)
        completion_tokens = max(int(completion_tokens or 0), 0)
        pricing_model, (prompt_rate, completion_rate) = self.get_pricing(model)

        cost = prompt_tokens / 1000 * prompt_rate + completion_tokens / 1000 * completion_rate
        customer_price = cost * (1 + self.markup)

        return UsageCost(
            model=model,
            pricing_model=pricing_model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost=round(cost, self.precision),
            customer_price=round(customer_price, self.precision),
            markup=self.markup,
        )


@lru_cache
def get_accountant() -> UsageAccountant:
    settings = get_settings()
    return UsageAccountant(
        pricing=settings.pricing_table,
        markup=settings.markup_percentage,
        default_model=settings.pricing_default_model,
        precision=settings.cost_precision,
    )


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> UsageCost:
    """Calculate usage cost with the configured price table and markup."""
    return get_accountant().calculate_cost(model, prompt_tokens, completion_tokens)
