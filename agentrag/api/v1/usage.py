"""Usage and pricing endpoints."""

import uuid

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import select

from agentrag.api.deps import Accountant, Session
from agentrag.models.usage_record import UsageRecord

router = APIRouter(prefix="/usage", tags=["usage"])

SUMMARY_PRECISION = 4


# ── Schemas ──────────────────────────────────────────────────

class ModelPricingEntry(BaseModel):
    prompt_cost_per_1k: float
    completion_cost_per_1k: float


class PricingResponse(BaseModel):
    models: dict[str, ModelPricingEntry]
    default_model: str
    markup: float


class UsageSummary(BaseModel):
    request_count: int
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    customer_price: float
    profit: float


# ── Routes ───────────────────────────────────────────────────

@router.get("/pricing", response_model=PricingResponse)
async def get_pricing_map(accountant: Accountant) -> PricingResponse:
    """Return the model pricing table so clients don't need a local copy."""
    return PricingResponse(
        models={
            model: ModelPricingEntry(prompt_cost_per_1k=rates[0], completion_cost_per_1k=rates[1])
            for model, rates in accountant.pricing.items()
        },
        default_model=accountant.default_model,
        markup=accountant.markup,
    )


@router.get("/summary", response_model=UsageSummary)
async def get_usage_summary(session: Session, agent_id: uuid.UUID | None = None) -> UsageSummary:
    """Token and money totals, optionally for a single agent."""
    stmt = select(
        func.count(),
        func.coalesce(func.sum(UsageRecord.prompt_tokens), 0),
        func.coalesce(func.sum(UsageRecord.completion_tokens), 0),
        func.coalesce(func.sum(UsageRecord.total_tokens), 0),
        func.coalesce(func.sum(UsageRecord.cost), 0.0),
        func.coalesce(func.sum(UsageRecord.customer_price), 0.0),
    ).select_from(UsageRecord)
    if agent_id is not None:
        stmt = stmt.where(UsageRecord.agent_id == agent_id)

    row = (await session.execute(stmt)).one()
    cost = round(float(row[4]), SUMMARY_PRECISION)
    customer_price = round(float(row[5]), SUMMARY_PRECISION)

    return UsageSummary(
        request_count=row[0],
        prompt_tokens=row[1],
        completion_tokens=row[2],
        total_tokens=row[3],
        cost=cost,
        customer_price=customer_price,
        profit=round(customer_price - cost, SUMMARY_PRECISION),
    )
