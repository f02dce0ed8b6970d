"""UsageRecord model — token consumption and cost per completion call."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from agentrag.models.base import TimestampMixin, new_uuid


class UsageRecord(TimestampMixin, SQLModel, table=True):
    __tablename__ = "usage_records"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    agent_id: uuid.UUID | None = Field(default=None, foreign_key="agents.id", index=True)

    model: str = Field(max_length=100, nullable=False)
    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)

    # USD, rounded by the accountant before storage
    cost: float = Field(default=0.0)
    customer_price: float = Field(default=0.0)


# ── Pydantic schemas ─────────────────────────────────────────

class UsageRecordRead(SQLModel):
    id: uuid.UUID
    agent_id: uuid.UUID | None
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    customer_price: float
    created_at: datetime
