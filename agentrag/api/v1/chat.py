"""Chat endpoint — one retrieval-augmented turn with an agent."""

import logging
import uuid
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field

from agentrag.api.deps import Accountant, Engine, Session
from agentrag.api.v1.agents import get_agent_or_404
from agentrag.models.usage_record import UsageRecord
from agentrag.services.orchestrator import run_chat_turn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["chat"])


class HistoryMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=10000)
    history: list[HistoryMessage] = Field(default_factory=list)
    language: str | None = None


class ChatMessageResponse(BaseModel):
    content: str
    model: str
    context_used: bool
    usage: dict = Field(default_factory=dict)
    error: str | None = None


@router.post("/{agent_id}/chat", response_model=ChatMessageResponse)
async def chat(
    agent_id: uuid.UUID,
    body: ChatRequest,
    session: Session,
    engine: Engine,
    accountant: Accountant,
) -> ChatMessageResponse:
    """Send a message and get a knowledge-grounded reply.

    Every successful turn is recorded as a UsageRecord. A failed
    completion returns the fallback reply and records nothing.
    """
    agent = await get_agent_or_404(agent_id, session)

    result = await run_chat_turn(
        session=session,
        agent=agent,
        user_message=body.message,
        history=[m.model_dump() for m in body.history],
        engine=engine,
        accountant=accountant,
        language=body.language,
    )

    usage: dict = {}
    if result.usage is not None:
        usage = result.usage.as_dict()
        session.add(
            UsageRecord(
                agent_id=agent.id,
                model=result.usage.model,
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
                cost=result.usage.cost,
                customer_price=result.usage.customer_price,
            )
        )
        await session.commit()

    return ChatMessageResponse(
        content=result.content,
        model=result.model,
        context_used=bool(result.context),
        usage=usage,
        error=result.error,
    )
