"""Chat orchestrator — retrieval-augmented generation for one conversation turn.

Flow:
  1. Gather context from the agent's knowledge sources and attached documents,
     and detect the reply language unless the caller gave one
  2. Assemble messages: system prompt + context + trimmed history + user turn
  3. Call the LLM via LiteLLM
  4. Price the usage
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from litellm import acompletion
from sqlalchemy.ext.asyncio import AsyncSession

from agentrag.core.config import get_settings
from agentrag.core.exceptions import CompletionError
from agentrag.core.pricing import UsageAccountant, UsageCost, get_accountant
from agentrag.models.agent import Agent
from agentrag.services.knowledge_sources import get_relevant_context
from agentrag.services.language import detect_language
from agentrag.services.prompting import build_messages
from agentrag.services.retrieval import RetrievalEngine

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "I couldn't access my knowledge base. Please try again with your question."
FALLBACK_MODEL = "fallback"


@dataclass
class ChatResponse:
    """The result of an orchestrated chat turn."""
    content: str
    model: str
    context: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    usage: UsageCost | None = None
    error: str | None = None
    messages: list[dict] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.model == FALLBACK_MODEL


async def gather_agent_context(
    session: AsyncSession,
    agent: Agent,
    user_message: str,
    engine: RetrievalEngine,
) -> str:
    """Context for ``user_message`` from everything the agent may read.

    Any failure here degrades to "no context" rather than failing the turn.
    """
    try:
        sources = agent.get_knowledge_sources()
        return await get_relevant_context(session, user_message, sources, engine)
    except Exception:
        logger.exception("Context gathering failed for agent %s", agent.id)
        return ""


async def complete(messages: list[dict], model: str, temperature: float, max_tokens: int) -> tuple[str, int, int]:
    """One non-streaming completion call.

    Returns:
        (content, prompt_tokens, completion_tokens)

    Raises:
        CompletionError: If the provider call fails, times out or returns
            a malformed response.
    """
    try:
        response = await acompletion(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=get_settings().llm_timeout_seconds,
        )
        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
    except Exception as exc:
        raise CompletionError(f"Completion request failed: {exc}") from exc

    return content, prompt_tokens or 0, completion_tokens or 0


async def run_chat_turn(
    session: AsyncSession,
    agent: Agent,
    user_message: str,
    history: list[dict] | None,
    engine: RetrievalEngine,
    accountant: UsageAccountant | None = None,
    language: str | None = None,
) -> ChatResponse:
    """Execute one chat turn through the RAG pipeline.

    Args:
        session: Open database session.
        agent: The agent answering (persona, model parameters, knowledge).
        user_message: The user's latest message.
        history: Previous messages as [{role, content}, ...].
        engine: Retrieval engine used for document sources.
        accountant: Pricing for the usage; defaults to the configured one.
        language: Response language. Detected from the message when None.

    Returns:
        ChatResponse with the assistant's reply and usage. A failed
        completion yields the fallback reply instead of raising.
    """
    accountant = accountant or get_accountant()

    # 1. Context
    context = await gather_agent_context(session, agent, user_message, engine)

    if language is None:
        language = await detect_language(user_message, cache=engine.cache)

    # 2. Messages
    messages = build_messages(
        system_prompt=agent.complete_system_prompt(),
        context=context,
        history=history or [],
        user_message=user_message,
        language=language,
    )

    # 3. LLM call
    try:
        content, prompt_tokens, completion_tokens = await complete(
            messages, agent.model, agent.temperature, agent.max_tokens
        )
    except CompletionError as exc:
        logger.exception("Completion failed for agent %s", agent.id)
        return ChatResponse(
            content=FALLBACK_MESSAGE,
            model=FALLBACK_MODEL,
            context=context,
            error=str(exc),
            messages=messages,
        )

    # 4. Usage
    usage = accountant.calculate_cost(agent.model, prompt_tokens, completion_tokens)
    logger.info(
        "Chat turn for agent %s: %d prompt + %d completion tokens, cost %s",
        agent.id, prompt_tokens, completion_tokens, usage.cost,
    )

    return ChatResponse(
        content=content,
        model=agent.model,
        context=context,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
        usage=usage,
        messages=messages,
    )
