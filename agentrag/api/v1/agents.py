"""Agent CRUD and context preview."""

import uuid

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlmodel import select

from agentrag.api.deps import Engine, Session
from agentrag.models.agent import Agent, AgentCreate, AgentRead
from agentrag.services.knowledge_sources import get_relevant_context

router = APIRouter(prefix="/agents", tags=["agents"])


class ContextRequest(BaseModel):
    query: str


class ContextResponse(BaseModel):
    context: str


def _to_read(agent: Agent) -> AgentRead:
    return AgentRead(
        id=agent.id,
        name=agent.name,
        description=agent.description,
        system_prompt=agent.system_prompt,
        personality=agent.personality,
        expertise=agent.expertise,
        model=agent.model,
        temperature=agent.temperature,
        max_tokens=agent.max_tokens,
        knowledge_sources=agent.knowledge_sources,
        allowed_document_ids=agent.allowed_document_ids,
        is_active=agent.is_active,
        created_at=agent.created_at,
        updated_at=agent.updated_at,
    )


async def get_agent_or_404(agent_id: uuid.UUID, session) -> Agent:
    agent = await session.get(Agent, agent_id)
    if agent is None or not agent.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")
    return agent


@router.post("", response_model=AgentRead, status_code=status.HTTP_201_CREATED)
async def create_agent(body: AgentCreate, session: Session) -> AgentRead:
    agent = Agent(
        name=body.name,
        description=body.description,
        system_prompt=body.system_prompt,
        personality=body.personality,
        expertise=body.expertise,
        model=body.model,
        temperature=body.temperature,
        max_tokens=body.max_tokens,
        knowledge_sources=[s.model_dump(mode="json") for s in body.knowledge_sources],
        allowed_document_ids=[str(d) for d in body.allowed_document_ids],
    )
    session.add(agent)
    await session.commit()
    await session.refresh(agent)
    return _to_read(agent)


@router.get("", response_model=list[AgentRead])
async def list_agents(session: Session) -> list[AgentRead]:
    stmt = (
        select(Agent)
        .where(Agent.is_active == True)  # noqa: E712
        .order_by(Agent.created_at.desc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return [_to_read(a) for a in result.scalars().all()]


@router.get("/{agent_id}", response_model=AgentRead)
async def get_agent(agent_id: uuid.UUID, session: Session) -> AgentRead:
    agent = await get_agent_or_404(agent_id, session)
    return _to_read(agent)


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(agent_id: uuid.UUID, session: Session) -> None:
    agent = await get_agent_or_404(agent_id, session)
    agent.is_active = False
    agent.touch()
    session.add(agent)
    await session.commit()


@router.post("/{agent_id}/context", response_model=ContextResponse)
async def preview_context(
    agent_id: uuid.UUID,
    body: ContextRequest,
    session: Session,
    engine: Engine,
) -> ContextResponse:
    """Show the context the agent would answer ``query`` from."""
    agent = await get_agent_or_404(agent_id, session)
    context = await get_relevant_context(session, body.query, agent.get_knowledge_sources(), engine)
    return ContextResponse(context=context)
