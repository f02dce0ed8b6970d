"""FastAPI dependencies shared by the v1 routes."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agentrag.core.database import get_session
from agentrag.core.pricing import UsageAccountant, get_accountant
from agentrag.services.retrieval import RetrievalEngine, build_retrieval_engine


async def get_retrieval_engine(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RetrievalEngine:
    return build_retrieval_engine(session)


# Typed shorthand for use in route signatures
Session = Annotated[AsyncSession, Depends(get_session)]
Engine = Annotated[RetrievalEngine, Depends(get_retrieval_engine)]
Accountant = Annotated[UsageAccountant, Depends(get_accountant)]
