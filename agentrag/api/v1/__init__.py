"""V1 API router aggregation."""

from fastapi import APIRouter

from agentrag.api.v1.agents import router as agents_router
from agentrag.api.v1.chat import router as chat_router
from agentrag.api.v1.documents import router as documents_router
from agentrag.api.v1.usage import router as usage_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(documents_router)
v1_router.include_router(agents_router)
v1_router.include_router(chat_router)
v1_router.include_router(usage_router)
