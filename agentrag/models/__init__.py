"""Import all models so SQLModel.metadata picks them up."""

from agentrag.models.agent import Agent, AgentCreate, AgentRead, Personality
from agentrag.models.chunk import Chunk, ChunkRead
from agentrag.models.document import Document, DocumentRead, DocumentStatus
from agentrag.models.knowledge_source import KnowledgeSource, SourceType
from agentrag.models.usage_record import UsageRecord, UsageRecordRead

__all__ = [
    "Agent",
    "AgentCreate",
    "AgentRead",
    "Chunk",
    "ChunkRead",
    "Document",
    "DocumentRead",
    "DocumentStatus",
    "KnowledgeSource",
    "Personality",
    "SourceType",
    "UsageRecord",
    "UsageRecordRead",
]
