"""Agent model — a chatbot persona bound to a prompt, model and knowledge."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import JSON, Text
from sqlmodel import Column, Field, SQLModel

from agentrag.core.config import get_settings
from agentrag.models.base import TimestampMixin, new_uuid
from agentrag.models.knowledge_source import KnowledgeSource, SourceType


class Personality(StrEnum):
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    TECHNICAL = "technical"
    CREATIVE = "creative"
    CONCISE = "concise"
    DETAILED = "detailed"


PERSONALITY_PROMPTS: dict[Personality, str] = {
    Personality.PROFESSIONAL: (
        "Maintain a professional tone. Be clear, respectful, and focused on "
        "providing valuable information."
    ),
    Personality.FRIENDLY: (
        "Be conversational, warm, and approachable. Use casual language and show empathy."
    ),
    Personality.TECHNICAL: (
        "Focus on technical accuracy and detail. Use precise terminology and "
        "provide in-depth explanations."
    ),
    Personality.CREATIVE: (
        "Be imaginative and think outside the box. Suggest innovative approaches and ideas."
    ),
    Personality.CONCISE: (
        "Be brief and to the point. Prioritize clarity and efficiency in your responses."
    ),
    Personality.DETAILED: (
        "Provide comprehensive explanations with examples and context. "
        "Be thorough in your responses."
    ),
}


class Agent(TimestampMixin, SQLModel, table=True):
    __tablename__ = "agents"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)

    name: str = Field(max_length=50, nullable=False)
    description: str = Field(default="", max_length=500)

    # Persona
    system_prompt: str = Field(sa_column=Column(Text, nullable=False))
    personality: Personality = Field(default=Personality.PROFESSIONAL)
    expertise: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False, server_default="[]")
    )

    # LLM configuration
    model: str = Field(default_factory=lambda: get_settings().default_llm_model, max_length=100)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1, le=128000)

    # Knowledge: serialized KnowledgeSource dicts + directly attached documents
    knowledge_sources: list[dict] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False, server_default="[]")
    )
    allowed_document_ids: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False, server_default="[]")
    )

    is_active: bool = Field(default=True)

    def complete_system_prompt(self) -> str:
        """System prompt with personality and expertise folded in."""
        personality = Personality(self.personality)
        prompt = f"{self.system_prompt}\n\n{PERSONALITY_PROMPTS[personality]}"
        if self.expertise:
            prompt += f"\n\nYou are an expert in: {', '.join(self.expertise)}."
        return prompt

    def get_knowledge_sources(self) -> list[KnowledgeSource]:
        """Knowledge sources plus one document source per allowed document."""
        sources = [KnowledgeSource.model_validate(s) for s in self.knowledge_sources]
        listed = {str(s.document_id) for s in sources if s.document_id is not None}
        for doc_id in self.allowed_document_ids:
            if doc_id not in listed:
                sources.append(
                    KnowledgeSource(source_type=SourceType.DOCUMENT, document_id=uuid.UUID(doc_id))
                )
        return sources


# ── Pydantic schemas ─────────────────────────────────────────

class AgentCreate(SQLModel):
    name: str = Field(max_length=50)
    description: str = Field(default="", max_length=500)
    system_prompt: str = Field(max_length=4000)
    personality: Personality = Personality.PROFESSIONAL
    expertise: list[str] = Field(default_factory=list)
    model: str = Field(default_factory=lambda: get_settings().default_llm_model, max_length=100)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1, le=128000)
    knowledge_sources: list[KnowledgeSource] = Field(default_factory=list)
    allowed_document_ids: list[uuid.UUID] = Field(default_factory=list)


class AgentRead(SQLModel):
    id: uuid.UUID
    name: str
    description: str
    system_prompt: str
    personality: Personality
    expertise: list[str]
    model: str
    temperature: float
    max_tokens: int
    knowledge_sources: list[KnowledgeSource]
    allowed_document_ids: list[uuid.UUID]
    is_active: bool
    created_at: datetime
    updated_at: datetime
