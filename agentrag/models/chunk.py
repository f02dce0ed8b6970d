"""Chunk model — a window of a document's extracted text, optionally embedded."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Text
from sqlmodel import Column, Field, SQLModel

from agentrag.models.base import TimestampMixin, new_uuid


class Chunk(TimestampMixin, SQLModel, table=True):
    __tablename__ = "chunks"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    document_id: uuid.UUID = Field(foreign_key="documents.id", nullable=False, index=True)

    # Position within the document
    chunk_index: int = Field(nullable=False)
    start_offset: int = Field(nullable=False)
    end_offset: int = Field(nullable=False)

    content: str = Field(sa_column=Column(Text, nullable=False))

    # Computed from exactly this chunk's content; NULL until embedded
    embedding: list[float] | None = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Document name used for citations
    source_label: str = Field(default="", max_length=500)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


# ── Pydantic schemas ─────────────────────────────────────────

class ChunkRead(SQLModel):
    id: uuid.UUID
    document_id: uuid.UUID
    chunk_index: int
    start_offset: int
    end_offset: int
    content: str
    source_label: str
    has_embedding: bool
    created_at: datetime
