"""Document model — an uploaded file and the text extracted from it."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import JSON, Text
from sqlmodel import Column, Field, SQLModel

from agentrag.core.config import get_settings
from agentrag.models.base import TimestampMixin, new_uuid


class DocumentStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Document(TimestampMixin, SQLModel, table=True):
    __tablename__ = "documents"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)

    file_name: str = Field(max_length=500, nullable=False)
    original_name: str = Field(default="", max_length=500)
    mime_type: str = Field(max_length=255, nullable=False)
    size_bytes: int = Field(default=0)
    storage_path: str = Field(max_length=1000, nullable=False)

    # NULL until processing completes
    extracted_text: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: DocumentStatus = Field(default=DocumentStatus.PENDING, index=True)
    processing_error: str | None = Field(default=None, max_length=2000)
    processing_completed_at: datetime | None = Field(default=None)

    text_length: int = Field(default=0)
    language_hint: str = Field(
        default_factory=lambda: get_settings().ocr_default_language, max_length=20
    )
    search_keywords: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False, server_default="[]")
    )
    chunk_count: int = Field(default=0)

    @property
    def display_name(self) -> str:
        return self.original_name or self.file_name or "Document"


# ── Pydantic schemas ─────────────────────────────────────────

class DocumentRead(SQLModel):
    id: uuid.UUID
    file_name: str
    original_name: str
    mime_type: str
    size_bytes: int
    status: DocumentStatus
    processing_error: str | None
    processing_completed_at: datetime | None
    text_length: int
    language_hint: str
    search_keywords: list[str]
    chunk_count: int
    created_at: datetime
    updated_at: datetime
