"""Document upload, processing, chunking, embedding and search."""

import asyncio
import uuid
from pathlib import Path

from arq.connections import ArqRedis, create_pool
from fastapi import APIRouter, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field
from sqlmodel import select

from agentrag.api.deps import Engine, Session
from agentrag.core.config import get_settings
from agentrag.core.exceptions import (
    DocumentNotFoundError,
    DocumentNotReadyError,
    ExtractionError,
    UnsupportedFormatError,
)
from agentrag.models.chunk import ChunkRead
from agentrag.models.document import Document, DocumentRead
from agentrag.services import ingestion
from agentrag.services.embedding import embed_document_chunks
from agentrag.services.extract import OCR_LANGUAGES, guess_mime_type, is_supported_mime_type
from agentrag.workers.main import redis_settings_from_env

router = APIRouter(prefix="/documents", tags=["documents"])


class ChunkRequest(BaseModel):
    chunk_size: int | None = Field(default=None, gt=0)
    overlap: int | None = Field(default=None, ge=0)


class EmbedResponse(BaseModel):
    embedded: int
    skipped: int
    failed: int


class SearchRequest(BaseModel):
    query: str
    document_ids: list[uuid.UUID] = Field(min_length=1)


class SearchResponse(BaseModel):
    context: str


async def _enqueue_job(job_name: str, document_id: uuid.UUID) -> None:
    """Enqueue an ARQ job for a document."""
    redis: ArqRedis = await create_pool(redis_settings_from_env())
    try:
        await redis.enqueue_job(job_name, document_id=str(document_id))
    finally:
        await redis.aclose()


async def _get_or_404(document_id: uuid.UUID, session) -> Document:
    try:
        return await ingestion.get_document(session, document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found") from exc


# ── Endpoints ─────────────────────────────────────────────────


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile,
    session: Session,
    language: str | None = Form(None),
) -> DocumentRead:
    """Store an uploaded file as a pending document and queue its processing."""
    settings = get_settings()
    original_name = file.filename or "upload"
    language = language or settings.ocr_default_language
    mime_type = guess_mime_type(original_name, file.content_type)

    if not is_supported_mime_type(mime_type):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Unsupported file type: {mime_type}",
        )
    if language not in OCR_LANGUAGES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Unsupported language: {language}. Allowed: {', '.join(sorted(OCR_LANGUAGES))}",
        )

    content = await file.read()
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"File too large. Maximum size is {settings.max_upload_size // (1024 * 1024)} MB.",
        )

    upload_dir = Path(settings.upload_dir)
    file_name = f"{uuid.uuid4().hex}{Path(original_name).suffix.lower()}"
    storage_path = upload_dir / file_name
    await asyncio.to_thread(upload_dir.mkdir, parents=True, exist_ok=True)
    await asyncio.to_thread(storage_path.write_bytes, content)

    doc = Document(
        file_name=file_name,
        original_name=original_name,
        mime_type=mime_type,
        size_bytes=len(content),
        storage_path=str(storage_path),
        language_hint=language,
    )
    session.add(doc)
    await session.commit()
    await session.refresh(doc)

    await _enqueue_job("process_document", doc.id)
    return DocumentRead.model_validate(doc)


@router.get("", response_model=list[DocumentRead])
async def list_documents(session: Session) -> list[DocumentRead]:
    stmt = select(Document).order_by(Document.created_at.desc())  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return [DocumentRead.model_validate(doc) for doc in result.scalars().all()]


@router.get("/{document_id}", response_model=DocumentRead)
async def get_document(document_id: uuid.UUID, session: Session) -> DocumentRead:
    doc = await _get_or_404(document_id, session)
    return DocumentRead.model_validate(doc)


@router.post("/{document_id}/process", response_model=DocumentRead)
async def process_document(
    document_id: uuid.UUID,
    session: Session,
    reset: bool = False,
) -> DocumentRead:
    """Process a document inline. ``reset`` forces reprocessing of a completed one."""
    await _get_or_404(document_id, session)
    if reset:
        await ingestion.reset_document(session, document_id)

    try:
        doc = await ingestion.process_document(session, document_id)
    except (UnsupportedFormatError, ExtractionError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(exc),
        ) from exc
    return DocumentRead.model_validate(doc)


@router.post("/{document_id}/chunk", response_model=list[ChunkRead])
async def chunk_document(
    document_id: uuid.UUID,
    session: Session,
    body: ChunkRequest | None = None,
) -> list[ChunkRead]:
    await _get_or_404(document_id, session)
    body = body or ChunkRequest()
    try:
        chunks = await ingestion.chunk_document(session, document_id, body.chunk_size, body.overlap)
    except DocumentNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(exc),
        ) from exc
    return [ChunkRead.model_validate(c) for c in chunks]


@router.post("/{document_id}/embed", response_model=EmbedResponse)
async def embed_document(document_id: uuid.UUID, session: Session) -> EmbedResponse:
    await _get_or_404(document_id, session)
    try:
        counts = await embed_document_chunks(session, document_id)
    except DocumentNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return EmbedResponse(**counts)


@router.post("/search", response_model=SearchResponse)
async def search_documents(body: SearchRequest, engine: Engine) -> SearchResponse:
    """Preview the context the retrieval engine would hand to an agent."""
    context = await engine.retrieve(body.query, body.document_ids)
    return SearchResponse(context=context)
