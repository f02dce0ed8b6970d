"""Document ingestion — extract, clean and tag a stored file; chunk on request.

State machine per document::

    pending -> processing -> completed | failed

``completed`` and ``failed`` are terminal for a single request. The job
queue may deliver the same document more than once, so a completed
document is returned untouched and a failed one is simply processed again.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agentrag.core.config import get_settings
from agentrag.core.exceptions import (
    DocumentNotFoundError,
    DocumentNotReadyError,
    ExtractionError,
)
from agentrag.models.chunk import Chunk
from agentrag.models.document import Document, DocumentStatus
from agentrag.services.chunking import chunk_text
from agentrag.services.extract import (
    clean_extracted_text,
    extract_document_keywords,
    extract_text,
    normalize_mime_type,
)

logger = logging.getLogger(__name__)


def _as_uuid(document_id: uuid.UUID | str) -> uuid.UUID:
    return document_id if isinstance(document_id, uuid.UUID) else uuid.UUID(str(document_id))


async def get_document(session: AsyncSession, document_id: uuid.UUID | str) -> Document:
    try:
        doc_uuid = _as_uuid(document_id)
    except ValueError as exc:
        raise DocumentNotFoundError(document_id) from exc

    document = await session.get(Document, doc_uuid)
    if document is None:
        raise DocumentNotFoundError(document_id)
    return document


async def list_chunks(session: AsyncSession, document_id: uuid.UUID) -> list[Chunk]:
    stmt = (
        select(Chunk)
        .where(Chunk.document_id == document_id)
        .order_by(Chunk.chunk_index.asc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def read_stored_file(path: str) -> bytes:
    try:
        return await asyncio.to_thread(Path(path).read_bytes)
    except OSError as exc:
        raise ExtractionError(f"Error reading stored file {path}: {exc}") from exc


async def process_document(session: AsyncSession, document_id: uuid.UUID | str) -> Document:
    """Extract, clean and tag the text of a stored document.

    Args:
        session: Open database session.
        document_id: UUID of the Document to process.

    Returns:
        The completed Document.

    Raises:
        DocumentNotFoundError: If the document doesn't exist.
        UnsupportedFormatError: If no extractor handles its MIME type.
        ExtractionError: If reading or extracting the file fails.
    """
    document = await get_document(session, document_id)

    if document.status == DocumentStatus.COMPLETED:
        logger.info("Document %s already completed, nothing to do", document.id)
        return document

    doc_id = document.id

    # Mark as processing
    document.status = DocumentStatus.PROCESSING
    document.processing_error = None
    document.extracted_text = None
    document.touch()
    session.add(document)
    await session.commit()

    try:
        # 1. Extract raw text
        content = await read_stored_file(document.storage_path)
        raw_text = await asyncio.to_thread(
            extract_text,
            document.mime_type,
            content,
            document.language_hint or None,
        )

        # 2. Clean + tag
        is_ocr = normalize_mime_type(document.mime_type).startswith("image/")
        text = clean_extracted_text(raw_text, ocr=is_ocr)
        keywords = extract_document_keywords(text)

        # 3. Persist and mark completed
        document.extracted_text = text
        document.text_length = len(text)
        document.search_keywords = keywords
        document.status = DocumentStatus.COMPLETED
        document.processing_completed_at = document.touch()
        session.add(document)
        await session.commit()

    except Exception as exc:
        logger.exception("Error processing document %s", doc_id)
        await session.rollback()
        await _mark_failed(session, doc_id, exc)
        raise

    logger.info("Processed document %s: %d chars, %d keywords", doc_id, len(text), len(keywords))
    return document


async def _mark_failed(session: AsyncSession, document_id: uuid.UUID, exc: Exception) -> None:
    """Record the failure on a freshly loaded copy of the document."""
    try:
        document = await session.get(Document, document_id, populate_existing=True)
        if document is None:
            return
        document.status = DocumentStatus.FAILED
        document.processing_error = (str(exc) or exc.__class__.__name__)[:2000]
        document.extracted_text = None
        document.text_length = 0
        document.touch()
        session.add(document)
        await session.commit()
    except Exception:
        logger.exception("Failed to mark document %s as failed", document_id)


async def reset_document(session: AsyncSession, document_id: uuid.UUID | str) -> Document:
    """Put a document back to ``pending`` so it can be processed again.

    Its chunks and their embeddings go too: they describe text that no
    longer exists.
    """
    document = await get_document(session, document_id)
    await session.execute(delete(Chunk).where(Chunk.document_id == document.id))
    document.chunk_count = 0
    document.status = DocumentStatus.PENDING
    document.processing_error = None
    document.processing_completed_at = None
    document.extracted_text = None
    document.text_length = 0
    document.search_keywords = []
    document.touch()
    session.add(document)
    await session.commit()
    return document


async def chunk_document(
    session: AsyncSession,
    document_id: uuid.UUID | str,
    chunk_size: int | None = None,
    overlap: int | None = None,
) -> list[Chunk]:
    """Replace a completed document's chunks with a fresh chunking pass."""
    settings = get_settings()
    document = await get_document(session, document_id)
    if document.status != DocumentStatus.COMPLETED or not document.extracted_text:
        raise DocumentNotReadyError(f"Document {document.id} has no extracted text to chunk")

    pieces = chunk_text(
        document.extracted_text,
        chunk_size=chunk_size or settings.chunk_size,
        overlap=settings.chunk_overlap if overlap is None else overlap,
    )

    await session.execute(delete(Chunk).where(Chunk.document_id == document.id))
    chunks = [
        Chunk(
            document_id=document.id,
            chunk_index=piece.index,
            start_offset=piece.start,
            end_offset=piece.end,
            content=piece.content,
            source_label=document.display_name,
        )
        for piece in pieces
    ]
    session.add_all(chunks)

    document.chunk_count = len(chunks)
    document.touch()
    session.add(document)
    await session.commit()

    logger.info("Chunked document %s into %d chunks", document.id, len(chunks))
    return chunks
