"""Document worker tasks — process, chunk and embed uploaded documents."""

from __future__ import annotations

import logging

from arq import Retry

from agentrag.core.database import async_session_factory
from agentrag.core.exceptions import (
    DocumentNotFoundError,
    DocumentNotReadyError,
    UnsupportedFormatError,
)
from agentrag.services import ingestion
from agentrag.services.embedding import embed_document_chunks

logger = logging.getLogger(__name__)

MAX_TRIES = 3
RETRY_BASE_DELAY = 2.0  # seconds, doubled on each try


def retry_delay(job_try: int) -> float:
    """Exponential backoff: 2s, 4s, 8s, ..."""
    return RETRY_BASE_DELAY * 2 ** (max(job_try, 1) - 1)


async def process_document(ctx: dict, document_id: str) -> dict:
    """ARQ task: extract and clean a document's text.

    Transient failures are retried with exponential backoff; unsupported
    formats and missing documents are not.
    """
    job_try = ctx.get("job_try", 1)
    async with async_session_factory() as session:
        try:
            document = await ingestion.process_document(session, document_id)
        except DocumentNotFoundError:
            logger.error("Document %s not found", document_id)
            return {"error": "document_not_found"}
        except UnsupportedFormatError as exc:
            return {"error": str(exc)}
        except Exception as exc:
            if job_try < MAX_TRIES:
                delay = retry_delay(job_try)
                logger.warning(
                    "Processing document %s failed (try %d/%d), retrying in %.0fs",
                    document_id, job_try, MAX_TRIES, delay,
                )
                raise Retry(defer=delay) from exc
            return {"error": str(exc)}

    return {"status": document.status, "text_length": document.text_length}


async def chunk_document(ctx: dict, document_id: str, chunk_size: int | None = None, overlap: int | None = None) -> dict:
    """ARQ task: (re)build the chunks of a completed document."""
    async with async_session_factory() as session:
        try:
            chunks = await ingestion.chunk_document(session, document_id, chunk_size, overlap)
        except (DocumentNotFoundError, DocumentNotReadyError) as exc:
            logger.error("Cannot chunk document %s: %s", document_id, exc)
            return {"error": str(exc)}

    return {"chunk_count": len(chunks)}


async def embed_document(ctx: dict, document_id: str) -> dict:
    """ARQ task: embed every chunk that doesn't have a vector yet."""
    async with async_session_factory() as session:
        try:
            return await embed_document_chunks(session, document_id)
        except (DocumentNotFoundError, DocumentNotReadyError) as exc:
            logger.error("Cannot embed document %s: %s", document_id, exc)
            return {"error": str(exc)}
