"""Embedding service — wraps LiteLLM for provider-agnostic vector generation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable

from litellm import aembedding
from sqlalchemy.ext.asyncio import AsyncSession

from agentrag.core.config import get_settings
from agentrag.core.exceptions import DocumentNotReadyError, EmbeddingError
from agentrag.services.ingestion import get_document, list_chunks

logger = logging.getLogger(__name__)

Embedder = Callable[[str], Awaitable[list[float]]]


async def embed_text(
    text: str,
    model: str | None = None,
    api_key: str | None = None,
) -> list[float]:
    """Generate one embedding vector via LiteLLM.

    Args:
        text: Text to embed.
        model: Embedding model name (LiteLLM format). Defaults to the configured model.
        api_key: Optional provider API key. If None, uses env vars (OPENAI_API_KEY, etc.).

    Raises:
        EmbeddingError: If the provider call fails or times out.
    """
    settings = get_settings()
    kwargs: dict = {
        "model": model or settings.default_embedding_model,
        "input": [text],
        "timeout": settings.http_timeout_seconds,
    }
    if api_key:
        kwargs["api_key"] = api_key

    try:
        response = await aembedding(**kwargs)
        return list(response.data[0]["embedding"])
    except Exception as exc:
        raise EmbeddingError(f"Embedding request failed: {exc}") from exc


async def embed_document_chunks(
    session: AsyncSession,
    document_id: uuid.UUID | str,
    embed: Embedder = embed_text,
    delay: float | None = None,
) -> dict:
    """Fill in embeddings for every chunk of a document that lacks one.

    Chunks that already carry an embedding are skipped, so re-running after
    a partial failure only fills the gaps. A failing chunk is left without
    an embedding and the batch carries on.

    Returns:
        dict with embedded, skipped and failed counts.
    """
    settings = get_settings()
    delay = settings.embedding_delay_seconds if delay is None else delay

    document = await get_document(session, document_id)
    chunks = await list_chunks(session, document.id)
    if not chunks:
        raise DocumentNotReadyError(f"Document {document.id} has no chunks to embed")

    pending = [c for c in chunks if not c.has_embedding]
    dimensions = next((len(c.embedding) for c in chunks if c.has_embedding), None)
    embedded = failed = 0

    for position, chunk in enumerate(pending):
        try:
            vector = await embed(chunk.content)
            if dimensions is not None and len(vector) != dimensions:
                raise EmbeddingError(
                    f"Got {len(vector)}-dim vector, document uses {dimensions} dims"
                )
            chunk.embedding = vector
            dimensions = len(vector)
            session.add(chunk)
            embedded += 1
        except Exception:
            logger.warning(
                "Embedding failed for chunk %d of document %s",
                chunk.chunk_index,
                document.id,
                exc_info=True,
            )
            failed += 1

        # Stay under provider rate limits
        if delay > 0 and position < len(pending) - 1:
            await asyncio.sleep(delay)

    await session.commit()

    skipped = len(chunks) - len(pending)
    logger.info(
        "Embedded document %s: %d embedded, %d skipped, %d failed",
        document.id, embedded, skipped, failed,
    )
    return {"embedded": embedded, "skipped": skipped, "failed": failed}
