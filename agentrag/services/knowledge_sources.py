"""Knowledge source resolution and multi-source context gathering."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from agentrag.core.config import get_settings
from agentrag.core.exceptions import UnknownSourceTypeError, WebsiteFetchError
from agentrag.models.knowledge_source import KnowledgeSource, SourceType
from agentrag.services.html_extract import html_to_text
from agentrag.services.ingestion import get_document
from agentrag.services.retrieval import (
    MIN_SECTION_LENGTH,
    RetrievalEngine,
    extract_query_keywords,
    split_sections,
)

logger = logging.getLogger(__name__)

MAX_WEBSITE_SECTIONS = 3
USER_AGENT = "agentrag/1.0"


async def resolve_source(
    session: AsyncSession,
    source: KnowledgeSource,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Return the raw text behind a knowledge source.

    Raises:
        DocumentNotFoundError: The referenced document doesn't exist.
        WebsiteFetchError: The page couldn't be fetched.
        UnknownSourceTypeError: The source kind has no resolver.
    """
    if source.source_type == SourceType.DOCUMENT:
        document = await get_document(session, source.document_id)
        return document.extracted_text or ""

    if source.source_type == SourceType.WEBSITE:
        return await fetch_website_text(source.url, http_client=http_client)

    if source.source_type in (SourceType.TEXT, SourceType.QA):
        return source.content or ""

    raise UnknownSourceTypeError(source.source_type)


async def fetch_website_text(url: str, http_client: httpx.AsyncClient | None = None) -> str:
    """GET a page and reduce it to single-spaced visible text."""
    try:
        if http_client is not None:
            resp = await http_client.get(url, headers={"User-Agent": USER_AGENT})
        else:
            timeout = get_settings().http_timeout_seconds
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                resp = await client.get(url, headers={"User-Agent": USER_AGENT})
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise WebsiteFetchError(f"Failed to fetch website content: {exc}") from exc

    return html_to_text(resp.text, collapse_whitespace=True)


def select_website_sections(query: str, text: str, limit: int = MAX_WEBSITE_SECTIONS) -> list[str]:
    """Sections holding the most distinct query keywords, best first."""
    keywords = extract_query_keywords(query)
    scored = []
    for section in split_sections(text, min_length=MIN_SECTION_LENGTH):
        lowered = section.text.lower()
        score = sum(1 for kw in keywords if kw in lowered)
        if score > 0:
            scored.append((score, section.text))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [text for _, text in scored[:limit]]


async def get_relevant_context(
    session: AsyncSession,
    query: str | None,
    sources: Iterable[KnowledgeSource] | None,
    engine: RetrievalEngine,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Gather query-relevant context from every source of an agent.

    A source that fails to resolve is logged and left out; the rest still
    contribute.
    """
    sources = list(sources or [])
    if not query or not query.strip() or not sources:
        return ""

    contexts: list[str] = []
    for source in sources:
        try:
            content = await resolve_source(session, source, http_client=http_client)

            if source.source_type == SourceType.DOCUMENT:
                if not content:
                    continue
                relevant = await engine.retrieve(query, [source.document_id])
                if relevant:
                    contexts.append(relevant)

            elif source.source_type == SourceType.WEBSITE:
                sections = select_website_sections(query, content)
                if sections:
                    contexts.append(f"From website {source.url}:\n" + "\n\n".join(sections))

            elif content:
                contexts.append(f"From {source.source_type} source:\n{content}")

        except Exception:
            logger.warning("Skipping %s: failed to get content", source.label, exc_info=True)

    return "\n\n".join(contexts)
