"""Retrieval engine — turns a query plus candidate documents into a context string.

Two strategies sit behind the same interface:

  * ``EmbeddingSimilarityStrategy`` ranks pre-computed chunk embeddings by
    cosine similarity to the query embedding. It only applies when at
    least one candidate chunk has been embedded.
  * ``KeywordSectionStrategy`` scores paragraph/sentence sections by
    keyword matches. It needs nothing but the extracted text and is the
    fallback for everything else.

Retrieval never raises into the conversation turn: empty input yields
``""`` and a search that found nothing yields ``NO_MATCH_SENTINEL`` so the
caller can tell "searched, found nothing" apart from "did not search".
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agentrag.core.cache import Cache, get_context_cache
from agentrag.core.config import get_settings
from agentrag.models.chunk import Chunk
from agentrag.models.document import Document, DocumentStatus
from agentrag.services.embedding import Embedder, embed_text
from agentrag.services.vector_math import cosine_similarities

logger = logging.getLogger(__name__)

NO_MATCH_SENTINEL = "No specific information found in the documents for this query."

MAX_SECTIONS = 5
MIN_SECTION_LENGTH = 20
FIRST_PARAGRAPH_CHARS = 500
CACHE_QUERY_PREFIX = 100

QUESTION_WORDS = ("how", "what", "when", "where", "why", "who")
# Present in the query → all of them join the keyword list
TECH_TERMS = ("api", "url", "endpoint", "http", "https")
QUERY_STOP_WORDS = frozenset({
    "a", "an", "the", "and", "but", "or", "for", "nor", "on", "at", "to", "by",
    "is", "are", "am", "was", "were", "be", "been", "being", "in", "into", "of",
    "with", "about", "this", "that", "these", "those", "it", "its", "have",
    "has", "had", "do", "does", "did", "me", "my", "we", "our", "you", "your",
    "can", "could", "would", "should", "there", "their",
})

_SECTION_BREAK = re.compile(r"\n\n|\.\s")
_URL_QUERY = re.compile(r"url|link|address|endpoint", re.IGNORECASE)
_URL_IN_TEXT = re.compile(r"https?://\S+")
_URL_MARKERS = ("http", "www", ".com", ".io")


# ── Candidate / result types ─────────────────────────────────

@dataclass
class CandidateChunk:
    index: int
    content: str
    embedding: list[float] | None = None


@dataclass
class CandidateDocument:
    """A document as seen by the strategies: id, label, text and chunks."""
    id: str
    name: str
    text: str
    chunks: list[CandidateChunk] = field(default_factory=list)

    @property
    def has_embeddings(self) -> bool:
        return any(c.embedding for c in self.chunks)


@dataclass
class Section:
    start: int
    end: int
    text: str


@dataclass
class RankedResult:
    document_id: str
    document_name: str
    text: str
    score: float
    strategy: str
    chunk_index: int | None = None

    def render(self) -> str:
        if self.strategy == EmbeddingSimilarityStrategy.name:
            return f'From "{self.document_name}" (similarity {self.score:.2f}): {self.text}'
        return f'From "{self.document_name}": {self.text}'


DocumentLoader = Callable[[list[str]], Awaitable[list[CandidateDocument]]]


class RetrievalStrategy(Protocol):
    name: str

    def supports(self, candidates: list[CandidateDocument]) -> bool: ...

    async def score(self, query: str, candidates: list[CandidateDocument]) -> list[RankedResult]: ...


# ── Keyword helpers ──────────────────────────────────────────

def extract_query_keywords(query: str | None) -> list[str]:
    """Keywords for section scoring, in query order and de-duplicated.

    Tokens of two or more characters survive so short domain terms like
    "id" or "api" still count.
    """
    if not query:
        return []

    lowered = query.lower()
    tokens = re.sub(r"[^\w\s]", "", lowered).split()

    keywords: list[str] = []
    for token in tokens:
        if len(token) >= 2 and token not in QUERY_STOP_WORDS and token not in keywords:
            keywords.append(token)

    if any(term in tokens for term in TECH_TERMS):
        keywords.extend(t for t in TECH_TERMS if t not in keywords)

    keywords.extend(q for q in QUESTION_WORDS if q in lowered and q not in keywords)
    return keywords


def split_sections(text: str, min_length: int = MIN_SECTION_LENGTH) -> list[Section]:
    """Split on blank lines and sentence ends, keeping offsets into ``text``."""
    sections: list[Section] = []
    position = 0
    boundaries = [m.start() for m in _SECTION_BREAK.finditer(text)] + [len(text)]

    for boundary in boundaries:
        raw = text[position:boundary]
        stripped = raw.strip()
        if len(stripped) > min_length:
            start = position + (len(raw) - len(raw.lstrip()))
            sections.append(Section(start=start, end=start + len(stripped), text=stripped))
        position = boundary + 2  # both separators are two characters wide

    return sections


def score_section(section: str, keywords: list[str], url_query: bool = False) -> float:
    """Word-boundary plus substring occurrences of every keyword.

    Sections that look like they hold a URL count double when the query is
    asking about URLs, links or endpoints.
    """
    lowered = section.lower()
    score = 0
    for keyword in keywords:
        score += len(re.findall(rf"\b{re.escape(keyword)}\b", lowered))
        score += lowered.count(keyword)

    if score and url_query and any(marker in lowered for marker in _URL_MARKERS):
        score *= 2
    return float(score)


def is_url_query(query: str) -> bool:
    return bool(_URL_QUERY.search(query or ""))


def normalize_document_ids(documents: Any) -> list[str]:
    """Map any accepted document input shape to a list of id strings.

    Accepts a single id (str or UUID), a mapping or object carrying an
    ``id``/``_id``, or an iterable of any of those. Order is preserved and
    duplicates dropped.
    """
    if documents is None:
        return []
    if isinstance(documents, (str, uuid.UUID, Mapping)) or not isinstance(documents, Iterable):
        items = [documents]
    else:
        items = list(documents)

    ids: list[str] = []
    for item in items:
        if isinstance(item, Mapping):
            value = item.get("id") or item.get("_id") or item.get("document_id")
        elif isinstance(item, (str, uuid.UUID)):
            value = item
        else:
            value = getattr(item, "id", None)

        if value is None:
            continue
        value = str(value).strip()
        if value and value not in ids:
            ids.append(value)
    return ids


# ── Strategies ───────────────────────────────────────────────

class KeywordSectionStrategy:
    """Scores text sections by keyword occurrences; works without embeddings."""

    name = "keyword"

    def __init__(self, limit: int = MAX_SECTIONS) -> None:
        self.limit = limit

    def supports(self, candidates: list[CandidateDocument]) -> bool:
        return any(doc.text for doc in candidates)

    async def score(self, query: str, candidates: list[CandidateDocument]) -> list[RankedResult]:
        keywords = extract_query_keywords(query)
        if not keywords:
            return []
        url_query = is_url_query(query)

        results: list[RankedResult] = []
        for doc in candidates:
            if not doc.text:
                continue
            sections = split_sections(doc.text)
            for i, section in enumerate(sections):
                section_score = score_section(section.text, keywords, url_query)
                if section_score <= 0:
                    continue
                # Widen to the neighbouring sections for continuity
                start = sections[i - 1].start if i > 0 else section.start
                end = sections[i + 1].end if i + 1 < len(sections) else section.end
                results.append(
                    RankedResult(
                        document_id=doc.id,
                        document_name=doc.name,
                        text=doc.text[start:end].strip(),
                        score=section_score,
                        strategy=self.name,
                    )
                )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[: self.limit]


class EmbeddingSimilarityStrategy:
    """Ranks embedded chunks by cosine similarity to the query embedding."""

    name = "embedding"

    def __init__(self, embed: Embedder, limit: int = MAX_SECTIONS) -> None:
        self.embed = embed
        self.limit = limit

    def supports(self, candidates: list[CandidateDocument]) -> bool:
        return any(doc.has_embeddings for doc in candidates)

    async def score(self, query: str, candidates: list[CandidateDocument]) -> list[RankedResult]:
        query_vector = await self.embed(query)

        embedded = [(doc, chunk) for doc in candidates for chunk in doc.chunks if chunk.embedding]
        scores = cosine_similarities(query_vector, [chunk.embedding for _, chunk in embedded])

        results = [
            RankedResult(
                document_id=doc.id,
                document_name=doc.name,
                text=chunk.content,
                score=score,
                strategy=self.name,
                chunk_index=chunk.index,
            )
            for (doc, chunk), score in zip(embedded, scores)
        ]

        results.sort(key=lambda r: r.score, reverse=True)
        return results[: self.limit]


# ── Loading ──────────────────────────────────────────────────

class SqlDocumentLoader:
    """Loads candidate documents (with chunks) for a set of ids."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def __call__(self, document_ids: list[str]) -> list[CandidateDocument]:
        uuids: list[uuid.UUID] = []
        for raw in document_ids:
            try:
                uuids.append(uuid.UUID(raw))
            except ValueError:
                logger.warning("Ignoring malformed document id %r", raw)
        if not uuids:
            return []

        stmt = select(Document).where(
            Document.id.in_(uuids),  # type: ignore[attr-defined]
            Document.status == DocumentStatus.COMPLETED,
        )
        result = await self.session.execute(stmt)
        documents = {doc.id: doc for doc in result.scalars().all()}

        chunk_stmt = (
            select(Chunk)
            .where(Chunk.document_id.in_(list(documents)))  # type: ignore[attr-defined]
            .order_by(Chunk.chunk_index.asc())  # type: ignore[union-attr]
        )
        chunk_result = await self.session.execute(chunk_stmt)
        chunks: dict[uuid.UUID, list[CandidateChunk]] = {}
        for chunk in chunk_result.scalars().all():
            chunks.setdefault(chunk.document_id, []).append(
                CandidateChunk(index=chunk.chunk_index, content=chunk.content, embedding=chunk.embedding)
            )

        # Keep the caller's order: the first requested document is the fallback source
        return [
            CandidateDocument(
                id=str(doc_id),
                name=documents[doc_id].display_name,
                text=documents[doc_id].extracted_text or "",
                chunks=chunks.get(doc_id, []),
            )
            for doc_id in uuids
            if doc_id in documents
        ]


# ── Engine ───────────────────────────────────────────────────

class RetrievalEngine:
    """Picks a strategy by capability, formats results and caches them."""

    def __init__(
        self,
        loader: DocumentLoader,
        cache: Cache | None = None,
        embed: Embedder | None = None,
        top_k: int = MAX_SECTIONS,
        cache_ttl: float | None = None,
    ) -> None:
        self.loader = loader
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.strategies: list[RetrievalStrategy] = []
        if embed is not None:
            self.strategies.append(EmbeddingSimilarityStrategy(embed, limit=top_k))
        self.strategies.append(KeywordSectionStrategy(limit=MAX_SECTIONS))

    async def retrieve(self, query: str | None, documents: Any) -> str:
        """Return a context string for ``query`` drawn from ``documents``."""
        document_ids = normalize_document_ids(documents)
        if not query or not query.strip() or not document_ids:
            return ""

        cache_key = ("context", query.strip().lower()[:CACHE_QUERY_PREFIX], tuple(sorted(document_ids)))
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        try:
            candidates = await self.loader(document_ids)
        except Exception:
            logger.exception("Failed to load documents %s for retrieval", document_ids)
            return ""
        if not candidates:
            return ""

        context = await self._search(query, candidates)
        if context is None:
            return NO_MATCH_SENTINEL

        if context and self.cache is not None:
            self.cache.set(cache_key, context, self.cache_ttl)
        return context

    async def rank(self, query: str, candidates: list[CandidateDocument]) -> list[RankedResult]:
        """Ranked results from the first capable strategy that finds anything."""
        for strategy in self.strategies:
            if not strategy.supports(candidates):
                continue
            try:
                results = await strategy.score(query, candidates)
            except Exception:
                logger.warning("%s retrieval failed, falling back", strategy.name, exc_info=True)
                continue
            if results:
                return results
        return []

    async def _search(self, query: str, candidates: list[CandidateDocument]) -> str | None:
        ranked = await self.rank(query, candidates)
        if ranked:
            return "\n\n".join(r.render() for r in ranked)

        if not extract_query_keywords(query):
            first_text = candidates[0].text
            return first_text.split("\n\n")[0][:FIRST_PARAGRAPH_CHARS]

        if is_url_query(query):
            for doc in candidates:
                match = _URL_IN_TEXT.search(doc.text)
                if match:
                    return f'From "{doc.name}": {match.group(0)}'

        return None


def build_retrieval_engine(
    session: AsyncSession,
    cache: Cache | None = None,
    embed: Embedder | None = embed_text,
) -> RetrievalEngine:
    """Engine wired to the database, the shared context cache and LiteLLM."""
    settings = get_settings()
    return RetrievalEngine(
        loader=SqlDocumentLoader(session),
        cache=cache if cache is not None else get_context_cache(),
        embed=embed,
        top_k=settings.retrieval_top_k,
        cache_ttl=settings.context_cache_ttl_seconds,
    )
