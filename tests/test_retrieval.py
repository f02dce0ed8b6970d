"""Tests for the retrieval engine: keyword sections, embeddings, fallbacks, cache."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from agentrag.core.cache import TTLCache
from agentrag.core.exceptions import EmbeddingError
from agentrag.models.document import DocumentStatus
from agentrag.services.retrieval import (
    NO_MATCH_SENTINEL,
    CandidateChunk,
    CandidateDocument,
    EmbeddingSimilarityStrategy,
    KeywordSectionStrategy,
    RetrievalEngine,
    extract_query_keywords,
    normalize_document_ids,
    score_section,
    split_sections,
)

HANDBOOK = "\n\n".join([
    "Introduction to the handbook for new staff.",
    "Refund policy: a refund is issued within 14 days and every refund is logged.",
    "Office hours are nine to five on weekdays.",
    "Parking is available behind the main building.",
    "Contact billing if your refund has not arrived.",
    "The cafeteria serves lunch from noon until two.",
    "Security badges must be worn at all times.",
    "Holiday schedules are posted every December.",
])


def _loader(*docs: CandidateDocument) -> AsyncMock:
    return AsyncMock(return_value=list(docs))


def _engine(*docs: CandidateDocument, cache=None, embed=None) -> RetrievalEngine:
    return RetrievalEngine(loader=_loader(*docs), cache=cache, embed=embed)


# ── Keywords / sections ──────────────────────────────────────

def test_query_keywords_drop_stop_words_and_keep_short_terms():
    assert extract_query_keywords("Is the ID in the invoice?") == ["id", "invoice"]


def test_query_keywords_append_interrogatives_and_dedupe():
    keywords = extract_query_keywords("What's the price, what's the price?")
    assert keywords == ["whats", "price", "what"]


def test_query_keywords_append_tech_terms():
    keywords = extract_query_keywords("Which API do I call?")
    assert keywords[:3] == ["which", "api", "call"]
    assert {"url", "endpoint", "http", "https"} <= set(keywords)


def test_query_keywords_empty():
    assert extract_query_keywords("") == []
    assert extract_query_keywords("the and of") == []


def test_split_sections_tracks_offsets_and_drops_short_pieces():
    text = "Tiny.\n\nThis section is long enough to keep. Another sentence that stays here."
    sections = split_sections(text)
    assert [s.text for s in sections] == [
        "This section is long enough to keep",
        "Another sentence that stays here.",
    ]
    for s in sections:
        assert text[s.start:s.end] == s.text


def test_score_counts_whole_words_twice_and_substrings_once():
    assert score_section("A refund and refunds", ["refund"]) == 3.0


def test_score_doubles_url_sections_for_url_queries():
    section = "Docs live at https://example.com/docs"
    assert score_section(section, ["docs"], url_query=True) == 2 * score_section(section, ["docs"])


def test_normalize_document_ids_accepts_every_shape():
    a, b = uuid.uuid4(), uuid.uuid4()
    assert normalize_document_ids(str(a)) == [str(a)]
    assert normalize_document_ids(a) == [str(a)]
    assert normalize_document_ids([a, str(b), a]) == [str(a), str(b)]
    assert normalize_document_ids([{"id": a}, {"_id": str(b)}]) == [str(a), str(b)]
    assert normalize_document_ids({"id": a}) == [str(a)]
    assert normalize_document_ids([SimpleNamespace(id=a)]) == [str(a)]
    assert normalize_document_ids(None) == []
    assert normalize_document_ids([None, "", {"name": "x"}]) == []


# ── Keyword strategy through the engine ──────────────────────

@pytest.mark.asyncio
async def test_higher_scoring_section_ranks_first_and_non_matching_excluded():
    doc = CandidateDocument(id="d1", name="handbook.txt", text=HANDBOOK)

    context = await _engine(doc).retrieve("refund", ["d1"])

    assert context.startswith('From "handbook.txt": Introduction to the handbook')
    assert context.index("every refund is logged") < context.index("Contact billing")
    assert "Holiday schedules" not in context
    assert context.count('From "handbook.txt"') == 2


@pytest.mark.asyncio
async def test_results_capped_at_five():
    text = "\n\n".join(f"Section {i} mentions the warranty terms clearly." for i in range(10))
    doc = CandidateDocument(id="d1", name="w.txt", text=text)

    context = await _engine(doc).retrieve("warranty", ["d1"])
    assert context.count('From "w.txt"') == 5


@pytest.mark.asyncio
async def test_url_fallback_when_no_section_matches():
    text = "Our documentation lives at https://example.com/docs for everyone.\n\nThe team meets on Mondays to review progress."
    doc = CandidateDocument(id="d1", name="guide.txt", text=text)

    context = await _engine(doc).retrieve("Send me the link", ["d1"])
    assert context == 'From "guide.txt": https://example.com/docs'


@pytest.mark.asyncio
async def test_sentinel_when_nothing_matches_and_not_cached():
    cache = TTLCache()
    doc = CandidateDocument(id="d1", name="handbook.txt", text=HANDBOOK)

    context = await _engine(doc, cache=cache).retrieve("quantum entanglement", ["d1"])

    assert context == NO_MATCH_SENTINEL
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_query_without_keywords_returns_first_paragraph():
    doc = CandidateDocument(id="d1", name="h.txt", text="First paragraph here.\n\nSecond paragraph.")
    assert await _engine(doc).retrieve("the and of", ["d1"]) == "First paragraph here."


@pytest.mark.asyncio
async def test_first_paragraph_is_truncated():
    doc = CandidateDocument(id="d1", name="h.txt", text="z" * 800)
    assert await _engine(doc).retrieve("is it", ["d1"]) == "z" * 500


@pytest.mark.asyncio
async def test_empty_input_returns_empty_string():
    loader = _loader(CandidateDocument(id="d1", name="h.txt", text=HANDBOOK))
    engine = RetrievalEngine(loader=loader)

    assert await engine.retrieve("", ["d1"]) == ""
    assert await engine.retrieve("   ", ["d1"]) == ""
    assert await engine.retrieve("refund", []) == ""
    assert await engine.retrieve("refund", None) == ""
    loader.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_candidates_found_returns_empty_string():
    assert await _engine().retrieve("refund", ["missing"]) == ""


@pytest.mark.asyncio
async def test_loader_errors_are_swallowed():
    engine = RetrievalEngine(loader=AsyncMock(side_effect=RuntimeError("db down")))
    assert await engine.retrieve("refund", ["d1"]) == ""


@pytest.mark.asyncio
async def test_positive_results_are_cached():
    cache = TTLCache()
    loader = _loader(CandidateDocument(id="d1", name="handbook.txt", text=HANDBOOK))
    engine = RetrievalEngine(loader=loader, cache=cache)

    first = await engine.retrieve("refund", ["d1"])
    second = await engine.retrieve("REFUND", ["d1"])

    assert first == second
    assert loader.await_count == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_cache_entries_expire():
    now = [0.0]
    cache = TTLCache(default_ttl=10, clock=lambda: now[0])
    loader = _loader(CandidateDocument(id="d1", name="handbook.txt", text=HANDBOOK))
    engine = RetrievalEngine(loader=loader, cache=cache, cache_ttl=10)

    await engine.retrieve("refund", ["d1"])
    now[0] = 11.0
    await engine.retrieve("refund", ["d1"])

    assert loader.await_count == 2


# ── Embedding strategy ───────────────────────────────────────

def _embedded_doc() -> CandidateDocument:
    return CandidateDocument(
        id="d1",
        name="vectors.txt",
        text="Refund policy text. Shipping policy text.",
        chunks=[
            CandidateChunk(index=0, content="about shipping", embedding=[0.0, 1.0]),
            CandidateChunk(index=1, content="about refunds", embedding=[1.0, 0.0]),
            CandidateChunk(index=2, content="not embedded yet", embedding=None),
        ],
    )


@pytest.mark.asyncio
async def test_embedding_strategy_ranks_by_cosine():
    strategy = EmbeddingSimilarityStrategy(embed=AsyncMock(return_value=[1.0, 0.0]), limit=5)
    doc = _embedded_doc()

    assert strategy.supports([doc])
    results = await strategy.score("refunds?", [doc])

    assert [r.chunk_index for r in results] == [1, 0]
    assert results[0].document_id == "d1"
    assert results[0].score > results[1].score


@pytest.mark.asyncio
async def test_embedding_strategy_unsupported_without_vectors():
    strategy = EmbeddingSimilarityStrategy(embed=AsyncMock())
    doc = CandidateDocument(id="d1", name="plain.txt", text="text", chunks=[CandidateChunk(0, "text")])
    assert not strategy.supports([doc])


@pytest.mark.asyncio
async def test_engine_prefers_embeddings_when_available():
    engine = _engine(_embedded_doc(), embed=AsyncMock(return_value=[1.0, 0.0]))

    context = await engine.retrieve("refunds?", ["d1"])

    assert context.startswith('From "vectors.txt" (similarity 1.00): about refunds')
    assert "not embedded yet" not in context


@pytest.mark.asyncio
async def test_embedding_failure_falls_back_to_keywords():
    embed = AsyncMock(side_effect=EmbeddingError("provider down"))
    doc = CandidateDocument(
        id="d1",
        name="handbook.txt",
        text=HANDBOOK,
        chunks=[CandidateChunk(index=0, content="whatever", embedding=[1.0, 0.0])],
    )

    context = await _engine(doc, embed=embed).retrieve("refund", ["d1"])

    embed.assert_awaited_once()
    assert 'From "handbook.txt":' in context
    assert "every refund is logged" in context


@pytest.mark.asyncio
async def test_keyword_strategy_limit():
    text = "\n\n".join(f"Line {i} is about the warranty for customers." for i in range(4))
    strategy = KeywordSectionStrategy(limit=2)
    results = await strategy.score("warranty", [CandidateDocument(id="d", name="n", text=text)])
    assert len(results) == 2


# ── Database-backed loader ───────────────────────────────────

@pytest.mark.asyncio
async def test_engine_over_database_documents(make_document, retrieval_engine):
    doc = await make_document(text=HANDBOOK, name="handbook.txt")
    pending = await make_document(name="pending.txt")

    context = await retrieval_engine.retrieve("refund", [doc.id, pending.id, "bogus"])

    assert 'From "handbook.txt":' in context
    assert "Holiday schedules" not in context


@pytest.mark.asyncio
async def test_loader_skips_documents_that_are_not_completed(make_document, retrieval_engine):
    failed = await make_document(text=HANDBOOK, name="failed.txt", status=DocumentStatus.FAILED)
    assert await retrieval_engine.retrieve("refund", [failed.id]) == ""


@pytest.mark.asyncio
async def test_pricing_document_answers_cost_question(make_document, retrieval_engine):
    doc = await make_document(
        text="Our plan costs $19 per month. Contact sales at sales@example.com for enterprise pricing.",
        name="pricing.txt",
    )

    context = await retrieval_engine.retrieve("how much does it cost", [doc.id])

    assert context.startswith('From "pricing.txt": Our plan costs $19 per month')
    assert "19" in context


@pytest.mark.asyncio
async def test_api_base_url_question_returns_the_url(make_document, retrieval_engine):
    doc = await make_document(
        text="Welcome to the developer portal for partners.\n\nhttps://api.example.com/v1",
        name="developers.txt",
    )

    context = await retrieval_engine.retrieve("what is the API base URL", [doc.id])

    assert context != NO_MATCH_SENTINEL
    assert "https://api.example.com/v1" in context
