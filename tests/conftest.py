"""Shared test fixtures — async SQLite in-memory DB + test client."""

from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# Import all models so metadata is populated
import agentrag.models  # noqa: F401
from agentrag.api.deps import get_retrieval_engine
from agentrag.core.cache import TTLCache
from agentrag.core.config import get_settings
from agentrag.core.database import get_session
from agentrag.main import app
from agentrag.models.document import Document, DocumentStatus
from agentrag.services.retrieval import RetrievalEngine, SqlDocumentLoader


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def context_cache() -> TTLCache:
    return TTLCache(default_ttl=3600, max_entries=100)


@pytest.fixture
def retrieval_engine(session, context_cache) -> RetrievalEngine:
    """Keyword-only engine over the test database with a private cache."""
    return RetrievalEngine(loader=SqlDocumentLoader(session), cache=context_cache, embed=None)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch) -> Path:
    monkeypatch.setattr(get_settings(), "upload_dir", str(tmp_path))
    return tmp_path


@pytest.fixture
def enqueue_mock():
    """Job enqueueing patched out so no Redis is needed."""
    with patch("agentrag.api.v1.documents._enqueue_job", new_callable=AsyncMock) as mock:
        yield mock


@pytest.fixture
async def client(session, retrieval_engine, enqueue_mock) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session and retrieval overrides."""

    async def _override_session():
        yield session

    async def _override_engine():
        return retrieval_engine

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_retrieval_engine] = _override_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_document(session):
    """Factory inserting a document; with ``text`` it is stored as already completed."""

    async def _make(
        text: str | None = None,
        name: str = "doc.txt",
        mime_type: str = "text/plain",
        storage_path: str = "/nonexistent",
        status: DocumentStatus | None = None,
    ) -> Document:
        if status is None:
            status = DocumentStatus.COMPLETED if text is not None else DocumentStatus.PENDING
        doc = Document(
            file_name=name,
            original_name=name,
            mime_type=mime_type,
            storage_path=storage_path,
            extracted_text=text,
            text_length=len(text or ""),
            status=status,
        )
        session.add(doc)
        await session.commit()
        await session.refresh(doc)
        return doc

    return _make
