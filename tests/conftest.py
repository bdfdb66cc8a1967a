"""Shared pytest fixtures for the RAG service tests."""
import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from app.rag.store_qdrant import QdrantVectorStore
from tests.helpers import VECTOR_SIZE, FakeEmbedder, FakeLLMClient


@pytest_asyncio.fixture
async def qdrant_client():
    client = AsyncQdrantClient(location=":memory:")
    yield client
    await client.close()


@pytest_asyncio.fixture
async def vector_store(qdrant_client) -> QdrantVectorStore:
    """Vector store backed by Qdrant's in-memory local mode."""
    store = QdrantVectorStore(
        client=qdrant_client,
        collection_name="test_documents",
        vector_size=VECTOR_SIZE,
    )
    await store.ensure_collection()
    return store


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()
