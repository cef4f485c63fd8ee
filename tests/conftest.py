"""Pytest configuration and shared fixtures.

Async tests use pytest-asyncio (``@pytest.mark.asyncio``). No test talks to
a real Ollama server: the client is replaced by mocks or an httpx
MockTransport.
"""
from datetime import datetime, timezone
from typing import List, Sequence
from unittest.mock import AsyncMock, Mock

import pytest

from docchat.rag.embedder import Embedder, EmbeddingCache
from docchat.rag.models import IndexRecord, LocalIndex, RecordMetadata
from docchat.rag.records import vector_id
from docchat.rag.store import IndexStore

TEST_MODEL = "nomic-embed-text"


def make_index(
    vectors: Sequence[Sequence[float]],
    texts: Sequence[str] = None,
    source: str = "docs/manual.pdf",
    model: str = TEST_MODEL,
) -> LocalIndex:
    """Index with one record per vector, all from one source."""
    texts = texts or [f"fragment {i}" for i in range(len(vectors))]
    items: List[IndexRecord] = [
        IndexRecord(
            id=vector_id(source, i),
            embedding=list(vector),
            metadata=RecordMetadata(text=text, source=source, chunk=i),
        )
        for i, (vector, text) in enumerate(zip(vectors, texts))
    ]
    return LocalIndex(
        embedding_model=model,
        dimension=len(vectors[0]) if vectors else 0,
        created_at=datetime(2026, 10, 19, 12, 30, 15, 123456, tzinfo=timezone.utc),
        items=items,
    )


@pytest.fixture
def scenario_index() -> LocalIndex:
    """Three records: [1,0], [0,1], [0.9,0.1]."""
    return make_index(
        [[1.0, 0.0], [0.0, 1.0], [0.9, 0.1]],
        texts=["Alpha fragment", "Beta fragment", "Gamma fragment"],
    )


@pytest.fixture
def index_store(tmp_path) -> IndexStore:
    """Store writing into a temporary data directory."""
    return IndexStore(tmp_path / "data" / "local-index.json")


@pytest.fixture
def mock_client():
    """Ollama client double with async embed/chat."""
    client = Mock()
    client.embed = AsyncMock(return_value=[1.0, 0.0])
    client.chat = AsyncMock(return_value="An answer.")
    client.list_models = AsyncMock(return_value=[])
    return client


@pytest.fixture
def embedder(mock_client) -> Embedder:
    return Embedder(client=mock_client, model=TEST_MODEL, cache=EmbeddingCache())
