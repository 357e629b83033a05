"""Shared fakes: an offline embedding provider and an in-process vector index."""

import math
import re
from typing import Any

import pytest

from localbot.core.errors import VectorIndexError
from localbot.core.models.knowledge import RawMatch, VectorRecord
from localbot.kb.ingestion.embedder import EmbeddingGenerator
from localbot.kb.ingestion.sync import KnowledgeBaseSync
from localbot.kb.storage.base import VectorIndex
from localbot.kb.storage.registry import reset_vector_index
from localbot.observability.logger import setup_logging
from localbot.search.retriever import Retriever

DIMENSIONS = 16


def bag_of_words(text: str, dimensions: int = DIMENSIONS) -> list[float]:
    """Deterministic toy embedding: token buckets plus a constant bias term."""
    vector = [0.0] * dimensions
    vector[0] = 1.0
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        bucket = 1 + sum(ord(ch) for ch in token) % (dimensions - 1)
        vector[bucket] += 1.0
    return vector


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeOpenAIClient:
    """Stands in for OpenAIClient; records every call."""

    def __init__(self, embedding_model: str = "fake-embedding-1", chat_reply: str = "Generated answer"):
        self.embedding_model = embedding_model
        self.chat_reply = chat_reply
        self.embedding_calls: list[list[str]] = []
        self.chat_calls: list[list[dict[str, str]]] = []
        self.embedding_error: Exception | None = None
        self.chat_error: Exception | None = None

    async def generate_embeddings_batch(self, texts: list[str]) -> tuple[list[list[float]], dict[str, Any]]:
        self.embedding_calls.append(list(texts))
        if self.embedding_error:
            raise self.embedding_error
        return [bag_of_words(text) for text in texts], {"tokens_used": len(texts), "model": self.embedding_model}

    async def generate_embedding(self, text: str) -> tuple[list[float], dict[str, Any]]:
        embeddings, metadata = await self.generate_embeddings_batch([text])
        return embeddings[0], metadata

    async def create_chat_completion(self, messages: list[dict[str, str]], **kwargs: Any) -> tuple[str, dict[str, Any]]:
        self.chat_calls.append(messages)
        if self.chat_error:
            raise self.chat_error
        return self.chat_reply, {"tokens_total": 42, "model": "fake-chat"}


class FakeVectorIndex(VectorIndex):
    """In-process index with Pinecone-like semantics: upsert replaces by id."""

    backend = "fake"

    def __init__(self) -> None:
        self.records: dict[str, VectorRecord] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: set[str] = set()

    def _record_call(self, operation: str, payload: Any) -> None:
        self.calls.append((operation, payload))
        if operation in self.fail_on:
            raise VectorIndexError(f"fake {operation} failure")

    async def upsert(self, records: list[VectorRecord]) -> None:
        self._record_call("upsert", [record.id for record in records])
        for record in records:
            self.records[record.id] = record

    async def query(self, vector: list[float], top_k: int, filter: dict[str, str]) -> list[RawMatch]:
        self._record_call("query", {"top_k": top_k, "filter": dict(filter)})
        scored = []
        for record in self.records.values():
            metadata = record.metadata.to_index()
            if all(metadata.get(key) == value for key, value in filter.items()):
                scored.append((cosine(vector, record.embedding), record.id, metadata))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [RawMatch(id=rid, score=score, metadata=metadata) for score, rid, metadata in scored[:top_k]]

    async def delete(self, ids: list[str]) -> None:
        self._record_call("delete", list(ids))
        for record_id in ids:
            self.records.pop(record_id, None)


@pytest.fixture(autouse=True)
def _clear_shared_index():
    reset_vector_index()
    yield
    reset_vector_index()


@pytest.fixture(autouse=True)
def _restore_default_logging():
    yield
    setup_logging()


@pytest.fixture
def fake_openai() -> FakeOpenAIClient:
    return FakeOpenAIClient()


@pytest.fixture
def fake_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def embedder(fake_openai) -> EmbeddingGenerator:
    return EmbeddingGenerator(openai_client=fake_openai)


@pytest.fixture
def kb_sync(embedder, fake_index) -> KnowledgeBaseSync:
    return KnowledgeBaseSync(embedder=embedder, index=fake_index, batch_size=2)


@pytest.fixture
def retriever(embedder, fake_index) -> Retriever:
    return Retriever(embedder=embedder, index=fake_index)
