"""ChromaDB adapter against an in-memory collection."""

import asyncio
import uuid

import pytest

from localbot.core.models.knowledge import VectorMetadata, VectorRecord
from localbot.kb.storage.chroma_index import to_chroma_where

chromadb = pytest.importorskip("chromadb")

from localbot.kb.storage.chroma_index import ChromaVectorIndex  # noqa: E402


def _record(record_id: str, chatbot_id: str, embedding: list[float], answer: str = "a") -> VectorRecord:
    return VectorRecord(
        id=record_id,
        embedding=embedding,
        metadata=VectorMetadata(chatbot_id=chatbot_id, question=f"question {record_id}", answer=answer, embedding_model="m1"),
    )


def test_where_translation():
    assert to_chroma_where({}) is None
    assert to_chroma_where({"chatbot_id": "t1"}) == {"chatbot_id": {"$eq": "t1"}}
    assert to_chroma_where({"chatbot_id": "t1", "embedding_model": "m1"}) == {
        "$and": [{"chatbot_id": {"$eq": "t1"}}, {"embedding_model": {"$eq": "m1"}}]
    }


def test_upsert_query_delete_roundtrip():
    index = ChromaVectorIndex(mode="memory", collection_name=f"test_{uuid.uuid4().hex}")

    asyncio.run(index.upsert([
        _record("q1", "t1", [1.0, 0.0, 0.0]),
        _record("q2", "t2", [1.0, 0.0, 0.0]),
    ]))
    asyncio.run(index.upsert([_record("q1", "t1", [1.0, 0.0, 0.0], answer="updated")]))
    assert index.count() == 2

    matches = asyncio.run(index.query([1.0, 0.0, 0.0], 1, {"chatbot_id": "t1", "embedding_model": "m1"}))
    assert [m.id for m in matches] == ["q1"]
    assert matches[0].metadata["answer"] == "updated"
    assert matches[0].score == pytest.approx(1.0, abs=1e-4)

    asyncio.run(index.delete(["q1", "missing"]))
    assert index.count() == 1
