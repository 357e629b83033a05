"""Backfill of stored pairs into the index."""

import asyncio

import pytest

from localbot.core.errors import ConfigurationError
from localbot.core.models.knowledge import QAPair
from localbot.core.storage.qa_store import QAStore
from localbot.kb.ingestion.backfill import KnowledgeBaseBackfill


def _store(tmp_path, count: int) -> QAStore:
    store = QAStore(tmp_path / "pairs")
    for i in range(count):
        store.save_pair(QAPair(id=f"q{i}", chatbot_id="t1", question=f"Question number {i}?", answer=f"Answer {i}"))
    return store


def test_backfill_syncs_every_pair_in_batches(tmp_path, kb_sync, fake_index):
    result = asyncio.run(KnowledgeBaseBackfill(_store(tmp_path, 5), kb_sync).sync_chatbot("t1"))

    assert result.success
    assert (result.synced, result.failed, result.total) == (5, 0, 5)
    assert sorted(fake_index.records) == [f"q{i}" for i in range(5)]
    # kb_sync is built with batch_size=2
    assert [len(payload) for op, payload in fake_index.calls if op == "upsert"] == [2, 2, 1]


def test_backfill_counts_failed_batches_and_continues(tmp_path, kb_sync, fake_index):
    fake_index.fail_on.add("upsert")

    result = asyncio.run(KnowledgeBaseBackfill(_store(tmp_path, 3), kb_sync).sync_chatbot("t1"))

    assert not result.success
    assert (result.synced, result.failed) == (0, 3)
    assert len(result.errors) == 2
    assert result.to_dict()["chatbot_id"] == "t1"


def test_backfill_stops_on_configuration_error(tmp_path, kb_sync, fake_openai):
    fake_openai.embedding_error = ConfigurationError("OPENAI_API_KEY is not set")

    with pytest.raises(ConfigurationError):
        asyncio.run(KnowledgeBaseBackfill(_store(tmp_path, 3), kb_sync).sync_chatbot("t1"))


def test_backfill_of_empty_chatbot(tmp_path, kb_sync, fake_index):
    result = asyncio.run(KnowledgeBaseBackfill(_store(tmp_path, 0), kb_sync, batch_size=10).sync_chatbot("t1"))

    assert result.total == 0 and result.success
    assert fake_index.calls == []


def test_sync_pairs_chunks_by_batch_size(tmp_path, kb_sync, fake_index, fake_openai):
    pairs = [QAPair(id=f"n{i}", chatbot_id="t1", question=f"New question {i}?") for i in range(7)]

    result = asyncio.run(KnowledgeBaseBackfill(_store(tmp_path, 0), kb_sync, batch_size=3).sync_pairs("t1", pairs))

    assert result.synced == 7
    assert [len(texts) for texts in fake_openai.embedding_calls] == [3, 3, 1]
    assert [len(payload) for op, payload in fake_index.calls if op == "upsert"] == [3, 3, 1]
