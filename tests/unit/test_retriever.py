"""Query-time retriever: validation, tenant isolation, ordering, defaults."""

import asyncio

import pytest

from localbot.core.errors import ConfigurationError, ValidationError
from localbot.core.models.knowledge import QAPair, RawMatch
from localbot.kb.storage.base import VectorIndex
from localbot.search.retriever import Retriever


class StubIndex(VectorIndex):
    """Returns canned raw matches regardless of the query."""

    backend = "stub"

    def __init__(self, matches):
        self.matches = matches
        self.filters = []

    async def upsert(self, records):
        raise AssertionError("not used")

    async def query(self, vector, top_k, filter):
        self.filters.append(filter)
        return self.matches[:top_k]

    async def delete(self, ids):
        raise AssertionError("not used")


def _seed(kb_sync):
    pairs = [
        QAPair(id="a1", chatbot_id="tenant-a", question="What are your opening hours?", answer="9-5"),
        QAPair(id="a2", chatbot_id="tenant-a", question="Do you offer delivery?", answer="Yes"),
        QAPair(id="a3", chatbot_id="tenant-a", question="Where is the shop?", answer="Main St"),
        QAPair(id="b1", chatbot_id="tenant-b", question="What are your opening hours?", answer="24/7"),
        QAPair(id="b2", chatbot_id="tenant-b", question="Do you offer delivery?", answer="No"),
    ]
    asyncio.run(kb_sync.upsert_batch(pairs))


@pytest.mark.parametrize("top_k", [0, -1, True, 2.5, "5"])
def test_invalid_top_k_rejected_before_network(retriever, fake_index, fake_openai, top_k):
    with pytest.raises(ValidationError):
        asyncio.run(retriever.retrieve("When are you open?", "t1", top_k=top_k))

    assert fake_openai.embedding_calls == []
    assert fake_index.calls == []


@pytest.mark.parametrize("text,chatbot_id", [("", "t1"), ("   ", "t1"), ("hours?", ""), ("hours?", "  ")])
def test_blank_input_rejected(retriever, fake_index, text, chatbot_id):
    with pytest.raises(ValidationError):
        asyncio.run(retriever.retrieve(text, chatbot_id))
    assert fake_index.calls == []


def test_query_filters_on_tenant_and_model(retriever, fake_index):
    asyncio.run(retriever.retrieve("hours", "tenant-a"))

    op, payload = fake_index.calls[-1]
    assert op == "query"
    assert payload["filter"] == {"chatbot_id": "tenant-a", "embedding_model": "fake-embedding-1"}
    assert payload["top_k"] == 5


def test_model_filter_can_be_disabled(embedder, fake_index):
    retriever = Retriever(embedder=embedder, index=fake_index, enforce_embedding_model=False)

    asyncio.run(retriever.retrieve("hours", "tenant-a"))

    assert fake_index.calls[-1][1]["filter"] == {"chatbot_id": "tenant-a"}


def test_tenants_never_see_each_other(kb_sync, retriever):
    _seed(kb_sync)

    for tenant, prefix in (("tenant-a", "a"), ("tenant-b", "b")):
        matches = asyncio.run(retriever.retrieve("What are your opening hours?", tenant, top_k=10))
        assert matches
        assert all(match.id.startswith(prefix) for match in matches)


def test_results_bounded_and_ordered(kb_sync, retriever):
    _seed(kb_sync)

    matches = asyncio.run(retriever.retrieve("opening hours delivery shop", "tenant-a", top_k=2))

    assert len(matches) <= 2
    scores = [match.score for match in matches]
    assert scores == sorted(scores, reverse=True)


def test_default_top_k_is_five(embedder):
    index = StubIndex([RawMatch(id=f"m{i}", score=1.0 - i / 10, metadata={"chatbot_id": "t1"}) for i in range(8)])
    retriever = Retriever(embedder=embedder, index=index)

    matches = asyncio.run(retriever.retrieve("anything", "t1"))

    assert [m.id for m in matches] == ["m0", "m1", "m2", "m3", "m4"]


def test_absent_metadata_degrades_to_defaults(embedder):
    index = StubIndex([
        RawMatch(id="bare"),
        RawMatch(id="partial", score=0.4, metadata={"question": "Hours?", "answer": 7}),
    ])
    retriever = Retriever(embedder=embedder, index=index)

    bare, partial = asyncio.run(retriever.retrieve("hours", "t1"))

    assert (bare.id, bare.score, bare.question, bare.answer) == ("bare", 0, "", "")
    assert (partial.score, partial.question, partial.answer) == (0.4, "Hours?", "")


def test_index_order_is_preserved(embedder):
    # Ties and order come from the index, never re-sorted here
    index = StubIndex([
        RawMatch(id="first", score=0.8, metadata={"chatbot_id": "t1"}),
        RawMatch(id="second", score=0.8, metadata={"chatbot_id": "t1"}),
        RawMatch(id="third", score=0.5, metadata={"chatbot_id": "t1"}),
    ])
    retriever = Retriever(embedder=embedder, index=index)

    matches = asyncio.run(retriever.retrieve("hours", "t1"))

    assert [m.id for m in matches] == ["first", "second", "third"]


def test_cross_tenant_matches_are_dropped(embedder):
    index = StubIndex([
        RawMatch(id="mine", score=0.9, metadata={"chatbot_id": "t1", "question": "q", "answer": "a"}),
        RawMatch(id="theirs", score=0.8, metadata={"chatbot_id": "t2", "question": "q", "answer": "a"}),
    ])
    retriever = Retriever(embedder=embedder, index=index)

    matches = asyncio.run(retriever.retrieve("q", "t1"))

    assert [m.id for m in matches] == ["mine"]


@pytest.mark.parametrize("top_k", [0, "five"])
def test_bad_configured_top_k_is_configuration_error(embedder, fake_index, top_k):
    with pytest.raises(ConfigurationError, match="retrieval.top_k"):
        Retriever.from_config({"retrieval": {"top_k": top_k}}, embedder=embedder, index=fake_index)
