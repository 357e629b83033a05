"""Knowledge base sync: keeps the vector index in step with stored Q&A pairs.

The relational store is always written first; these calls follow it and are
the only writers to the vector index, which is a derived, eventually
consistent view. Each call is one embedding request followed by one index
request. Failures propagate to the caller; nothing is dropped silently.
"""

from typing import Any

from ...core.errors import ConfigurationError, ValidationError
from ...core.models.knowledge import QAPair, VectorRecord
from ...observability.logger import get_logger
from ..storage.base import VectorIndex
from ..storage.registry import get_vector_index
from .embedder import EmbeddingGenerator

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


class KnowledgeBaseSync:
    """Embed Q&A pairs and upsert/delete their vectors."""

    def __init__(
        self,
        embedder: EmbeddingGenerator | None = None,
        index: VectorIndex | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """Initialize the sync layer.

        Args:
            embedder: Embedding generator (same one the retriever uses)
            index: Vector index; the shared process-wide index when omitted
            batch_size: Chunk size for imports, backfills and tenant purges
        """
        self.embedder = embedder or EmbeddingGenerator()
        self._index = index
        self.batch_size = batch_size
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        embedder: EmbeddingGenerator | None = None,
        index: VectorIndex | None = None,
    ) -> "KnowledgeBaseSync":
        batch_size = (config.get("sync", {}) or {}).get("batch_size", DEFAULT_BATCH_SIZE)
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise ConfigurationError(f"sync.batch_size must be a positive integer, got {batch_size!r}")
        return cls(
            embedder=embedder or EmbeddingGenerator.from_config(config),
            index=index,
            batch_size=batch_size,
        )

    @property
    def index(self) -> VectorIndex:
        return self._index if self._index is not None else get_vector_index()

    async def upsert(self, pair: QAPair) -> VectorRecord:
        """Embed one pair and insert or replace its vector.

        Returns:
            The record written to the index
        """
        records = await self.upsert_batch([pair])
        return records[0]

    async def upsert_batch(self, pairs: list[QAPair]) -> list[VectorRecord]:
        """Embed and write several pairs in one batch.

        Empty input returns immediately without touching the network. Any
        failure fails the whole batch; callers own retry and reconciliation.

        Returns:
            The records written to the index
        """
        if not pairs:
            return []

        # One record per id; the last occurrence wins, as a replace would
        unique: dict[str, QAPair] = {}
        for pair in pairs:
            unique.pop(pair.id, None)
            unique[pair.id] = pair
        if len(unique) != len(pairs):
            self.logger.warning("duplicate_pair_ids_collapsed", received=len(pairs), unique=len(unique))
        batch = list(unique.values())

        embeddings = await self.embedder.embed_pairs(batch)
        model_version = self.embedder.model_version
        records = [
            VectorRecord.from_pair(pair, embedding, model_version)
            for pair, embedding in zip(batch, embeddings)
        ]

        await self.index.upsert(records)

        self.logger.info(
            "pairs_synced",
            count=len(records),
            chatbot_ids=sorted({pair.chatbot_id for pair in batch}),
        )
        return records

    async def delete(self, pair_id: str) -> None:
        """Delete one pair's vector; deleting an unknown id is not an error."""
        await self.delete_batch([pair_id])

    async def delete_batch(self, pair_ids: list[str]) -> None:
        """Delete several vectors; empty input makes no network call."""
        ids = [pair_id.strip() for pair_id in pair_ids]
        if any(not pair_id for pair_id in ids):
            raise ValidationError("Pair ids must not be empty.")
        if not ids:
            return

        await self.index.delete(list(dict.fromkeys(ids)))
        self.logger.info("pair_vectors_deleted", count=len(ids))

    async def purge_chatbot(self, chatbot_id: str, pair_ids: list[str]) -> int:
        """Delete every vector of a chatbot being removed.

        Args:
            chatbot_id: Chatbot being removed (for logging)
            pair_ids: Ids of all its pairs, read from the relational store

        Returns:
            Number of ids submitted for deletion
        """
        for start in range(0, len(pair_ids), self.batch_size):
            await self.delete_batch(pair_ids[start : start + self.batch_size])

        self.logger.info("chatbot_vectors_purged", chatbot_id=chatbot_id, count=len(pair_ids))
        return len(pair_ids)
