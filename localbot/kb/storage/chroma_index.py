"""ChromaDB vector index adapter for local development and offline use.

Stores Q&A vectors in a cosine-space collection, either in memory or on disk.
"""

import asyncio
from typing import Any

try:
    import chromadb
    CHROMADB_AVAILABLE = True
except ImportError:
    CHROMADB_AVAILABLE = False

from ...core.errors import ConfigurationError, VectorIndexError
from ...core.models.knowledge import RawMatch, VectorRecord
from ...integrations.retry import RetryPolicy
from ...observability.logger import get_logger
from .base import VectorIndex

logger = get_logger(__name__)


def to_chroma_where(filter: dict[str, str]) -> dict[str, Any] | None:
    """Chroma accepts a single field condition or an explicit $and."""
    clauses = [{key: {"$eq": value}} for key, value in filter.items()]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorIndex(VectorIndex):
    """Vector index backed by a ChromaDB collection."""

    backend = "chroma"

    def __init__(
        self,
        mode: str = "memory",
        persist_directory: str | None = None,
        collection_name: str = "localbot_qa",
        retry_policy: RetryPolicy | None = None,
        client: Any | None = None,
    ):
        """Initialize ChromaDB client and collection.

        Args:
            mode: "memory" for in-memory or "persistent" for disk storage
            persist_directory: Directory for persistent storage
            collection_name: Name of the collection
            retry_policy: Backoff policy for transient failures
            client: Pre-built Chroma client
        """
        if client is None and not CHROMADB_AVAILABLE:
            raise ConfigurationError("ChromaDB not installed. Install with: pip install chromadb")

        self.mode = mode
        self.persist_directory = persist_directory
        self.collection_name = collection_name
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        if client is not None:
            self.client = client
        elif mode == "memory":
            self.client = chromadb.EphemeralClient()
        elif mode == "persistent":
            if not persist_directory:
                raise ConfigurationError("persist_directory required for persistent mode")
            self.client = chromadb.PersistentClient(path=persist_directory)
        else:
            raise ConfigurationError(f"Unknown Chroma mode: {mode}")

        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self.logger.info("chroma_index_initialized", mode=mode, collection=collection_name)

    async def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        async for attempt in self.retry_policy.retrying():
            with attempt:
                try:
                    return await asyncio.to_thread(fn, **kwargs)
                except Exception as e:
                    self.logger.error(f"chroma_{operation}_failed", error=str(e), exc_info=True)
                    # Local store: failures are not network blips
                    raise VectorIndexError(f"Chroma {operation} failed: {e}", transient=False) from e

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        await self._call(
            "upsert",
            self.collection.upsert,
            ids=[record.id for record in records],
            embeddings=[record.embedding for record in records],
            metadatas=[record.metadata.to_index() for record in records],
            documents=[record.metadata.question for record in records],
        )
        self.logger.info("vectors_upserted", count=len(records))

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, str],
    ) -> list[RawMatch]:
        kwargs: dict[str, Any] = {
            "query_embeddings": [vector],
            "n_results": top_k,
            "include": ["metadatas", "distances"],
        }
        where = to_chroma_where(filter)
        if where:
            kwargs["where"] = where

        results = await self._call("query", self.collection.query, **kwargs)

        ids = (results.get("ids") or [[]])[0] if results else []
        distances = (results.get("distances") or [[]])[0] if results else []
        metadatas = (results.get("metadatas") or [[]])[0] if results else []

        matches = []
        for position, match_id in enumerate(ids):
            distance = distances[position] if position < len(distances) else None
            metadata = metadatas[position] if position < len(metadatas) else None
            matches.append(
                RawMatch(
                    id=match_id,
                    # Cosine distance to similarity
                    score=float(1.0 - distance) if distance is not None else None,
                    metadata=dict(metadata) if metadata else None,
                )
            )

        self.logger.info("query_complete", results_count=len(matches), top_k=top_k)
        return matches

    async def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        await self._call("delete", self.collection.delete, ids=list(ids))
        self.logger.info("vectors_deleted", count=len(ids))

    def count(self) -> int:
        return self.collection.count()
