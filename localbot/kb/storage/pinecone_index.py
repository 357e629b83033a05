"""Pinecone vector index adapter.

The Pinecone SDK is synchronous, so every call runs in a worker thread. One
adapter instance is shared process-wide (see registry.get_vector_index);
Pinecone itself handles concurrent requests.
"""

import asyncio
from typing import Any

from pinecone import Pinecone

from ...core.config.loader import require_env
from ...core.errors import VectorIndexError, is_transient_status
from ...core.models.knowledge import RawMatch, VectorRecord
from ...integrations.retry import RetryPolicy
from ...observability.logger import get_logger
from .base import VectorIndex

logger = get_logger(__name__)


def _field(obj: Any, name: str) -> Any:
    """Read a field from an SDK object or a plain dict response."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def to_pinecone_filter(filter: dict[str, str]) -> dict[str, Any]:
    return {key: {"$eq": value} for key, value in filter.items()}


class PineconeVectorIndex(VectorIndex):
    """Vector index backed by a Pinecone serverless/pod index."""

    backend = "pinecone"

    def __init__(
        self,
        api_key: str | None = None,
        index_name: str | None = None,
        retry_policy: RetryPolicy | None = None,
        index: Any | None = None,
    ):
        """Initialize the adapter.

        Args:
            api_key: Pinecone API key (defaults to PINECONE_API_KEY env var)
            index_name: Index name (defaults to PINECONE_INDEX env var)
            retry_policy: Backoff policy for transient failures
            index: Pre-built index handle (skips client construction)

        Raises:
            ConfigurationError: If the API key or index name is missing
        """
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        if index is not None:
            self.index_name = index_name or "<injected>"
            self.index = index
            return

        api_key = api_key or require_env("PINECONE_API_KEY")
        index_name = index_name or require_env("PINECONE_INDEX")

        self.index_name = index_name
        self.index = Pinecone(api_key=api_key).Index(index_name)
        self.logger.info("pinecone_index_initialized", index=index_name)

    async def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        async for attempt in self.retry_policy.retrying():
            with attempt:
                try:
                    return await asyncio.to_thread(fn, **kwargs)
                except Exception as e:
                    status = _field(e, "status")
                    self.logger.error(
                        f"pinecone_{operation}_failed",
                        index=self.index_name,
                        status=status,
                        error=str(e),
                        exc_info=True,
                    )
                    raise VectorIndexError(
                        f"Pinecone {operation} failed: {e}",
                        transient=is_transient_status(status if isinstance(status, int) else None),
                    ) from e

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        vectors = [
            {"id": record.id, "values": record.embedding, "metadata": record.metadata.to_index()}
            for record in records
        ]
        await self._call("upsert", self.index.upsert, vectors=vectors)
        self.logger.info("vectors_upserted", count=len(vectors))

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, str],
    ) -> list[RawMatch]:
        response = await self._call(
            "query",
            self.index.query,
            vector=vector,
            top_k=top_k,
            filter=to_pinecone_filter(filter),
            include_metadata=True,
        )

        matches = []
        for match in _field(response, "matches") or []:
            match_id = _field(match, "id")
            if not match_id:
                continue
            metadata = _field(match, "metadata")
            matches.append(
                RawMatch(
                    id=str(match_id),
                    score=_field(match, "score"),
                    metadata=dict(metadata) if metadata else None,
                )
            )

        self.logger.info("query_complete", results_count=len(matches), top_k=top_k)
        return matches

    async def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        await self._call("delete", self.index.delete, ids=list(ids))
        self.logger.info("vectors_deleted", count=len(ids))
