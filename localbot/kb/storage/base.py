"""Vector index interface shared by the Pinecone and Chroma backends."""

from abc import ABC, abstractmethod

from ...core.models.knowledge import RawMatch, VectorRecord


class VectorIndex(ABC):
    """Remote store of (id, vector, metadata) records with filtered similarity search.

    Filters are plain equality maps, e.g. {"chatbot_id": "cb_1"}; each backend
    translates them to its own query syntax. Implementations raise
    VectorIndexError on service failures and ConfigurationError when they
    cannot be set up.
    """

    backend: str = "abstract"

    @abstractmethod
    async def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or replace records by id in one write."""

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, str],
    ) -> list[RawMatch]:
        """Return up to top_k nearest records matching filter, best first."""

    @abstractmethod
    async def delete(self, ids: list[str]) -> None:
        """Delete records by id; unknown ids are ignored."""
