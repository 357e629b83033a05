"""Query-time retriever: chat question in, tenant-scoped ranked matches out."""

from __future__ import annotations

from typing import Any

from ..core.errors import ConfigurationError, ValidationError
from ..core.models.knowledge import QueryMatch, RawMatch
from ..kb.ingestion.embedder import EmbeddingGenerator
from ..kb.storage.base import VectorIndex
from ..kb.storage.registry import get_vector_index
from ..observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TOP_K = 5


def validate_top_k(top_k: Any) -> int:
    # bool is an int subclass but never a meaningful count
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
        raise ValidationError(f"top_k must be a positive integer, got {top_k!r}")
    return top_k


class Retriever:
    """Embed a question and query the vector index restricted to one chatbot."""

    def __init__(
        self,
        embedder: EmbeddingGenerator | None = None,
        index: VectorIndex | None = None,
        default_top_k: int = DEFAULT_TOP_K,
        enforce_embedding_model: bool = True,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding generator shared with the sync layer
            index: Vector index; the shared process-wide index when omitted
            default_top_k: top_k used when a call does not pass one
            enforce_embedding_model: Only match vectors stamped with the current model
        """
        self.embedder = embedder or EmbeddingGenerator()
        self._index = index
        self.default_top_k = validate_top_k(default_top_k)
        self.enforce_embedding_model = enforce_embedding_model
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        embedder: EmbeddingGenerator | None = None,
        index: VectorIndex | None = None,
    ) -> Retriever:
        retrieval_cfg = config.get("retrieval", {}) or {}
        try:
            default_top_k = validate_top_k(retrieval_cfg.get("top_k", DEFAULT_TOP_K))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid retrieval.top_k: {e}") from e
        return cls(
            embedder=embedder or EmbeddingGenerator.from_config(config),
            index=index,
            default_top_k=default_top_k,
            enforce_embedding_model=bool(retrieval_cfg.get("enforce_embedding_model", True)),
        )

    @property
    def index(self) -> VectorIndex:
        return self._index if self._index is not None else get_vector_index()

    def build_filter(self, chatbot_id: str) -> dict[str, str]:
        """Equality filter carried by every query; chatbot_id is always present."""
        filter = {"chatbot_id": chatbot_id}
        if self.enforce_embedding_model:
            filter["embedding_model"] = self.embedder.model_version
        return filter

    async def retrieve(
        self,
        question_text: str,
        chatbot_id: str,
        top_k: int | None = None,
    ) -> list[QueryMatch]:
        """Return up to top_k matches for one chatbot, in the index's ranking order.

        Input is validated before any network call.

        Args:
            question_text: Visitor's question
            chatbot_id: Tenant whose knowledge base is searched
            top_k: Maximum matches (default from config, 5)

        Returns:
            Matches ordered by non-increasing similarity score

        Raises:
            ValidationError: Empty text/chatbot id or non-positive top_k
            EmbeddingError: Embedding provider failed
            VectorIndexError: Index query failed
            ConfigurationError: Index or provider not configured
        """
        top_k = validate_top_k(self.default_top_k if top_k is None else top_k)
        if not isinstance(question_text, str) or not question_text.strip():
            raise ValidationError("Question text must not be empty.")
        if not isinstance(chatbot_id, str) or not chatbot_id.strip():
            raise ValidationError("chatbot_id must not be empty.")
        chatbot_id = chatbot_id.strip()

        vector = await self.embedder.embed_query(question_text)
        raw_matches = await self.index.query(vector, top_k, self.build_filter(chatbot_id))

        matches = [QueryMatch.from_raw(raw) for raw in self._same_tenant(raw_matches, chatbot_id)][:top_k]

        self.logger.info(
            "retrieval_complete",
            chatbot_id=chatbot_id,
            top_k=top_k,
            results_count=len(matches),
            top_score=matches[0].score if matches else None,
        )
        return matches

    def _same_tenant(self, raw_matches: list[RawMatch], chatbot_id: str) -> list[RawMatch]:
        """Drop matches tagged with another chatbot; untagged ones pass with defaults."""
        kept = []
        for raw in raw_matches:
            owner = raw.chatbot_id
            if owner is not None and owner != chatbot_id:
                self.logger.warning(
                    "cross_tenant_match_dropped",
                    requested_chatbot_id=chatbot_id,
                    match_chatbot_id=owner,
                    match_id=raw.id,
                )
                continue
            kept.append(raw)
        return kept
