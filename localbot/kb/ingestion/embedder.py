"""Embedding generator for Q&A pairs and chat questions.

Sync-time and query-time embeddings go through the same client, so both sides
use one model. The model name is stamped on every vector record and used as a
query filter, which keeps vectors from a retired model out of new searches.
"""

from typing import Any

from ...core.errors import ConfigurationError, ValidationError
from ...core.models.enums import EmbeddingTextPolicy
from ...core.models.knowledge import QAPair
from ...integrations.openai_client import OpenAIClient
from ...observability.logger import get_logger

logger = get_logger(__name__)


class EmbeddingGenerator:
    """Generate embeddings for Q&A pairs and incoming questions."""

    def __init__(
        self,
        openai_client: OpenAIClient | None = None,
        text_policy: EmbeddingTextPolicy | str = EmbeddingTextPolicy.QUESTION,
    ):
        """Initialize embedding generator.

        Args:
            openai_client: Client used for every embedding call
            text_policy: Which part of a pair is embedded at sync time
        """
        self.openai_client = openai_client or OpenAIClient()
        try:
            self.text_policy = EmbeddingTextPolicy(text_policy)
        except ValueError as e:
            allowed = ", ".join(policy.value for policy in EmbeddingTextPolicy)
            raise ConfigurationError(f"Unknown embedding text policy {text_policy!r}; expected one of: {allowed}") from e
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(cls, config: dict[str, Any], openai_client: OpenAIClient | None = None) -> "EmbeddingGenerator":
        embedding_cfg = config.get("embedding", {}) or {}
        return cls(
            openai_client=openai_client or OpenAIClient.from_config(config),
            text_policy=embedding_cfg.get("text_policy", EmbeddingTextPolicy.QUESTION.value),
        )

    @property
    def model_version(self) -> str:
        """Identifier recorded alongside each vector."""
        return self.openai_client.embedding_model

    def build_embedding_text(self, pair: QAPair) -> str:
        """Build the text embedded for a pair under the configured policy."""
        question = pair.question.strip()
        answer = pair.answer.strip()
        if self.text_policy == EmbeddingTextPolicy.QUESTION_AND_ANSWER and answer:
            return f"Question: {question}\nAnswer: {answer}"
        return question

    async def embed_pair(self, pair: QAPair) -> list[float]:
        embeddings = await self.embed_pairs([pair])
        return embeddings[0]

    async def embed_pairs(self, pairs: list[QAPair]) -> list[list[float]]:
        """Embed several pairs with one provider call, order preserved."""
        if not pairs:
            return []

        texts = [self.build_embedding_text(pair) for pair in pairs]
        embeddings, metadata = await self.openai_client.generate_embeddings_batch(texts)

        self.logger.info(
            "pairs_embedded",
            count=len(pairs),
            policy=self.text_policy.value,
            tokens=metadata.get("tokens_used", 0),
        )
        return embeddings

    async def embed_query(self, text: str) -> list[float]:
        """Embed a visitor question."""
        text = text.strip()
        if not text:
            raise ValidationError("Question text must not be empty.")
        embedding, _ = await self.openai_client.generate_embedding(text)
        return embedding
