"""Knowledge base models: Q&A pairs, vector records, and query matches."""

from typing import Any

from pydantic import ConfigDict, Field

from .base import LocalBotBaseModel, TimestampSchema, generate_id


class QAPair(TimestampSchema):
    """A question/answer pair owned by one chatbot (tenant)."""

    id: str = Field(default_factory=lambda: generate_id("qa_"), min_length=1, description="Pair identifier")
    chatbot_id: str = Field(..., min_length=1, description="Owning chatbot (tenant key)")
    question: str = Field(..., min_length=1, description="Question text")
    answer: str = Field("", description="Answer text")


class VectorMetadata(LocalBotBaseModel):
    """Metadata stored alongside each vector so query results carry the pair."""

    chatbot_id: str = Field(..., min_length=1)
    question: str = ""
    answer: str = ""
    embedding_model: str | None = Field(None, description="Model that produced the vector")

    def to_index(self) -> dict[str, Any]:
        """Flatten for the index; vector stores reject null metadata values."""
        return self.model_dump(exclude_none=True)


class VectorRecord(LocalBotBaseModel):
    """Denormalized projection of a QAPair in the vector index."""

    id: str = Field(..., min_length=1)
    embedding: list[float] = Field(..., min_length=1)
    metadata: VectorMetadata

    @classmethod
    def from_pair(cls, pair: QAPair, embedding: list[float], embedding_model: str | None) -> "VectorRecord":
        return cls(
            id=pair.id,
            embedding=embedding,
            metadata=VectorMetadata(
                chatbot_id=pair.chatbot_id,
                question=pair.question,
                answer=pair.answer,
                embedding_model=embedding_model,
            ),
        )


class RawMatch(LocalBotBaseModel):
    """A match as returned by a vector index, with every field optional.

    Index metadata is free-form, so nothing beyond the id is guaranteed.
    """

    model_config = ConfigDict(str_strip_whitespace=False)

    id: str
    score: float | None = None
    metadata: dict[str, Any] | None = None

    @property
    def chatbot_id(self) -> str | None:
        value = (self.metadata or {}).get("chatbot_id")
        return value if isinstance(value, str) else None


def _metadata_text(metadata: dict[str, Any] | None, key: str) -> str:
    value = (metadata or {}).get(key)
    return value if isinstance(value, str) else ""


class QueryMatch(LocalBotBaseModel):
    """A scored candidate answer for one retrieval call. Never persisted."""

    model_config = ConfigDict(str_strip_whitespace=False)

    id: str
    score: float = 0.0
    question: str = ""
    answer: str = ""

    @classmethod
    def from_raw(cls, raw: RawMatch) -> "QueryMatch":
        """Map an index match, defaulting absent score to 0 and absent text to ""."""
        return cls(
            id=raw.id,
            score=raw.score if raw.score is not None else 0.0,
            question=_metadata_text(raw.metadata, "question"),
            answer=_metadata_text(raw.metadata, "answer"),
        )
