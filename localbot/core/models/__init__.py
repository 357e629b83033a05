"""LocalBot data models for Q&A pairs, vectors, matches, and chat answers."""

from .base import LocalBotBaseModel, TimestampSchema, generate_id, utc_now, validate_identifier
from .chat import DEFAULT_FALLBACK_MESSAGE, ChatAnswer, ChatbotProfile
from .enums import AnswerSource, EmbeddingTextPolicy, VectorBackend
from .knowledge import QAPair, QueryMatch, RawMatch, VectorMetadata, VectorRecord

__all__ = [
    # Base
    "LocalBotBaseModel",
    "TimestampSchema",
    "generate_id",
    "utc_now",
    "validate_identifier",
    # Enums
    "AnswerSource",
    "EmbeddingTextPolicy",
    "VectorBackend",
    # Knowledge
    "QAPair",
    "VectorMetadata",
    "VectorRecord",
    "RawMatch",
    "QueryMatch",
    # Chat
    "ChatbotProfile",
    "ChatAnswer",
    "DEFAULT_FALLBACK_MESSAGE",
]
