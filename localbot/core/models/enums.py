"""Enumeration types for LocalBot models."""

from enum import Enum


class EmbeddingTextPolicy(str, Enum):
    """Which part of a Q&A pair is embedded at sync time."""

    QUESTION = "question"
    QUESTION_AND_ANSWER = "question_and_answer"


class VectorBackend(str, Enum):
    """Supported vector index backends."""

    PINECONE = "pinecone"
    CHROMA = "chroma"


class AnswerSource(str, Enum):
    """How a chat answer was produced."""

    DIRECT_MATCH = "direct_match"
    GENERATED = "generated"
    FALLBACK = "fallback"
