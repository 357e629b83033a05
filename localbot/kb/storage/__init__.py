"""Vector index backends and the shared process-wide handle."""

from .base import VectorIndex
from .registry import build_vector_index, get_vector_index, reset_vector_index, set_vector_index

__all__ = [
    "VectorIndex",
    "build_vector_index",
    "get_vector_index",
    "reset_vector_index",
    "set_vector_index",
]
