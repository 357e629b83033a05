"""Process-wide vector index handle.

Lifecycle: built on first use from config, then shared by every sync and
retrieve call in the process. No teardown is needed; the backing service is
remote. Configuration problems surface as ConfigurationError on the first
call that needs the index, and the next call tries again.
"""

import threading
from typing import Any

from ...core.config.loader import load_config
from ...core.errors import ConfigurationError
from ...core.models.enums import VectorBackend
from ...integrations.retry import RetryPolicy
from ...observability.logger import get_logger
from .base import VectorIndex

logger = get_logger(__name__)

_vector_index: VectorIndex | None = None
_lock = threading.Lock()


def build_vector_index(config: dict[str, Any]) -> VectorIndex:
    """Construct the configured backend.

    Args:
        config: Loaded configuration

    Returns:
        A ready vector index adapter

    Raises:
        ConfigurationError: On unknown backend or missing credentials
    """
    index_cfg = config.get("vector_index", {}) or {}
    backend = str(index_cfg.get("backend", VectorBackend.PINECONE.value)).lower()
    retry_policy = RetryPolicy.from_config(config)

    if backend == VectorBackend.PINECONE.value:
        from .pinecone_index import PineconeVectorIndex

        return PineconeVectorIndex(index_name=index_cfg.get("index_name"), retry_policy=retry_policy)

    if backend == VectorBackend.CHROMA.value:
        from .chroma_index import ChromaVectorIndex

        chroma_cfg = index_cfg.get("chroma", {}) or {}
        return ChromaVectorIndex(
            mode=chroma_cfg.get("mode", "memory"),
            persist_directory=chroma_cfg.get("persist_directory"),
            collection_name=chroma_cfg.get("collection", "localbot_qa"),
            retry_policy=retry_policy,
        )

    raise ConfigurationError(f"Unknown vector index backend: {backend}")


def get_vector_index(config: dict[str, Any] | None = None) -> VectorIndex:
    """Get the shared vector index, building it on first use."""
    global _vector_index
    if _vector_index is None:
        with _lock:
            if _vector_index is None:
                _vector_index = build_vector_index(config if config is not None else load_config())
                logger.info("vector_index_ready", backend=_vector_index.backend)
    return _vector_index


def set_vector_index(index: VectorIndex | None) -> None:
    """Install a specific index (or clear it) for the whole process."""
    global _vector_index
    with _lock:
        _vector_index = index


def reset_vector_index() -> None:
    set_vector_index(None)
