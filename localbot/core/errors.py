"""Error taxonomy for the retrieval core.

Retried with backoff: EmbeddingError, VectorIndexError, GenerationError when
marked transient (network failures, rate limits, 5xx).
Never retried: ConfigurationError, ValidationError.
"""


class LocalBotError(Exception):
    """Base class for all LocalBot errors."""


class ConfigurationError(LocalBotError):
    """Required configuration (API key, index name, backend) is missing or invalid."""


class ValidationError(LocalBotError):
    """Caller supplied invalid input (empty text, non-positive top_k)."""


class UpstreamError(LocalBotError):
    """A remote service call failed."""

    def __init__(self, message: str, *, transient: bool = True):
        super().__init__(message)
        self.transient = transient


class EmbeddingError(UpstreamError):
    """The embedding provider failed or returned an unusable vector."""


class VectorIndexError(UpstreamError):
    """A vector index call (upsert, query, delete) failed."""


class GenerationError(UpstreamError):
    """The chat completion call failed or returned nothing."""


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamError) and exc.transient


def is_transient_status(status: int | None) -> bool:
    """HTTP statuses worth retrying: unknown, 408, 429 and 5xx."""
    if status is None:
        return True
    return status in (408, 429) or status >= 500
