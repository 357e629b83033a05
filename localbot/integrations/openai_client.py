"""OpenAI client wrapper for embeddings and chat completions with retry logic."""

from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    OpenAIError,
    PermissionDeniedError,
)

from ..core.config.loader import require_env
from ..core.errors import (
    ConfigurationError,
    EmbeddingError,
    GenerationError,
    UpstreamError,
    is_transient_status,
)
from ..observability.logger import get_logger
from .retry import RetryPolicy

logger = get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536
DEFAULT_CHAT_MODEL = "gpt-4o-mini"


def _wrap_openai_error(e: OpenAIError, error_cls: type[UpstreamError]) -> Exception:
    """Translate an SDK error into the LocalBot taxonomy."""
    if isinstance(e, (AuthenticationError, PermissionDeniedError)):
        return ConfigurationError(f"OpenAI rejected the API key: {e}")
    if isinstance(e, APIConnectionError):
        return error_cls(f"OpenAI connection failed: {e}", transient=True)
    if isinstance(e, APIStatusError):
        return error_cls(
            f"OpenAI returned {e.status_code}: {e}",
            transient=is_transient_status(e.status_code),
        )
    return error_cls(f"OpenAI call failed: {e}", transient=False)


class OpenAIClient:
    """Wrapper for OpenAI API with bounded retries.

    The underlying AsyncOpenAI client is created on first use, so a missing
    OPENAI_API_KEY surfaces as ConfigurationError at the first call rather
    than at import or startup.
    """

    def __init__(
        self,
        api_key: str | None = None,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSIONS,
        chat_model: str = DEFAULT_CHAT_MODEL,
        timeout: int = 60,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            embedding_model: Embedding model used for both sync and query
            dimensions: Embedding dimensions; must match the vector index
            chat_model: Default chat completion model
            timeout: Request timeout in seconds
            retry_policy: Backoff policy for transient failures
        """
        self.api_key = api_key
        self.embedding_model = embedding_model
        self.dimensions = dimensions
        self.chat_model = chat_model
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._client: AsyncOpenAI | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "OpenAIClient":
        embedding_cfg = config.get("embedding", {}) or {}
        chat_cfg = config.get("chat", {}) or {}
        return cls(
            embedding_model=embedding_cfg.get("model", DEFAULT_EMBEDDING_MODEL),
            dimensions=embedding_cfg.get("dimensions", DEFAULT_EMBEDDING_DIMENSIONS),
            chat_model=chat_cfg.get("model", DEFAULT_CHAT_MODEL),
            timeout=chat_cfg.get("timeout", 60),
            retry_policy=RetryPolicy.from_config(config),
        )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self.api_key or require_env("OPENAI_API_KEY")
            # Retries are owned by the tenacity policy
            self._client = AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)
            logger.info(
                "openai_client_initialized",
                embedding_model=self.embedding_model,
                chat_model=self.chat_model,
            )
        return self._client

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    async def generate_embedding(self, text: str) -> tuple[list[float], dict[str, Any]]:
        """Generate a text embedding.

        Args:
            text: Text to embed

        Returns:
            Tuple of (embedding vector, metadata with usage info)

        Raises:
            EmbeddingError: If the API call fails after retries or the vector is unusable
            ConfigurationError: If no API key is configured
        """
        embeddings, metadata = await self.generate_embeddings_batch([text])
        return embeddings[0], metadata

    async def generate_embeddings_batch(self, texts: list[str]) -> tuple[list[list[float]], dict[str, Any]]:
        """Generate embeddings for several texts in a single API call.

        Args:
            texts: Texts to embed, order preserved in the result

        Returns:
            Tuple of (embedding vectors, aggregated metadata)
        """
        if not texts:
            return [], {"tokens_used": 0, "model": self.embedding_model, "texts_count": 0}

        logger.info("generating_embeddings", model=self.embedding_model, count=len(texts))

        kwargs: dict[str, Any] = {"model": self.embedding_model, "input": texts}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions

        async for attempt in self.retry_policy.retrying():
            with attempt:
                try:
                    response = await self.client.embeddings.create(**kwargs)
                except OpenAIError as e:
                    logger.error("openai_embedding_error", error=str(e), model=self.embedding_model, exc_info=True)
                    raise _wrap_openai_error(e, EmbeddingError) from e

        # The API returns items tagged with their input index
        data = sorted(response.data, key=lambda item: item.index)
        embeddings = [list(item.embedding) for item in data]
        self._check_embeddings(embeddings, expected=len(texts))

        usage = getattr(response, "usage", None)
        metadata = {
            "tokens_used": getattr(usage, "total_tokens", 0) if usage else 0,
            "model": self.embedding_model,
            "dimensions": len(embeddings[0]),
            "texts_count": len(texts),
        }
        logger.info("embeddings_generated", count=len(embeddings), tokens=metadata["tokens_used"])
        return embeddings, metadata

    def _check_embeddings(self, embeddings: list[list[float]], expected: int) -> None:
        if len(embeddings) != expected:
            raise EmbeddingError(
                f"OpenAI returned {len(embeddings)} embeddings for {expected} inputs",
                transient=False,
            )
        for embedding in embeddings:
            if not embedding:
                raise EmbeddingError("OpenAI returned an empty embedding", transient=False)
            if self.dimensions and len(embedding) != self.dimensions:
                raise EmbeddingError(
                    f"Embedding has {len(embedding)} dimensions, index expects {self.dimensions}",
                    transient=False,
                )

    # ------------------------------------------------------------------
    # Chat completions
    # ------------------------------------------------------------------
    async def create_chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> tuple[str, dict[str, Any]]:
        """Create a chat completion.

        Args:
            messages: Chat messages (role/content dicts)
            model: Model to use (defaults to instance default)
            temperature: Sampling temperature
            max_tokens: Cap on generated tokens

        Returns:
            Tuple of (stripped response text, usage metadata)

        Raises:
            GenerationError: If the call fails after retries or returns no text
        """
        model = model or self.chat_model
        logger.info("creating_chat_completion", model=model, messages=len(messages))

        async for attempt in self.retry_policy.retrying():
            with attempt:
                try:
                    completion = await self.client.chat.completions.create(
                        model=model,
                        messages=messages,
                        temperature=temperature,
                        max_tokens=max_tokens,
                    )
                except OpenAIError as e:
                    logger.error("openai_chat_error", error=str(e), model=model, exc_info=True)
                    raise _wrap_openai_error(e, GenerationError) from e

        content = ""
        if completion.choices:
            content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise GenerationError("OpenAI returned an empty completion", transient=False)

        usage = getattr(completion, "usage", None)
        metadata = {
            "tokens_total": getattr(usage, "total_tokens", 0) if usage else 0,
            "model": getattr(completion, "model", model),
            "response_id": getattr(completion, "id", None),
        }
        logger.info("chat_completion_created", tokens_total=metadata["tokens_total"])
        return content, metadata
