"""Bounded exponential backoff for remote calls, built from the `retry` config section."""

from typing import Any

from pydantic import Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.errors import is_transient
from ..core.models.base import LocalBotBaseModel
from ..observability.logger import get_logger

logger = get_logger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying_upstream_call",
        attempt=retry_state.attempt_number,
        error_type=type(exc).__name__ if exc else None,
        error=str(exc) if exc else None,
    )


class RetryPolicy(LocalBotBaseModel):
    """How many times and how patiently a transient failure is retried."""

    max_attempts: int = Field(3, ge=1)
    multiplier: float = Field(1.0, ge=0.0)
    min_wait: float = Field(2.0, ge=0.0)
    max_wait: float = Field(10.0, ge=0.0)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RetryPolicy":
        return cls(**(config.get("retry", {}) or {}))

    def retrying(self) -> AsyncRetrying:
        """Fresh retry controller; one per call since it carries attempt state.

        Usage:
            async for attempt in policy.retrying():
                with attempt:
                    await call()
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.multiplier, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception(is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )
