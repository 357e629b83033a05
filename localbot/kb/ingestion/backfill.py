"""Knowledge base backfill.

Re-syncs every stored Q&A pair of a chatbot into the vector index, in batches.
The same batching backs bulk imports, so no single embedding request or index
write grows past the configured batch size.
Useful after switching index or embedding model, or to repair sync gaps left
by failed fire-and-forget upserts.
"""

import time
from typing import Any

from ...core.errors import ConfigurationError, LocalBotError
from ...core.models.knowledge import QAPair
from ...core.storage.qa_store import QAStore
from ...observability.logger import get_logger
from .sync import KnowledgeBaseSync

logger = get_logger(__name__)


class BackfillResult:
    """Result of a knowledge base backfill."""

    def __init__(
        self,
        chatbot_id: str,
        synced: int,
        failed: int,
        total: int,
        duration_seconds: float,
        errors: list[str] | None = None,
    ):
        """Initialize backfill result.

        Args:
            chatbot_id: Chatbot that was synced
            synced: Pairs written to the index
            failed: Pairs in batches that failed
            total: Pairs found in the store
            duration_seconds: Total duration in seconds
            errors: One message per failed batch
        """
        self.chatbot_id = chatbot_id
        self.synced = synced
        self.failed = failed
        self.total = total
        self.duration_seconds = duration_seconds
        self.errors = errors or []

    @property
    def success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "chatbot_id": self.chatbot_id,
            "synced": self.synced,
            "failed": self.failed,
            "total": self.total,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }


class KnowledgeBaseBackfill:
    """Bulk-upsert a chatbot's stored pairs into the vector index."""

    def __init__(self, store: QAStore, sync: KnowledgeBaseSync, batch_size: int | None = None):
        self.store = store
        self.sync = sync
        self.batch_size = batch_size or sync.batch_size
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def sync_chatbot(self, chatbot_id: str) -> BackfillResult:
        """Upsert all stored pairs of one chatbot."""
        return await self.sync_pairs(chatbot_id, self.store.list_pairs(chatbot_id))

    async def sync_pairs(self, chatbot_id: str, pairs: list[QAPair]) -> BackfillResult:
        """Upsert the given pairs of one chatbot, batch_size at a time.

        A failed batch is logged and counted and the next batch still runs.
        Configuration errors abort the run since every batch would hit them.

        Args:
            chatbot_id: Chatbot whose pairs are synced
            pairs: Pairs to write, already saved to the store

        Returns:
            BackfillResult with per-run counts
        """
        start_time = time.time()
        total = len(pairs)

        self.logger.info("backfill_started", chatbot_id=chatbot_id, total=total, batch_size=self.batch_size)

        synced = 0
        failed = 0
        errors: list[str] = []

        for start in range(0, total, self.batch_size):
            batch = pairs[start : start + self.batch_size]
            batch_num = start // self.batch_size + 1
            try:
                await self.sync.upsert_batch(batch)
                synced += len(batch)
            except ConfigurationError:
                raise
            except LocalBotError as e:
                self.logger.error(
                    "backfill_batch_failed",
                    chatbot_id=chatbot_id,
                    batch_num=batch_num,
                    batch_size=len(batch),
                    error=str(e),
                    exc_info=True,
                )
                failed += len(batch)
                errors.append(f"Batch {batch_num} (starting at {start}) failed: {e}")

        result = BackfillResult(
            chatbot_id=chatbot_id,
            synced=synced,
            failed=failed,
            total=total,
            duration_seconds=time.time() - start_time,
            errors=errors,
        )
        self.logger.info("backfill_complete", **{k: v for k, v in result.to_dict().items() if k != "errors"})
        return result
