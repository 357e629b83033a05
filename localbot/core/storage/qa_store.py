"""File-based Q&A store, one JSON file per pair under a directory per chatbot.

Stands in for the relational source of truth: the CLI and the backfill write
here first and only then sync the vector index.

Pair ids double as vector ids, and the vector index is shared by every
chatbot, so an id belongs to at most one chatbot across the whole store.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..errors import ValidationError
from ..models.base import utc_now, validate_identifier
from ..models.knowledge import QAPair


class QAStore:
    """Simple JSON-backed persistence layer for Q&A pairs."""

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir) if base_dir else Path("data/qa_pairs")
        self.base_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------
    def _chatbot_dir(self, chatbot_id: str) -> Path:
        validate_identifier(chatbot_id, "chatbot_id")
        path = self.base_dir / chatbot_id
        # Must stay a direct child of base_dir
        if path.resolve().parent != self.base_dir.resolve():
            raise ValidationError(f"chatbot_id resolves outside the store: {chatbot_id!r}")
        return path

    def _pair_path(self, chatbot_id: str, pair_id: str) -> Path:
        validate_identifier(pair_id, "pair id")
        return self._chatbot_dir(chatbot_id) / f"{pair_id}.json"

    def _dump(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def _load(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # Q&A pairs
    # ------------------------------------------------------------------
    def owner_of(self, pair_id: str) -> str | None:
        """Return the chatbot that stores a pair id, if any."""
        validate_identifier(pair_id, "pair id")
        for chatbot_id in self.list_chatbot_ids():
            if (self.base_dir / chatbot_id / f"{pair_id}.json").exists():
                return chatbot_id
        return None

    def save_pair(self, pair: QAPair) -> QAPair:
        """Insert or update a pair.

        Raises:
            ValidationError: If the id is already taken by another chatbot
        """
        path = self._pair_path(pair.chatbot_id, pair.id)
        owner = self.owner_of(pair.id)
        if owner is not None and owner != pair.chatbot_id:
            raise ValidationError(f"Pair id {pair.id!r} already belongs to another chatbot.")

        existing = self.load_pair(pair.chatbot_id, pair.id)
        if existing:
            pair = pair.model_copy(update={"created_at": existing.created_at, "updated_at": utc_now()})
        self._dump(path, pair.model_dump(mode="json"))
        return pair

    def load_pair(self, chatbot_id: str, pair_id: str) -> QAPair | None:
        data = self._load(self._pair_path(chatbot_id, pair_id))
        return QAPair(**data) if data else None

    def delete_pair(self, chatbot_id: str, pair_id: str) -> bool:
        path = self._pair_path(chatbot_id, pair_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_pairs(self, chatbot_id: str) -> list[QAPair]:
        chatbot_dir = self._chatbot_dir(chatbot_id)
        if not chatbot_dir.exists():
            return []
        pairs: list[QAPair] = []
        for path in sorted(chatbot_dir.glob("*.json")):
            data = self._load(path)
            if data:
                pairs.append(QAPair(**data))
        return pairs

    def list_pair_ids(self, chatbot_id: str) -> list[str]:
        chatbot_dir = self._chatbot_dir(chatbot_id)
        if not chatbot_dir.exists():
            return []
        return sorted(p.stem for p in chatbot_dir.glob("*.json"))

    def list_chatbot_ids(self) -> list[str]:
        return sorted(p.name for p in self.base_dir.iterdir() if p.is_dir())

    def delete_chatbot(self, chatbot_id: str) -> list[str]:
        """Remove every stored pair of a chatbot and return the deleted ids."""
        deleted = []
        for pair_id in self.list_pair_ids(chatbot_id):
            if self.delete_pair(chatbot_id, pair_id):
                deleted.append(pair_id)
        chatbot_dir = self._chatbot_dir(chatbot_id)
        if chatbot_dir.exists() and not any(chatbot_dir.iterdir()):
            chatbot_dir.rmdir()
        return deleted
