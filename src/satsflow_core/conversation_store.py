"""Durable whole-collection storage for the conversation list."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .exceptions import PersistenceError
from .models import Conversation

logger = logging.getLogger(__name__)


class ConversationSink(Protocol):
    """Destination for full conversation snapshots."""

    def write_snapshot(self, conversations: Sequence[Conversation]) -> None: ...


class ConversationSource(Protocol):
    def load(self) -> List[Conversation]: ...


class InMemoryConversationStore:
    """Keeps every snapshot written to it."""

    def __init__(self, initial: Optional[Sequence[Conversation]] = None) -> None:
        self.writes: List[List[Conversation]] = []
        self._current: List[Conversation] = list(initial or [])
        self.updated_at: Optional[int] = None

    def write_snapshot(self, conversations: Sequence[Conversation]) -> None:
        snapshot = list(conversations)
        self.writes.append(snapshot)
        self._current = snapshot
        self.updated_at = int(time.time() * 1000)

    def load(self) -> List[Conversation]:
        return list(self._current)


class JsonFileConversationStore:
    """Conversation snapshot in a JSON file, replaced atomically on write.

    A sidecar ``<name>.updated_at`` file records the epoch-ms time of the
    last successful write.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._updated_at_path = self._path.with_name(f"{self._path.name}.updated_at")

    @property
    def path(self) -> Path:
        return self._path

    def _atomic_write(self, target: Path, text: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def write_snapshot(self, conversations: Sequence[Conversation]) -> None:
        payload = json.dumps([c.to_dict() for c in conversations])
        try:
            self._atomic_write(self._path, payload)
            self._atomic_write(self._updated_at_path, str(int(time.time() * 1000)))
        except OSError as e:
            raise PersistenceError(f"failed to persist conversations to {self._path}: {e}") from e

    def load(self) -> List[Conversation]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error loading conversations from %s: %s", self._path, e)
            return []
        if not isinstance(data, list):
            return []
        conversations = []
        for item in data:
            try:
                conversations.append(Conversation.from_dict(item))
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed conversation entry: %s", e)
        return conversations

    def updated_at(self) -> Optional[int]:
        try:
            return int(self._updated_at_path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None
