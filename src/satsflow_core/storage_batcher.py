"""
Debounced, coalescing persistence for the conversation list.

Conversation edits arrive far more often than the durable store should be
written. ``StorageBatchManager`` keeps an authoritative in-memory snapshot,
marks changed ids dirty, and writes the *whole* snapshot once the updates
have been quiet for ``debounce_delay`` seconds.

A failed write is logged and leaves the dirty markers in place, so the
next update or an explicit ``flush()`` retries the full write.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .constants import Intervals
from .conversation_store import ConversationSink, ConversationSource
from .models import Conversation

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def _leading_int(value: str) -> Optional[int]:
    match = _LEADING_INT.match(value)
    return int(match.group(0)) if match else None


def _storage_key(conversation: Conversation) -> Tuple[int, int, str]:
    number = _leading_int(conversation.id)
    if number is None:
        return (0, 0, conversation.id)
    return (1, number, conversation.id)


def _sort_for_storage(conversations: List[Conversation]) -> List[Conversation]:
    """Newest first.

    Ids with a leading integer (timestamp ids, including suffixed ones such
    as ``1700000000000-a``) sort by that number descending and come before
    ids without one, which sort by string descending.
    """
    return sorted(conversations, key=_storage_key, reverse=True)


class StorageBatchManager:
    """Batches conversation writes behind a trailing-edge debounce."""

    def __init__(
        self,
        sink: ConversationSink,
        debounce_delay: float = Intervals.PERSIST_DEBOUNCE,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._sink = sink
        self.debounce_delay = debounce_delay
        self._loop = loop
        self._all_conversations: Dict[str, Conversation] = {}
        self._pending_updates: Set[str] = set()
        self._pending_removals: Set[str] = set()
        self._debounce_timer: Optional[asyncio.TimerHandle] = None

    @classmethod
    def from_settings(cls, settings, sink: ConversationSink) -> "StorageBatchManager":
        return cls(sink, debounce_delay=settings.persist_debounce_seconds)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _cancel_timer(self) -> None:
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
            self._debounce_timer = None

    def _schedule_flush(self) -> None:
        self._cancel_timer()
        self._debounce_timer = self._get_loop().call_later(self.debounce_delay, self._on_timer)

    def _on_timer(self) -> None:
        self._debounce_timer = None
        self.flush()

    def queue_update(self, conversation: Conversation) -> None:
        """Record ``conversation`` and restart the debounce window."""
        self._all_conversations[conversation.id] = conversation
        self._pending_updates.add(conversation.id)
        self._pending_removals.discard(conversation.id)
        self._schedule_flush()

    def queue_batch_update(self, conversations: Iterable[Conversation]) -> None:
        for conversation in conversations:
            self._all_conversations[conversation.id] = conversation
            self._pending_updates.add(conversation.id)
            self._pending_removals.discard(conversation.id)
        self._schedule_flush()

    def flush(self) -> bool:
        """
        Write the full snapshot now if anything is pending.

        Returns:
            True if a write happened and succeeded.
        """
        if not self._pending_updates and not self._pending_removals:
            return False

        snapshot = _sort_for_storage(list(self._all_conversations.values()))
        try:
            self._sink.write_snapshot(snapshot)
        except Exception:
            logger.exception(
                "Error flushing %d pending conversation updates",
                len(self._pending_updates) + len(self._pending_removals),
            )
            return False

        logger.debug("Persisted %d conversations", len(snapshot))
        self._pending_updates.clear()
        self._pending_removals.clear()
        self._cancel_timer()
        return True

    def clear(self) -> None:
        """Drop pending markers and cancel the timer without writing."""
        self._pending_updates.clear()
        self._pending_removals.clear()
        self._cancel_timer()

    def initialize(self, conversations: Iterable[Conversation]) -> None:
        """Replace the snapshot wholesale (cold load); does not flush."""
        self._all_conversations = {c.id: c for c in conversations}

    def restore(self, source: ConversationSource) -> int:
        """Cold-load the snapshot from durable storage; returns the count."""
        conversations = source.load()
        self.initialize(conversations)
        logger.info("Restored %d conversations", len(conversations))
        return len(conversations)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._all_conversations.get(conversation_id)

    def get_all_conversations(self) -> List[Conversation]:
        return list(self._all_conversations.values())

    def remove_conversation(self, conversation_id: str) -> None:
        """Forget ``conversation_id`` and make the deletion durable."""
        self._all_conversations.pop(conversation_id, None)
        self._pending_updates.discard(conversation_id)
        self._pending_removals.add(conversation_id)
        if self._debounce_timer is None:
            self._schedule_flush()

    def has_pending_updates(self) -> bool:
        return bool(self._pending_updates or self._pending_removals)

    def get_pending_count(self) -> int:
        return len(self._pending_updates)


_storage_manager: Optional[StorageBatchManager] = None


def get_storage_manager(
    sink: Optional[ConversationSink] = None,
    debounce_delay: Optional[float] = None,
) -> StorageBatchManager:
    """Get or create the process-wide storage manager."""
    global _storage_manager
    if _storage_manager is None:
        if sink is None:
            raise RuntimeError("Storage manager not initialized. Pass a sink on first use.")
        delay = debounce_delay if debounce_delay is not None else Intervals.PERSIST_DEBOUNCE
        _storage_manager = StorageBatchManager(sink, debounce_delay=delay)
    return _storage_manager


def reset_storage_manager() -> None:
    """Flush and drop the process-wide storage manager."""
    global _storage_manager
    if _storage_manager is not None:
        _storage_manager.flush()
        _storage_manager.clear()
    _storage_manager = None
