"""In-memory chat histories keyed by episode id."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from ..models import ChatMessage
from ..utils.keyed_lock import KeyedLock


def _index_of(history: List[ChatMessage], message: ChatMessage) -> Optional[int]:
    # Messages compare by value; a turn must find its own object
    for index, candidate in enumerate(history):
        if candidate is message:
            return index
    return None


class ChatSessionStore:
    """Per-episode message histories plus one lock per episode.

    Histories are not persisted and start empty on every process start.
    """

    def __init__(self) -> None:
        self._histories: Dict[str, List[ChatMessage]] = {}
        self._guard = threading.Lock()
        self.locks = KeyedLock()

    def history(self, episode_id: str) -> List[ChatMessage]:
        """Return a copy of the episode's history (empty when no chat has happened)."""
        with self._guard:
            return list(self._histories.get(episode_id, []))

    def append(self, episode_id: str, message: ChatMessage) -> None:
        with self._guard:
            self._histories.setdefault(episode_id, []).append(message)

    def remove(self, episode_id: str, message: ChatMessage) -> bool:
        """Remove exactly ``message`` (by identity); False when it is not there."""
        with self._guard:
            history = self._histories.get(episode_id, [])
            index = _index_of(history, message)
            if index is None:
                return False
            del history[index]
            return True

    def insert_after(self, episode_id: str, anchor: ChatMessage, message: ChatMessage) -> bool:
        """Insert ``message`` right after ``anchor``; False when the anchor is gone."""
        with self._guard:
            history = self._histories.get(episode_id, [])
            index = _index_of(history, anchor)
            if index is None:
                return False
            history.insert(index + 1, message)
            return True

    def clear(self, episode_id: str) -> None:
        with self._guard:
            self._histories.pop(episode_id, None)
