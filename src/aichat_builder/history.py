"""Submitted-prompt history and draft autosave."""

import json
import logging

from .collaborators import KeyValueStore
from .errors import PersistenceError

logger = logging.getLogger(__name__)

HISTORY_KEY = "chat-history"
DRAFT_KEY = "chat-draft"
HISTORY_CAPACITY = 10

UP = "up"
DOWN = "down"


class InputHistory:
    """Most-recent-first ring of submitted prompts, without duplicates.

    Index 0 is the newest entry. A navigation index of -1 means the user is
    editing fresh input rather than recalling history.
    """

    def __init__(self, kv: KeyValueStore, capacity: int = HISTORY_CAPACITY):
        self._kv = kv
        self.capacity = capacity
        self._entries: list[str] = self._load()

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, text: str) -> None:
        """Record a submitted prompt.

        Raises PersistenceError if the ring cannot be saved, in which case the
        in-memory entries are left as they were.
        """
        if not text:
            return
        entries = [e for e in self._entries if e != text]
        entries.insert(0, text)
        entries = entries[: self.capacity]
        self._kv.set(HISTORY_KEY, json.dumps(entries, ensure_ascii=False))
        self._entries = entries

    def navigate(self, direction: str, current_index: int) -> tuple[int, str]:
        """Step through history; return (new_index, text at new_index).

        "up" moves to older entries and stops at the oldest; "down" moves to
        newer ones and, past the newest, returns (-1, ""). An index outside the
        ring is clamped into it first.
        """
        current_index = max(-1, min(current_index, len(self._entries) - 1))
        if direction == UP:
            if not self._entries:
                return -1, ""
            index = min(current_index + 1, len(self._entries) - 1)
        elif direction == DOWN:
            index = current_index - 1
        else:
            raise ValueError(f"Unknown direction: {direction!r}")

        if index < 0:
            return -1, ""
        return index, self._entries[index]

    def _load(self) -> list[str]:
        try:
            blob = self._kv.get(HISTORY_KEY)
        except PersistenceError as e:
            logger.warning("Input history could not be read, starting empty: %s", e)
            return []
        if blob is None:
            return []
        try:
            data = json.loads(blob)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable input history: %s", e)
            return []
        if not isinstance(data, list):
            return []

        entries = []
        for item in data:
            if isinstance(item, str) and item and item not in entries:
                entries.append(item)
        return entries[: self.capacity]


class DraftStore:
    """Autosaved text the user has typed but not sent."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    def load(self) -> str:
        try:
            return self._kv.get(DRAFT_KEY) or ""
        except PersistenceError as e:
            logger.warning("Draft could not be read: %s", e)
            return ""

    def save(self, text: str) -> None:
        if not text or not text.strip():
            self.clear()
            return
        self._kv.set(DRAFT_KEY, text)

    def clear(self) -> None:
        self._kv.remove(DRAFT_KEY)
