"""Ordered message history for one session.

The log never deletes single messages. Messages disappear only when an edit
or a regenerate truncates the tail, or when the whole log is cleared because
the user switched to another project.
"""

import logging
from typing import Iterator

from .core import Message, Role
from .errors import DuplicateIdError

logger = logging.getLogger(__name__)


class ConversationLog:
    """Append-ordered list of messages with unique ids."""

    def __init__(self):
        self._messages: list[Message] = []
        self._ids: set[str] = set()

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def append(self, message: Message) -> Message:
        if message.id in self._ids:
            raise DuplicateIdError(f"Message id already in log: {message.id}")
        self._messages.append(message)
        self._ids.add(message.id)
        return message

    def get(self, message_id: str) -> Message | None:
        index = self._index_of(message_id)
        return self._messages[index] if index is not None else None

    def clear(self) -> None:
        self._messages.clear()
        self._ids.clear()

    def last_user_message(self) -> Message | None:
        for message in reversed(self._messages):
            if message.role == Role.USER:
                return message
        return None

    def edit_message(self, message_id: str, new_content: str) -> str | None:
        """Rewrite a user message and drop everything after it.

        Returns the prompt to resubmit, or None when the id is unknown or the
        message is not user-authored (in which case nothing changes).
        """
        index = self._index_of(message_id)
        if index is None:
            logger.debug("edit_message: unknown id %s", message_id)
            return None

        message = self._messages[index]
        if message.role != Role.USER:
            logger.debug("edit_message: %s is not a user message", message_id)
            return None

        message.content = new_content
        self._truncate(index + 1)
        return new_content

    def regenerate_from(self, message_id: str) -> str | None:
        """Drop an assistant message and everything after it.

        Returns the content of the user message that preceded it, which the
        caller resubmits. Returns None without changing anything when the
        message is first in the log, is not assistant-authored, or does not
        follow a user message.
        """
        index = self._index_of(message_id)
        if index is None or index == 0:
            return None

        if self._messages[index].role != Role.ASSISTANT:
            return None

        previous = self._messages[index - 1]
        if previous.role != Role.USER:
            return None

        self._truncate(index)
        return previous.content

    # ── Private helpers ──────────────────────────────────────────────

    def _index_of(self, message_id: str) -> int | None:
        if message_id not in self._ids:
            return None
        for i, message in enumerate(self._messages):
            if message.id == message_id:
                return i
        return None

    def _truncate(self, length: int) -> None:
        for message in self._messages[length:]:
            self._ids.discard(message.id)
        del self._messages[length:]
