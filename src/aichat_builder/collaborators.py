"""Abstract interfaces for the outside capabilities a session depends on."""

from abc import ABC, abstractmethod

from .core import GenerationResult


class KeyValueStore(ABC):
    """Durable string-to-string storage scoped to the application.

    Each ``set`` must be atomic: after a crash a key holds either its
    previous value or the new one, never a partial write.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete the key; a missing key is not an error."""
        ...


class Generator(ABC):
    """Turns a free-text prompt into an HTML page.

    Implementations raise GenerationError when the backend answers with
    something unusable and NetworkError when the call itself fails.
    """

    @abstractmethod
    async def generate(self, prompt: str) -> GenerationResult:
        ...


class Exporter(ABC):
    """Best-effort file export ("download")."""

    @abstractmethod
    def export(self, content: str, suggested_name: str, mime_type: str) -> None:
        ...


class Clipboard(ABC):
    @abstractmethod
    def copy(self, text: str) -> bool:
        """Copy text; return False on failure instead of raising."""
        ...
