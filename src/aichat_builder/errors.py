"""Error types shared across aichat-builder."""


class BuilderError(Exception):
    """Base class for all aichat-builder errors."""


class ConfigurationError(BuilderError):
    """A required setting (such as the API key) is missing or invalid."""


class GenerationError(BuilderError):
    """The generation backend returned something we could not use."""


class NetworkError(BuilderError):
    """The call to the generation backend failed in transport."""


class PersistenceError(BuilderError):
    """Stored data could not be read or written."""


class DuplicateIdError(BuilderError):
    """A message with the same id is already in the log."""


class RequestPendingError(BuilderError):
    """A generation request is already in flight for this session."""
