"""Core data models for aichat-builder."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class GenerationStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"


def new_id() -> str:
    """Return a fresh unique identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A single message in the conversation log."""

    id: str
    role: Role
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(id=new_id(), role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(id=new_id(), role=Role.ASSISTANT, content=content)


@dataclass
class Project:
    """One persisted generation result."""

    id: str
    filename: str  # without the .html extension
    content: str  # the HTML document
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def html_filename(self) -> str:
        return f"{self.filename}.html"


@dataclass(frozen=True)
class GenerationResult:
    """What the generation backend returns on success."""

    filename: str
    content: str


@dataclass
class GenerationRequest:
    """A single submission; lives only until it resolves."""

    prompt: str
    status: GenerationStatus = GenerationStatus.IDLE


@dataclass(frozen=True)
class Notice:
    """A transient user-facing notification."""

    level: str  # "success" | "error" | "info"
    text: str
