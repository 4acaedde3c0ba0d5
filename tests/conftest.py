"""Shared test fixtures for aichat-builder."""

from datetime import datetime, timezone

import pytest

from aichat_builder.clipboard import MemoryClipboard
from aichat_builder.collaborators import Exporter, Generator
from aichat_builder.core import GenerationResult, Project
from aichat_builder.errors import PersistenceError
from aichat_builder.projects import ProjectStore
from aichat_builder.session import BuilderSession
from aichat_builder.storage import MemoryKeyValueStore

LANDING_PAGE = "<!DOCTYPE html>\n<html>\n<head><title>Landing</title></head>\n<body><h1>Welcome</h1></body>\n</html>"


class FakeGenerator(Generator):
    """Scripted generation backend.

    Set ``error`` to make the next calls fail, or ``gate`` to an
    asyncio.Event to hold calls pending until it is set.
    """

    def __init__(self):
        self.result = GenerationResult(filename="modern-landing-page", content=LANDING_PAGE)
        self.error: Exception | None = None
        self.gate = None
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> GenerationResult:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class RecordingExporter(Exporter):
    def __init__(self, fail_on: set[str] | None = None):
        self.exports: list[tuple[str, str, str]] = []
        self.fail_on = fail_on or set()

    def export(self, content: str, suggested_name: str, mime_type: str) -> None:
        if suggested_name in self.fail_on:
            raise OSError(f"disk full while writing {suggested_name}")
        self.exports.append((content, suggested_name, mime_type))


class FailingKeyValueStore(MemoryKeyValueStore):
    """In-memory store whose reads and/or writes can be made to fail."""

    def __init__(self, initial=None, fail_reads=False, fail_writes=False):
        super().__init__(initial)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, key):
        if self.fail_reads:
            raise PersistenceError(f"cannot read {key}")
        return super().get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise PersistenceError("disk full")
        super().set(key, value)

    def remove(self, key):
        if self.fail_writes:
            raise PersistenceError("disk full")
        super().remove(key)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def exporter():
    return RecordingExporter()


@pytest.fixture
def clipboard():
    return MemoryClipboard()


@pytest.fixture
def sample_projects():
    """Three projects with distinct creation times (oldest first)."""
    return [
        Project(
            id="p-alpha",
            filename="Portfolio-dark",
            content="<html><body>My portfolio with a DARK theme</body></html>",
            created_at=datetime(2025, 1, 10, 9, 0, 0, tzinfo=timezone.utc),
            updated_at=datetime(2025, 1, 10, 9, 0, 0, tzinfo=timezone.utc),
        ),
        Project(
            id="p-bravo",
            filename="blog-layout",
            content="<html><body>Blog with sidebar</body></html>",
            created_at=datetime(2025, 1, 12, 14, 30, 0, 123456, tzinfo=timezone.utc),
            updated_at=datetime(2025, 1, 12, 15, 0, 0, tzinfo=timezone.utc),
        ),
        Project(
            id="p-charlie",
            filename="pricing-cards",
            content="<html><body>Pricing page, dark mode toggle</body></html>",
            created_at=datetime(2025, 1, 15, 8, 0, 0, tzinfo=timezone.utc),
            updated_at=datetime(2025, 1, 15, 8, 0, 0, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture
def store(kv, sample_projects):
    """A ProjectStore already holding the sample projects."""
    store = ProjectStore(kv)
    for project in sample_projects:
        store.create(project)
    return store


@pytest.fixture
def session(kv, generator, exporter, clipboard):
    """A loaded session with no saved projects."""
    session = BuilderSession(
        kv=kv,
        generator=generator,
        exporter=exporter,
        clipboard=clipboard,
        progress_interval=0.001,
    )
    session.load()
    yield session
    session.close()
