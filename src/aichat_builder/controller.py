"""Lifecycle of a single generation request.

One controller per session. Its state machine is::

    idle -> pending -> fulfilled | failed -> idle

Only one request may be pending at a time; any further submission while
pending is rejected with RequestPendingError, so responses can never be
applied out of order.
"""

import logging
from typing import Callable

from .collaborators import Generator
from .conversation import ConversationLog
from .core import GenerationRequest, GenerationStatus, Message, Notice, Project, new_id, utcnow
from .errors import GenerationError, NetworkError, PersistenceError, RequestPendingError
from .progress import ProgressTracker
from .projects import ProjectStore

logger = logging.getLogger(__name__)

StatusListener = Callable[[GenerationStatus], None]
NoticeListener = Callable[[Notice], None]
ProjectListener = Callable[[Project], None]


def success_message(filename: str) -> str:
    return (
        f'I\'ve created a beautiful HTML page called "{filename}". The page includes modern '
        "styling and is fully responsive. You can preview it in the right panel and "
        "download it when ready!"
    )


def generation_error_message(error: str) -> str:
    return (
        f"I apologize, but I encountered an error: {error}. "
        "Please try again with a different request."
    )


def network_error_message(error: str) -> str:
    return (
        f"I apologize, but I encountered a technical error ({error}). "
        "Please check your internet connection and try again."
    )


class GenerationController:
    """Drives generation requests and fans their outcome out to the log and store."""

    def __init__(
        self,
        log: ConversationLog,
        store: ProjectStore,
        generator: Generator,
        progress: ProgressTracker | None = None,
        on_status: StatusListener | None = None,
        on_notice: NoticeListener | None = None,
        on_project: ProjectListener | None = None,
    ):
        self.log = log
        self.store = store
        self.generator = generator
        self.progress = progress or ProgressTracker()
        self.on_status = on_status
        self.on_notice = on_notice
        self.on_project = on_project
        self.status = GenerationStatus.IDLE
        self.request: GenerationRequest | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == GenerationStatus.PENDING

    def ensure_idle(self) -> None:
        if self.is_pending:
            raise RequestPendingError("A generation request is already in progress")

    async def submit(self, text: str) -> GenerationRequest:
        """Append the user's message and generate a page for it."""
        prompt = (text or "").strip()
        if not prompt:
            raise ValueError("Prompt is required")
        self.ensure_idle()

        self.log.append(Message.user(prompt))
        return await self._run(prompt)

    async def edit_message(self, message_id: str, new_content: str) -> GenerationRequest | None:
        """Rewrite a user message, drop the later ones and generate again.

        Returns None (and changes nothing) if the edit does not apply.
        """
        self.ensure_idle()
        prompt = self.log.edit_message(message_id, new_content)
        if prompt is None:
            return None
        return await self._run(prompt)

    async def regenerate_from(self, message_id: str) -> GenerationRequest | None:
        """Drop an assistant reply and everything after it, then generate again."""
        self.ensure_idle()
        prompt = self.log.regenerate_from(message_id)
        if prompt is None:
            return None
        return await self._run(prompt)

    async def retry(self) -> GenerationRequest | None:
        """Resubmit the last user prompt verbatim as a new submission."""
        self.ensure_idle()
        last = self.log.last_user_message()
        if last is None:
            return None
        return await self.submit(last.content)

    def close(self) -> None:
        self.progress.stop()

    # ── Private helpers ──────────────────────────────────────────────

    async def _run(self, prompt: str) -> GenerationRequest:
        request = GenerationRequest(prompt=prompt)
        self.request = request
        self._transition(request, GenerationStatus.PENDING)
        self.progress.start()

        try:
            result = await self.generator.generate(prompt)
        except GenerationError as e:
            self._fail(request, str(e), generation_error_message(str(e)))
        except NetworkError as e:
            self._fail(request, str(e), network_error_message(str(e)), notice="Connection error")
        except Exception as e:
            logger.exception("Unexpected error while generating for prompt %r", prompt[:80])
            detail = str(e) or "Unknown error occurred"
            self._fail(request, detail, generation_error_message(detail))
        else:
            self._fulfil(request, result.filename, result.content)
        finally:
            self.progress.reset()
            self.request = None
            self._transition(request, GenerationStatus.IDLE)

        return request

    def _fulfil(self, request: GenerationRequest, filename: str, content: str) -> None:
        now = utcnow()
        project = Project(id=new_id(), filename=filename, content=content, created_at=now, updated_at=now)
        try:
            self.store.create(project)
        except PersistenceError as e:
            self._fail(request, str(e), generation_error_message(f"the page could not be saved ({e})"))
            return

        self.progress.complete()
        self.log.append(Message.assistant(success_message(filename)))
        self._transition(request, GenerationStatus.FULFILLED)
        self._notify(Notice("success", f'Created "{project.html_filename}"'))
        if self.on_project is not None:
            self.on_project(project)

    def _fail(self, request: GenerationRequest, error: str, text: str, notice: str | None = None) -> None:
        logger.warning("Generation failed: %s", error)
        self.progress.stop()
        self.log.append(Message.assistant(text))
        self._transition(request, GenerationStatus.FAILED)
        self._notify(Notice("error", notice or error or "Failed to generate HTML"))

    def _transition(self, request: GenerationRequest, status: GenerationStatus) -> None:
        if status != GenerationStatus.IDLE:
            request.status = status
        self.status = status
        if self.on_status is not None:
            self.on_status(status)

    def _notify(self, notice: Notice) -> None:
        if self.on_notice is not None:
            self.on_notice(notice)
