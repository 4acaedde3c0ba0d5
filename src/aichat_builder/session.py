"""The session context: everything one user of the tool is working with.

A BuilderSession owns the conversation log, the project store, the active
project pointer, the preview, the input history, the draft and the bulk
selection. All of it is mutated from a single asyncio task at a time; only
the generation call itself suspends.
"""

import logging
from collections import deque

from .collaborators import Clipboard, Exporter, Generator, KeyValueStore
from .controller import GenerationController, StatusListener
from .conversation import ConversationLog
from .core import GenerationRequest, Message, Notice, Project
from .errors import PersistenceError
from .history import DraftStore, InputHistory
from .preview import HandleRegistry, PreviewRenderer
from .progress import ProgressTracker
from .projects import HTML_MIME_TYPE, ProjectStore

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50


class BuilderSession:
    def __init__(
        self,
        kv: KeyValueStore,
        generator: Generator,
        exporter: Exporter,
        clipboard: Clipboard,
        registry: HandleRegistry | None = None,
        progress_interval: float = 0.5,
        on_status: StatusListener | None = None,
    ):
        self.log = ConversationLog()
        self.store = ProjectStore(kv)
        self.selection = self.store.new_selection()
        self.history = InputHistory(kv)
        self.draft = DraftStore(kv)
        self.renderer = PreviewRenderer(registry or HandleRegistry())
        self.exporter = exporter
        self.clipboard = clipboard
        self.notifications: deque[Notice] = deque(maxlen=MAX_NOTIFICATIONS)
        self.active_project_id: str | None = None
        self.controller = GenerationController(
            self.log,
            self.store,
            generator,
            progress=ProgressTracker(interval=progress_interval),
            on_status=on_status,
            on_notice=self.notify,
            on_project=self._on_project_generated,
        )

    @property
    def active_project(self) -> Project | None:
        if self.active_project_id is None:
            return None
        return self.store.get(self.active_project_id)

    def load(self) -> PersistenceError | None:
        """Restore saved projects and pick up a pending project handoff."""
        error = self.store.load()
        if error is not None:
            self.notify(Notice("error", "Saved projects could not be read; starting with an empty list"))

        try:
            handoff = self.store.take_handoff()
        except PersistenceError as e:
            logger.warning("Project handoff could not be read: %s", e)
            handoff = None
        if handoff is not None:
            project = self.store.get(handoff.id)
            if project is not None:
                self._activate(project)
        return error

    def notify(self, notice: Notice) -> None:
        self.notifications.append(notice)

    def drain_notifications(self) -> list[Notice]:
        notices = list(self.notifications)
        self.notifications.clear()
        return notices

    # ── Conversation ─────────────────────────────────────────────────

    async def submit(self, text: str) -> GenerationRequest:
        prompt = (text or "").strip()
        if not prompt:
            raise ValueError("Prompt is required")
        self.controller.ensure_idle()

        try:
            self.history.push(prompt)
        except PersistenceError as e:
            logger.error("Failed to save input history: %s", e)
            self.notify(Notice("error", "Failed to save input history"))
        try:
            self.draft.clear()
        except PersistenceError as e:
            logger.error("Failed to clear draft: %s", e)
        return await self.controller.submit(prompt)

    async def retry(self) -> GenerationRequest | None:
        return await self.controller.retry()

    async def edit_message(self, message_id: str, new_content: str) -> GenerationRequest | None:
        return await self.controller.edit_message(message_id, new_content)

    async def regenerate_from(self, message_id: str) -> GenerationRequest | None:
        return await self.controller.regenerate_from(message_id)

    def save_draft(self, text: str) -> bool:
        try:
            self.draft.save(text)
        except PersistenceError as e:
            logger.error("Failed to save draft: %s", e)
            self.notify(Notice("error", "Failed to save draft"))
            return False
        return True

    def recall_history(self, direction: str, current_index: int) -> tuple[int, str]:
        return self.history.navigate(direction, current_index)

    # ── Projects ─────────────────────────────────────────────────────

    def new_project(self) -> None:
        """Start over: no active project, empty conversation."""
        self.controller.ensure_idle()
        self._deactivate()

    def select_project(self, project_id: str) -> Project | None:
        self.controller.ensure_idle()
        project = self.store.get(project_id)
        if project is None:
            return None
        self._activate(project)
        return project

    def open_project(self, project_id: str) -> Project | None:
        """Hand a project over to the next session that loads."""
        project = self.store.get(project_id)
        if project is None:
            return None
        try:
            self.store.write_handoff(project)
        except PersistenceError as e:
            logger.error("Failed to hand off project %s: %s", project_id, e)
            self.notify(Notice("error", "Failed to open project"))
            return None
        return project

    def delete_project(self, project_id: str) -> bool:
        try:
            removed = self.store.delete(project_id)
        except PersistenceError as e:
            logger.error("Failed to delete project %s: %s", project_id, e)
            self.notify(Notice("error", "Failed to delete project"))
            return False

        if removed:
            if project_id == self.active_project_id:
                self._deactivate()
            self.notify(Notice("success", "Project deleted"))
        return removed

    def bulk_delete(self) -> list[str]:
        ids = self.selection.ids
        if not ids:
            return []
        try:
            removed = self.store.bulk_delete(ids)
        except PersistenceError as e:
            logger.error("Failed to delete %d projects: %s", len(ids), e)
            self.notify(Notice("error", "Failed to delete projects"))
            return []

        self.selection.clear()
        if self.active_project_id in removed:
            self._deactivate()
        self.notify(Notice("success", f"Deleted {len(removed)} projects"))
        return removed

    def bulk_download(self) -> list[Project]:
        ids = sorted(self.selection.ids)
        if not ids:
            return []
        exported = self.store.bulk_download(ids, self.exporter)
        self.selection.clear()
        self.notify(Notice("success", f"Downloaded {len(exported)} projects"))
        return exported

    def download_project(self, project_id: str) -> bool:
        project = self.store.get(project_id)
        if project is None:
            return False
        try:
            self.exporter.export(project.content, project.html_filename, HTML_MIME_TYPE)
        except Exception as e:
            logger.error("Download of %s failed: %s", project.html_filename, e)
            self.notify(Notice("error", "Failed to download file"))
            return False
        self.notify(Notice("success", f"Downloaded {project.html_filename}"))
        return True

    # ── Clipboard ────────────────────────────────────────────────────

    def copy_message(self, message_id: str) -> bool:
        message = self.log.get(message_id)
        if message is None:
            return False
        return self._copy(message.content, "Message copied", "Failed to copy message")

    def copy_project_code(self) -> bool:
        project = self.active_project
        if project is None:
            return False
        return self._copy(project.content, "Code copied to clipboard", "Failed to copy code")

    def close(self) -> None:
        self.controller.close()
        self.renderer.close()

    # ── Private helpers ──────────────────────────────────────────────

    def _copy(self, text: str, ok: str, failed: str) -> bool:
        if self.clipboard.copy(text):
            self.notify(Notice("success", ok))
            return True
        self.notify(Notice("error", failed))
        return False

    def _activate(self, project: Project) -> None:
        self.active_project_id = project.id
        self.log.clear()
        self.log.append(Message.assistant(f"Loaded project: {project.filename}"))
        self.renderer.get_handle(project)

    def _deactivate(self) -> None:
        self.active_project_id = None
        self.log.clear()
        self.renderer.close()

    def _on_project_generated(self, project: Project) -> None:
        self.active_project_id = project.id
        self.renderer.get_handle(project)
