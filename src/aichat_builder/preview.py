"""Sandboxed preview handles for generated pages.

A handle is an opaque token under which the web layer serves one page's
HTML. Generated markup is untrusted, so it is always served with a CSP
``sandbox`` directive: scripts and forms work, but the page gets an opaque
origin (no access to the host's cookies or storage) and cannot navigate the
top-level document.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime

from .core import Project, utcnow

logger = logging.getLogger(__name__)

SANDBOX_POLICY = "allow-scripts allow-forms"

SANDBOX_HEADERS = {
    "Content-Security-Policy": f"sandbox {SANDBOX_POLICY}",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


@dataclass(frozen=True)
class DevicePreset:
    name: str
    label: str
    width: int
    height: int


DEVICE_PRESETS = {
    "mobile": DevicePreset("mobile", "Mobile", 375, 667),
    "tablet": DevicePreset("tablet", "Tablet", 768, 1024),
    "desktop": DevicePreset("desktop", "Desktop", 1200, 800),
}
DEFAULT_DEVICE = "desktop"


def content_digest(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RenderHandle:
    token: str
    project_id: str
    filename: str
    digest: str
    created_at: datetime = field(default_factory=utcnow)

    @property
    def url(self) -> str:
        return f"/preview/{self.token}"


class HandleRegistry:
    """Holds the content behind every live handle."""

    def __init__(self):
        self._content: dict[str, str] = {}
        self.created = 0
        self.released = 0

    def __len__(self) -> int:
        return len(self._content)

    def issue(self, project: Project) -> RenderHandle:
        token = secrets.token_urlsafe(16)
        self._content[token] = project.content
        self.created += 1
        return RenderHandle(
            token=token,
            project_id=project.id,
            filename=project.filename,
            digest=content_digest(project.content),
        )

    def release(self, handle: RenderHandle) -> None:
        if self._content.pop(handle.token, None) is not None:
            self.released += 1

    def resolve(self, token: str) -> str | None:
        return self._content.get(token)


class PreviewRenderer:
    """Keeps at most one live handle, for the active project."""

    def __init__(self, registry: HandleRegistry):
        self.registry = registry
        self.handle: RenderHandle | None = None
        self.device = DEFAULT_DEVICE
        self._project: Project | None = None

    def get_handle(self, project: Project) -> RenderHandle:
        """Point the preview at a project and return its handle.

        The existing handle is kept when the same content is shown again.
        """
        self._project = project
        if (
            self.handle is not None
            and self.handle.project_id == project.id
            and self.handle.digest == content_digest(project.content)
        ):
            return self.handle
        return self._reissue()

    def refresh(self) -> RenderHandle | None:
        """Manual refresh: always issue a fresh handle for the current project."""
        if self._project is None:
            return None
        return self._reissue()

    def set_device(self, name: str) -> DevicePreset:
        """Change the displayed frame size; the handle is left alone."""
        if name not in DEVICE_PRESETS:
            raise ValueError(f"Unknown device preset: {name!r}")
        self.device = name
        return DEVICE_PRESETS[name]

    def release(self) -> None:
        if self.handle is not None:
            self.registry.release(self.handle)
            self.handle = None

    def close(self) -> None:
        """Release the handle and forget the project; safe to call repeatedly."""
        self.release()
        self._project = None

    def iframe_attributes(self) -> dict | None:
        """Attributes for embedding the current handle in an iframe."""
        if self.handle is None:
            return None
        preset = DEVICE_PRESETS[self.device]
        return {
            "src": self.handle.url,
            "sandbox": SANDBOX_POLICY,
            "title": f"Preview of {self.handle.filename}",
            "width": preset.width,
            "height": preset.height,
        }

    def _reissue(self) -> RenderHandle:
        self.release()
        self.handle = self.registry.issue(self._project)
        logger.debug("Issued preview handle for %s", self._project.id)
        return self.handle
