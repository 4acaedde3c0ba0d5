"""Durable collection of generated projects.

The whole collection lives under one key as a versioned JSON document::

    {"version": 1, "projects": [{"id": ..., "filename": ..., "htmlContent": ...,
                                 "createdAt": ISO-8601, "updatedAt": ISO-8601}]}

A bare JSON list of the same records (what the first releases wrote) is
read as version 0. Anything that does not validate is discarded and the
store starts empty.
"""

from __future__ import annotations

import json
import logging
import weakref
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Iterator

from .collaborators import Exporter, KeyValueStore
from .core import Project
from .errors import DuplicateIdError, PersistenceError

logger = logging.getLogger(__name__)

PROJECTS_KEY = "ai-html-projects"
HANDOFF_KEY = "selected-project"
SCHEMA_VERSION = 1
HTML_MIME_TYPE = "text/html"


class SortKey(str, Enum):
    DATE_DESC = "date-desc"
    NAME_ASC = "name-asc"


# ── Serialization ────────────────────────────────────────────────


def project_to_dict(project: Project) -> dict:
    return {
        "id": project.id,
        "filename": project.filename,
        "htmlContent": project.content,
        "createdAt": project.created_at.isoformat(),
        "updatedAt": project.updated_at.isoformat(),
    }


def project_from_dict(data) -> Project:
    """Validate one stored record; raise PersistenceError if it is malformed."""
    if not isinstance(data, dict):
        raise PersistenceError("Project record is not an object")

    fields = {}
    for key in ("id", "filename", "htmlContent", "createdAt", "updatedAt"):
        value = data.get(key)
        if not isinstance(value, str):
            raise PersistenceError(f"Project field {key!r} is missing or not a string")
        fields[key] = value

    if not fields["id"]:
        raise PersistenceError("Project id is empty")

    return Project(
        id=fields["id"],
        filename=fields["filename"],
        content=fields["htmlContent"],
        created_at=_parse_iso(fields["createdAt"]),
        updated_at=_parse_iso(fields["updatedAt"]),
    )


def serialize_projects(projects: Iterable[Project]) -> str:
    return json.dumps(
        {"version": SCHEMA_VERSION, "projects": [project_to_dict(p) for p in projects]},
        ensure_ascii=False,
    )


def deserialize_projects(blob: str) -> list[Project]:
    """Decode a stored collection, failing closed with PersistenceError."""
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, TypeError) as e:
        raise PersistenceError(f"Stored projects are not valid JSON: {e}") from e

    if isinstance(data, list):
        records = data  # version 0: bare list
    elif isinstance(data, dict):
        version = data.get("version")
        if version != SCHEMA_VERSION:
            raise PersistenceError(f"Unsupported projects schema version: {version!r}")
        records = data.get("projects")
        if not isinstance(records, list):
            raise PersistenceError("Stored projects document has no project list")
    else:
        raise PersistenceError("Stored projects have an unexpected shape")

    projects = [project_from_dict(r) for r in records]
    ids = [p.id for p in projects]
    if len(set(ids)) != len(ids):
        raise PersistenceError("Stored projects contain duplicate ids")
    return projects


def _parse_iso(value: str) -> datetime:
    """Parse a stored timestamp; one without an offset is taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise PersistenceError(f"Invalid timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ── Selection ────────────────────────────────────────────────────


class SelectionSet:
    """A set of selected project ids (for bulk download/delete)."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: set[str] = set(ids)

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    @property
    def ids(self) -> set[str]:
        return set(self._ids)

    def add(self, project_id: str) -> None:
        self._ids.add(project_id)

    def discard(self, project_id: str) -> None:
        self._ids.discard(project_id)

    def toggle(self, project_id: str) -> bool:
        """Flip membership; return True if the id is now selected."""
        if project_id in self._ids:
            self._ids.discard(project_id)
            return False
        self._ids.add(project_id)
        return True

    def select_all(self, project_ids: Iterable[str]) -> None:
        """Select every given id, or clear if they are all selected already."""
        wanted = set(project_ids)
        if wanted and wanted == self._ids:
            self._ids.clear()
        else:
            self._ids = wanted

    def clear(self) -> None:
        self._ids.clear()

    def prune(self, valid_ids: Iterable[str]) -> None:
        """Drop every id that is not in valid_ids."""
        self._ids &= set(valid_ids)


# ── Listing ──────────────────────────────────────────────────────


class ProjectListing:
    """A filtered, sorted view of the store.

    Nothing is computed until iteration, and every iteration starts over
    from the store's current contents.
    """

    def __init__(self, store: ProjectStore, filter_text: str = "", sort_key: SortKey = SortKey.DATE_DESC):
        self._store = store
        self.filter_text = filter_text or ""
        self.sort_key = SortKey(sort_key)

    def __iter__(self) -> Iterator[Project]:
        needle = self.filter_text.casefold()
        matches = [
            p for p in self._store._projects
            if not needle
            or needle in p.filename.casefold()
            or needle in p.content.casefold()
        ]
        if self.sort_key == SortKey.NAME_ASC:
            matches.sort(key=lambda p: (p.filename.casefold(), p.filename))
        else:
            matches.sort(key=lambda p: p.created_at, reverse=True)
        return iter(matches)

    def ids(self) -> list[str]:
        return [p.id for p in self]


# ── Store ────────────────────────────────────────────────────────


class ProjectStore:
    """Owns every Project and keeps the persisted copy in sync.

    Mutations build the new collection, persist it, and only then replace
    the in-memory list, so a failed write leaves both copies unchanged.
    """

    def __init__(self, kv: KeyValueStore):
        self._kv = kv
        self._projects: list[Project] = []
        self._selections: weakref.WeakSet[SelectionSet] = weakref.WeakSet()

    def __len__(self) -> int:
        return len(self._projects)

    def __contains__(self, project_id: str) -> bool:
        return self.get(project_id) is not None

    def load(self) -> PersistenceError | None:
        """Restore the collection from storage.

        A corrupt or unreadable blob is not fatal: the store is emptied and
        the error is returned for the caller to report.
        """
        try:
            blob = self._kv.get(PROJECTS_KEY)
            projects = deserialize_projects(blob) if blob is not None else []
        except PersistenceError as e:
            logger.warning("Failed to load projects, starting empty: %s", e)
            self._projects = []
            self._prune_selections()
            return e

        self._projects = projects
        self._prune_selections()
        logger.info("Loaded %d projects", len(projects))
        return None

    def get(self, project_id: str) -> Project | None:
        for project in self._projects:
            if project.id == project_id:
                return project
        return None

    def all(self) -> list[Project]:
        return list(self._projects)

    def create(self, project: Project) -> Project:
        if project.id in self:
            raise DuplicateIdError(f"Project id already exists: {project.id}")
        self._commit(self._projects + [project])
        logger.info("Created project %s (%s)", project.id, project.filename)
        return project

    def list(self, filter_text: str = "", sort_key: SortKey = SortKey.DATE_DESC) -> ProjectListing:
        return ProjectListing(self, filter_text, sort_key)

    def delete(self, project_id: str) -> bool:
        """Remove a project; return False (and do nothing) if it is absent."""
        if project_id not in self:
            return False
        self._commit([p for p in self._projects if p.id != project_id])
        return True

    def bulk_delete(self, project_ids: Iterable[str]) -> list[str]:
        """Delete every present id in one write; return the ids removed."""
        wanted = set(project_ids)
        removed = [p.id for p in self._projects if p.id in wanted]
        if removed:
            self._commit([p for p in self._projects if p.id not in wanted])
        return removed

    def bulk_download(self, project_ids: Iterable[str], exporter: Exporter) -> list[Project]:
        """Export each present project; absent ids and failed exports are skipped."""
        exported = []
        for project_id in project_ids:
            project = self.get(project_id)
            if project is None:
                continue
            try:
                exporter.export(project.content, project.html_filename, HTML_MIME_TYPE)
            except Exception as e:
                logger.error("Failed to export %s: %s", project.html_filename, e)
                continue
            exported.append(project)
        return exported

    def new_selection(self) -> SelectionSet:
        """Return a selection that the store keeps free of deleted ids."""
        selection = SelectionSet()
        self._selections.add(selection)
        return selection

    # ── One-shot handoff ─────────────────────────────────────────

    def write_handoff(self, project: Project) -> None:
        """Leave a project snapshot for the next session to pick up."""
        self._kv.set(HANDOFF_KEY, json.dumps(project_to_dict(project), ensure_ascii=False))

    def take_handoff(self) -> Project | None:
        """Read and remove the pending handoff, if any.

        The key is removed even when the snapshot is unreadable, so a stale
        or broken handoff is never replayed.
        """
        blob = self._kv.get(HANDOFF_KEY)
        if blob is None:
            return None
        self._kv.remove(HANDOFF_KEY)

        try:
            return project_from_dict(json.loads(blob))
        except (json.JSONDecodeError, PersistenceError) as e:
            logger.warning("Discarding unreadable project handoff: %s", e)
            return None

    # ── Private helpers ──────────────────────────────────────────

    def _commit(self, projects: list[Project]) -> None:
        self._kv.set(PROJECTS_KEY, serialize_projects(projects))
        self._projects = projects
        self._prune_selections()

    def _prune_selections(self) -> None:
        valid = {p.id for p in self._projects}
        for selection in list(self._selections):
            selection.prune(valid)
