"""FastAPI web server for aichat-builder."""

import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, Field

from .clipboard import SystemClipboard
from .config import get_downloads_path, get_state_db_path, load_settings
from .core import GenerationRequest, Message, Project
from .errors import ConfigurationError, GenerationError, NetworkError, RequestPendingError
from .export import DirectoryExporter, safe_filename
from .generation import GroqGenerator
from .history import DOWN, UP
from .preview import DEVICE_PRESETS, SANDBOX_HEADERS
from .projects import HTML_MIME_TYPE, SortKey
from .session import BuilderSession
from .storage import SqliteKeyValueStore

logger = logging.getLogger(__name__)

app = FastAPI(title="aichat-builder", version="0.1.0")

# Session and generator caches (populated on first request)
_session: BuilderSession | None = None
_generator: GroqGenerator | None = None


def create_session() -> BuilderSession:
    """Build the session backed by the on-disk state database."""
    generator = _get_generator()
    session = BuilderSession(
        kv=SqliteKeyValueStore(get_state_db_path()),
        generator=generator,
        exporter=DirectoryExporter(get_downloads_path()),
        clipboard=SystemClipboard(),
    )
    session.load()
    return session


def _get_generator() -> GroqGenerator:
    global _generator
    if _generator is None:
        _generator = GroqGenerator(load_settings())
    return _generator


def _get_session() -> BuilderSession:
    """Lazily create and cache the shared session."""
    global _session
    if _session is None:
        try:
            _session = create_session()
        except ConfigurationError as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info("Session ready with %d projects", len(_session.store))
    return _session


# ── Request bodies ───────────────────────────────────────────────


class GenerateBody(BaseModel):
    prompt: str = ""


class SubmitBody(BaseModel):
    content: str = Field(..., description="The user's request in plain text.")


class EditBody(BaseModel):
    content: str


class IdsBody(BaseModel):
    ids: list[str] | None = Field(default=None, description="Defaults to the current selection.")


class DeviceBody(BaseModel):
    device: str


class DraftBody(BaseModel):
    text: str = ""


# ── Serialization ────────────────────────────────────────────────


def _message_to_dict(msg: Message) -> dict:
    return {
        "id": msg.id,
        "role": msg.role.value,
        "content": msg.content,
        "timestamp": msg.timestamp.isoformat(),
    }


def _project_to_dict(project: Project, include_content: bool = False) -> dict:
    data = {
        "id": project.id,
        "filename": project.filename,
        "created_at": project.created_at.isoformat(),
        "updated_at": project.updated_at.isoformat(),
        "size": len(project.content),
    }
    if include_content:
        data["htmlContent"] = project.content
    return data


def _request_to_dict(request: GenerationRequest | None) -> dict | None:
    if request is None:
        return None
    return {"prompt": request.prompt, "status": request.status.value}


def _session_to_dict(session: BuilderSession) -> dict:
    return {
        "status": session.controller.status.value,
        "active_project_id": session.active_project_id,
        "messages": [_message_to_dict(m) for m in session.log],
        "progress": session.controller.progress.snapshot(),
    }


def _preview_to_dict(session: BuilderSession) -> dict:
    renderer = session.renderer
    return {
        "project_id": renderer.handle.project_id if renderer.handle else None,
        "device": renderer.device,
        "devices": {name: {"width": p.width, "height": p.height, "label": p.label} for name, p in DEVICE_PRESETS.items()},
        "iframe": renderer.iframe_attributes(),
    }


def _replace_selection(session: BuilderSession, ids: list[str]) -> None:
    session.selection.clear()
    for project_id in ids:
        session.selection.add(project_id)


async def _run_generation(coro) -> dict:
    try:
        request = await coro
    except RequestPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session = _get_session()
    return {"request": _request_to_dict(request), "session": _session_to_dict(session)}


# ── Routes ───────────────────────────────────────────────────────


@app.post("/api/generate")
async def generate(body: GenerateBody):
    """Generate a page for a prompt (the transport used by HttpGenerator)."""
    if not body.prompt.strip():
        return JSONResponse({"success": False, "error": "Prompt is required"}, status_code=400)

    try:
        generator = _get_generator()
        result = await generator.generate(body.prompt)
    except (ConfigurationError, GenerationError, NetworkError) as e:
        logger.error("Generate API error: %s", e)
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    return {"success": True, "data": {"filename": result.filename, "htmlContent": result.content}}


@app.get("/api/session")
async def get_session():
    return _session_to_dict(_get_session())


@app.get("/api/session/progress")
async def get_progress():
    session = _get_session()
    return {"status": session.controller.status.value, **session.controller.progress.snapshot()}


@app.post("/api/session/messages")
async def submit_message(body: SubmitBody):
    session = _get_session()
    return await _run_generation(session.submit(body.content))


@app.patch("/api/session/messages/{message_id}")
async def edit_message(message_id: str, body: EditBody):
    session = _get_session()
    return await _run_generation(session.edit_message(message_id, body.content))


@app.post("/api/session/messages/{message_id}/regenerate")
async def regenerate_message(message_id: str):
    session = _get_session()
    return await _run_generation(session.regenerate_from(message_id))


@app.post("/api/session/messages/{message_id}/copy")
async def copy_message(message_id: str):
    session = _get_session()
    if session.log.get(message_id) is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return {"copied": await run_in_threadpool(session.copy_message, message_id)}


@app.post("/api/session/retry")
async def retry():
    session = _get_session()
    return await _run_generation(session.retry())


@app.post("/api/session/new")
async def new_project():
    session = _get_session()
    try:
        session.new_project()
    except RequestPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session_to_dict(session)


@app.get("/api/notifications")
async def get_notifications():
    session = _get_session()
    return [{"level": n.level, "text": n.text} for n in session.drain_notifications()]


@app.get("/api/projects")
async def list_projects(
    search: str = Query("", description="Case-insensitive match on filename or content"),
    sort: SortKey = Query(SortKey.DATE_DESC, description="Sort: date-desc, name-asc"),
):
    session = _get_session()
    projects = list(session.store.list(search, sort))
    return {
        "total": len(projects),
        "projects": [_project_to_dict(p) for p in projects],
        "selected": sorted(session.selection.ids),
    }


@app.get("/api/projects/{project_id}")
async def get_project(project_id: str):
    project = _get_session().store.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return _project_to_dict(project, include_content=True)


@app.post("/api/projects/{project_id}/select")
async def select_project(project_id: str):
    session = _get_session()
    try:
        project = session.select_project(project_id)
    except RequestPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return _session_to_dict(session)


@app.post("/api/projects/{project_id}/open")
async def open_project(project_id: str):
    """Leave the project for the next session to load."""
    session = _get_session()
    if project_id not in session.store:
        raise HTTPException(status_code=404, detail="Project not found")
    opened = session.open_project(project_id)
    return {"handoff": project_id if opened is not None else None}


@app.post("/api/projects/{project_id}/toggle")
async def toggle_selection(project_id: str):
    session = _get_session()
    if project_id not in session.store:
        raise HTTPException(status_code=404, detail="Project not found")
    selected = session.selection.toggle(project_id)
    return {"selected": selected, "selection": sorted(session.selection.ids)}


@app.delete("/api/projects/{project_id}")
async def delete_project(project_id: str):
    """Delete a project; deleting an absent project is a no-op."""
    session = _get_session()
    return {"deleted": session.delete_project(project_id)}


@app.post("/api/projects/bulk-delete")
async def bulk_delete(body: IdsBody):
    session = _get_session()
    if body.ids is not None:
        _replace_selection(session, body.ids)
    return {"deleted": session.bulk_delete()}


@app.post("/api/projects/bulk-download")
async def bulk_download(body: IdsBody):
    session = _get_session()
    if body.ids is not None:
        _replace_selection(session, body.ids)
    return {"downloaded": [p.id for p in session.bulk_download()]}


@app.get("/api/projects/{project_id}/download")
async def download_project(project_id: str):
    """Return the project's HTML as a file attachment."""
    project = _get_session().store.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    filename = safe_filename(project.html_filename, HTML_MIME_TYPE)
    return Response(
        content=project.content,
        media_type=HTML_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/preview")
async def get_preview():
    return _preview_to_dict(_get_session())


@app.post("/api/preview/refresh")
async def refresh_preview():
    session = _get_session()
    if session.renderer.refresh() is None:
        raise HTTPException(status_code=404, detail="No active project")
    return _preview_to_dict(session)


@app.put("/api/preview/device")
async def set_device(body: DeviceBody):
    session = _get_session()
    try:
        session.renderer.set_device(body.device)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _preview_to_dict(session)


@app.post("/api/preview/copy")
async def copy_code():
    session = _get_session()
    if session.active_project is None:
        raise HTTPException(status_code=404, detail="No active project")
    return {"copied": await run_in_threadpool(session.copy_project_code)}


@app.get("/preview/{token}")
async def serve_preview(token: str):
    """Serve a preview handle's HTML inside a CSP sandbox."""
    content = _get_session().renderer.registry.resolve(token)
    if content is None:
        raise HTTPException(status_code=404, detail="Preview expired")
    return HTMLResponse(content, headers=SANDBOX_HEADERS)


@app.get("/api/draft")
async def get_draft():
    return {"text": _get_session().draft.load()}


@app.put("/api/draft")
async def put_draft(body: DraftBody):
    session = _get_session()
    saved = session.save_draft(body.text)
    return {"text": session.draft.load(), "saved": saved}


@app.get("/api/history")
async def get_history(
    direction: str | None = Query(None, description="Navigate: up or down"),
    index: int = Query(-1, ge=-1),
):
    session = _get_session()
    if direction is None:
        return {"entries": session.history.entries}
    if direction not in (UP, DOWN):
        raise HTTPException(status_code=400, detail=f"Unknown direction: {direction}")
    new_index, text = session.recall_history(direction, index)
    return {"index": new_index, "text": text}
