"""CLI entry point for aichat-builder."""

from pathlib import Path

import click
import uvicorn

from .config import get_downloads_path, get_state_db_path, load_settings
from .errors import ConfigurationError
from .export import DirectoryExporter
from .projects import ProjectStore, SortKey
from .storage import SqliteKeyValueStore


@click.group()
def main():
    """Build HTML pages by chatting with an AI model."""
    pass


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--log-level", default="info", type=click.Choice(["debug", "info", "warning", "error"]))
def serve(port: int, host: str, log_level: str):
    """Start the web interface."""
    try:
        load_settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    click.echo(f"Starting aichat-builder on http://{host}:{port}")
    uvicorn.run("aichat_builder.server:app", host=host, port=port, reload=False, log_level=log_level)


def _open_store() -> ProjectStore:
    store = ProjectStore(SqliteKeyValueStore(get_state_db_path()))
    error = store.load()
    if error is not None:
        click.echo(f"Warning: saved projects could not be read ({error})", err=True)
    return store


@main.command("projects")
@click.option("--search", default="", help="Filter by filename or content.")
@click.option("--sort", "sort_key", default=SortKey.DATE_DESC.value,
              type=click.Choice([k.value for k in SortKey]), help="Sort order.")
def list_projects(search: str, sort_key: str):
    """List saved projects."""
    store = _open_store()
    projects = list(store.list(search, SortKey(sort_key)))
    if not projects:
        click.echo("No projects found.")
        return

    for project in projects:
        created = project.created_at.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{project.id}  {created}  {project.filename}  ({len(project.content):,} characters)")


@main.command("export")
@click.argument("project_ids", nargs=-1, required=True)
@click.option("--out", "out_dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory to write into (defaults to the downloads folder).")
def export_projects(project_ids: tuple[str, ...], out_dir: Path | None):
    """Write one or more projects as .html files."""
    store = _open_store()
    exporter = DirectoryExporter(out_dir or get_downloads_path())

    exported = store.bulk_download(project_ids, exporter)
    for path in exporter.written:
        click.echo(f"Wrote {path}")

    missing = len(project_ids) - len(exported)
    if missing:
        click.echo(f"Skipped {missing} unknown or failed project(s).", err=True)
    if not exported:
        raise click.ClickException("Nothing was exported")
