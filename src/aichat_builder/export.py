"""Export (download) generated pages to the local filesystem."""

import logging
from pathlib import Path

from .collaborators import Exporter

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "text/html": ".html",
    "application/json": ".json",
    "text/markdown": ".md",
    "text/plain": ".txt",
}


def safe_filename(name: str, mime_type: str = "text/html") -> str:
    """Strip a suggested file name down to a portable one."""
    extension = MIME_EXTENSIONS.get(mime_type, "")
    stem = name
    if extension and stem.lower().endswith(extension):
        stem = stem[: -len(extension)]

    stem = "".join(c if c.isalnum() or c in "-_ " else "" for c in stem).strip()[:50]
    return f"{stem or 'untitled'}{extension}"


class DirectoryExporter(Exporter):
    """Writes each export as a new file in a downloads directory.

    Existing files are never overwritten; a numeric suffix is added instead,
    the way browsers name repeated downloads.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.written: list[Path] = []

    def export(self, content: str, suggested_name: str, mime_type: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._free_path(safe_filename(suggested_name, mime_type))
        path.write_text(content, encoding="utf-8")
        self.written.append(path)
        logger.info("Exported %s", path)

    def _free_path(self, filename: str) -> Path:
        path = self.directory / filename
        stem, suffix = path.stem, path.suffix
        counter = 1
        while path.exists():
            path = self.directory / f"{stem} ({counter}){suffix}"
            counter += 1
        return path
