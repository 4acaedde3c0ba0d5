"""Clipboard access for copying messages and page source."""

import logging
import shutil
import subprocess
import sys

from .collaborators import Clipboard

logger = logging.getLogger(__name__)


def get_clipboard_command() -> list[str] | None:
    """Return the platform's copy-to-clipboard command, if one is installed."""
    if sys.platform == "darwin":
        candidates = [["pbcopy"]]
    elif sys.platform == "win32":
        candidates = [["clip"]]
    else:  # Linux
        candidates = [["wl-copy"], ["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]]

    for command in candidates:
        if shutil.which(command[0]):
            return command
    return None


class SystemClipboard(Clipboard):
    """Copies by piping text into the platform clipboard tool."""

    def __init__(self, command: list[str] | None = None):
        self.command = command or get_clipboard_command()

    def copy(self, text: str) -> bool:
        if not self.command:
            logger.warning("No clipboard command available on this system")
            return False
        try:
            subprocess.run(self.command, input=text.encode("utf-8"), check=True, timeout=5)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Failed to copy to clipboard: %s", e)
            return False
        return True


class MemoryClipboard(Clipboard):
    """Keeps the last copied text in memory."""

    def __init__(self):
        self.text: str | None = None

    def copy(self, text: str) -> bool:
        self.text = text
        return True
