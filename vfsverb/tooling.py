"""Locate installed tooling and check process privileges."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def is_admin_elevated() -> bool:
    """Return *True* if the current process runs with admin rights."""
    if sys.platform == "win32":
        import ctypes

        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            logger.debug("IsUserAnAdmin unavailable", exc_info=True)
            return False
    return os.geteuid() == 0


class ToolingLocator:
    """Find git and companion executables on the ``PATH``.

    Parameters
    ----------
    path:
        Search path override.  Defaults to the ``PATH`` environment
        variable at call time.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = path

    def find_installed_git_bin_path(self) -> str:
        """Return the full path of the git executable, or ``""``."""
        found = shutil.which("git", path=self.path)
        logger.debug("git resolved to %r", found)
        return found or ""

    def find_directory_containing(self, name: str) -> Path | None:
        """Return the first ``PATH`` directory holding *name*, or *None*.

        On Windows ``name.exe`` also matches.
        """
        search = self.path if self.path is not None else os.environ.get("PATH", "")
        candidates = [name]
        if sys.platform == "win32" and not name.lower().endswith(".exe"):
            candidates.append(name + ".exe")

        for entry in search.split(os.pathsep):
            if not entry:
                continue
            directory = Path(entry)
            for candidate in candidates:
                if (directory / candidate).is_file():
                    return directory
        return None
