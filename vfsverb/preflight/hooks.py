"""Check the hooks executable ships from the same build as the tool."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def hooks_executable_path(hooks_root: str | Path, name: str) -> Path:
    path = Path(hooks_root) / name
    if sys.platform == "win32" and not path.suffix:
        path = path.with_suffix(".exe")
    return path


def read_hooks_version(hooks_root: str | Path, name: str) -> str | None:
    """Return the version the hooks executable reports, or *None*."""
    exe = hooks_executable_path(hooks_root, name)
    try:
        result = subprocess.run([str(exe), "--version"], capture_output=True, text=True)
    except OSError as exc:
        logger.warning("Unable to run %s: %s", exe, exc)
        return None
    if result.returncode != 0:
        logger.warning("%s --version failed (rc=%s)", exe, result.returncode)
        return None
    return result.stdout.strip()
