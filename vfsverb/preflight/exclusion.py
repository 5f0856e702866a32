"""Best-effort antivirus exclusion for the enlistment root.

Scanning a virtualized working copy hydrates files and slows every git
command, so verbs try to keep the root excluded.  Nothing here aborts a
verb: failures only produce a warning.
"""

from __future__ import annotations

import abc
import logging
import ntpath
import subprocess
import sys
from pathlib import Path
from typing import Callable, TextIO

from vfsverb.tooling import is_admin_elevated

logger = logging.getLogger(__name__)

ELEVATION_REQUIRED_MESSAGE = "Need elevated privileges to add exclusion."


class ExclusionQueryError(Exception):
    """Raised when the current exclusion state cannot be read."""


class ExclusionProvider(abc.ABC):
    """Read and add antivirus path exclusions."""

    @abc.abstractmethod
    def is_path_excluded(self, path: str) -> bool:
        """Return *True* if *path* is excluded.

        Raises :class:`ExclusionQueryError` if the state is unknown.
        """

    @abc.abstractmethod
    def add_exclusion(self, path: str) -> tuple[bool, str]:
        """Add *path*; return ``(success, error_text)``."""


def _powershell(command: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["powershell", "-NonInteractive", "-NoProfile", "-Command", command],
        capture_output=True,
        text=True,
    )


def _normalize_windows_path(path: str) -> str:
    return ntpath.normcase(ntpath.normpath(path)).rstrip("\\")


class DefenderExclusionProvider(ExclusionProvider):
    """Windows Defender exclusions through PowerShell."""

    def is_path_excluded(self, path: str) -> bool:
        try:
            result = _powershell(
                "Get-MpPreference | Select-Object -ExpandProperty ExclusionPath"
            )
        except OSError as exc:
            raise ExclusionQueryError(str(exc)) from exc
        if result.returncode != 0:
            raise ExclusionQueryError(result.stderr.strip() or "Get-MpPreference failed")

        target = _normalize_windows_path(path)
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            excluded = _normalize_windows_path(line)
            if target == excluded or target.startswith(excluded + "\\"):
                return True
        return False

    def add_exclusion(self, path: str) -> tuple[bool, str]:
        escaped = path.replace("'", "''")
        try:
            result = _powershell(f"Add-MpPreference -ExclusionPath '{escaped}'")
        except OSError as exc:
            return False, str(exc)
        if result.returncode != 0:
            return False, result.stderr.strip() or "Add-MpPreference failed"
        return True, ""


class UnsupportedExclusionProvider(ExclusionProvider):
    """Platforms without a known antivirus integration."""

    def is_path_excluded(self, path: str) -> bool:
        raise ExclusionQueryError(f"No antivirus integration on {sys.platform}")

    def add_exclusion(self, path: str) -> tuple[bool, str]:
        return False, f"No antivirus integration on {sys.platform}"


def default_exclusion_provider() -> ExclusionProvider:
    if sys.platform == "win32":
        return DefenderExclusionProvider()
    return UnsupportedExclusionProvider()


class ExclusionEnforcer:
    """Check and, with admin rights, add an exclusion for a directory.

    Parameters
    ----------
    provider:
        Antivirus integration.  Defaults to the platform provider.
    output:
        Stream receiving the warning blocks.
    is_elevated:
        Privilege check, :func:`vfsverb.tooling.is_admin_elevated` by default.
    """

    def __init__(
        self,
        provider: ExclusionProvider | None = None,
        output: TextIO | None = None,
        is_elevated: Callable[[], bool] = is_admin_elevated,
    ) -> None:
        self.provider = provider or default_exclusion_provider()
        self.output = output if output is not None else sys.stdout
        self.is_elevated = is_elevated

    def ensure_excluded(self, root: str | Path) -> tuple[bool, str]:
        """Make sure *root* is excluded; return ``(excluded, message)``."""
        path = str(root)
        try:
            excluded = self.provider.is_path_excluded(path)
        except ExclusionQueryError as exc:
            logger.warning("Unable to query antivirus exclusions: %s", exc)
            self._warn([
                "WARNING: Unable to ensure that this repo is excluded from antivirus.",
                f"Please check to make sure that '{path}' is excluded.",
            ])
            return False, str(exc)

        if excluded:
            return True, ""

        add_error = ""
        if not self.is_elevated():
            add_error = ELEVATION_REQUIRED_MESSAGE
        else:
            added, add_error = self.provider.add_exclusion(path)
            if added:
                add_error = ""
                try:
                    excluded = self.provider.is_path_excluded(path)
                except ExclusionQueryError as exc:
                    add_error = f"Unable to confirm exclusion: {exc}"

        if excluded:
            logger.info("Added antivirus exclusion for %s", path)
            return True, ""

        lines = ["WARNING: This repo is not excluded from antivirus and we were unable to add an exclusion for it."]
        if add_error:
            lines.append("Unable to add exclusion: " + add_error)
        lines.append(f"Please check to make sure that '{path}' is excluded.")
        self._warn(lines)
        logger.warning("%s is not excluded from antivirus: %s", path, add_error or "unknown reason")
        return False, add_error

    def _warn(self, lines: list[str]) -> None:
        self.output.write("\n")
        for line in lines:
            self.output.write(line + "\n")
        self.output.write("\n")
