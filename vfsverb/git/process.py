"""GitProcess — the few git calls a verb needs before doing real work.

All git operations use :func:`subprocess.run`; no GitPython dependency.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git subprocess fails and the caller needs its output."""


class GitResult(BaseModel):
    """Captured outcome of one git invocation."""

    output: str = ""
    errors: str = ""
    return_code: int = 0

    @property
    def has_errors(self) -> bool:
        return self.return_code != 0


class GitConfigSetting(BaseModel):
    """All values git reports for one config key."""

    name: str
    values: list[str] = Field(default_factory=list)

    def has_value(self, value: str) -> bool:
        return value in self.values


def normalize_config_key(key: str) -> str:
    """Lower-case the section and name of *key*, keeping any subsection.

    ``git config --list`` reports ``core.preloadindex`` for
    ``core.preloadIndex``; subsections such as ``remote.Origin.url`` are
    case sensitive.
    """
    section, sep, rest = key.partition(".")
    if not sep:
        return key.lower()
    subsection, dot, name = rest.rpartition(".")
    if not dot:
        return f"{section.lower()}.{rest.lower()}"
    return f"{section.lower()}.{subsection}.{name.lower()}"


class GitProcess:
    """Run git against one working directory.

    Parameters
    ----------
    git_bin_path:
        Full path to the git executable.
    working_directory:
        Directory the commands run in.
    """

    def __init__(
        self,
        git_bin_path: str | Path,
        working_directory: str | Path | None = None,
    ) -> None:
        self.git_bin_path = str(git_bin_path)
        self.working_directory = working_directory

    def run(self, *args: str) -> GitResult:
        """Execute ``git <args>`` and capture its output."""
        logger.debug("git %s (cwd=%s)", " ".join(args), self.working_directory)
        try:
            completed = subprocess.run(
                [self.git_bin_path, *args],
                cwd=self.working_directory,
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            logger.warning("Unable to start git: %s", exc)
            return GitResult(errors=str(exc), return_code=-1)
        return GitResult(
            output=completed.stdout,
            errors=completed.stderr,
            return_code=completed.returncode,
        )

    def version(self) -> GitResult:
        """Return the result of ``git --version``."""
        return self.run("--version")

    def get_all_local_config(self) -> dict[str, GitConfigSetting]:
        """Read every key of the repository-local config in one call.

        Keys are normalised with :func:`normalize_config_key`.  Raises
        :class:`GitError` if git cannot list the config.
        """
        result = self.run("config", "--local", "--list", "-z")
        if result.has_errors:
            raise GitError(
                f"git config --local --list failed (rc={result.return_code}): "
                f"{result.errors.strip()}"
            )

        settings: dict[str, GitConfigSetting] = {}
        for entry in result.output.split("\0"):
            if not entry:
                continue
            # -z separates key from value with a newline; a bare key means "true"
            key, sep, value = entry.partition("\n")
            if not sep:
                value = "true"
            key = normalize_config_key(key)
            settings.setdefault(key, GitConfigSetting(name=key)).values.append(value)
        return settings

    def set_in_local_config(self, key: str, value: str) -> GitResult:
        """Set a single key in the repository-local config."""
        return self.run("config", "--local", key, value)

    def get_origin_url(self) -> str:
        """Return ``remote.origin.url`` or ``""`` if it is not set."""
        result = self.run("config", "--local", "--get", "remote.origin.url")
        if result.has_errors:
            return ""
        return result.output.strip()
