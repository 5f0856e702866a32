"""Enlistment — a validated virtualized working-copy root.

Layout on disk::

    <enlistment root>/
        .vfs/        dot folder marking the root
        src/         the git working directory
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from vfsverb import config
from vfsverb.errors import InvalidRepoError
from vfsverb.git.process import GitProcess

logger = logging.getLogger(__name__)


def find_enlistment_root(directory: str | Path, dot_folder: str = config.DOT_FOLDER) -> Path | None:
    """Walk up from *directory* to the first ancestor holding *dot_folder*."""
    start = Path(directory).resolve()
    for candidate in (start, *start.parents):
        if (candidate / dot_folder).is_dir():
            return candidate
    return None


class Enlistment(BaseModel):
    """Paths and remote of one enlistment; immutable for a verb's lifetime."""

    model_config = ConfigDict(frozen=True)

    enlistment_root: Path
    working_directory_root: Path
    dot_folder_root: Path
    repo_url: str
    git_bin_path: str
    hooks_root: Path

    @classmethod
    def create_from_directory(
        cls,
        directory: str | Path,
        git_bin_path: str,
        hooks_root: str | Path,
        repo_url: str | None = None,
        dot_folder: str = config.DOT_FOLDER,
    ) -> Enlistment | None:
        """Resolve the enlistment containing *directory*.

        Returns *None* when no ancestor is an enlistment root.  Raises
        :class:`InvalidRepoError` when a root is found but is unusable.

        Parameters
        ----------
        repo_url:
            Remote URL.  Read from ``remote.origin.url`` when *None*.
        """
        if not Path(directory).is_dir():
            raise InvalidRepoError(f"Directory '{directory}' does not exist")

        root = find_enlistment_root(directory, dot_folder)
        if root is None:
            return None

        working_dir = root / config.WORKING_DIRECTORY_NAME
        if not (working_dir / ".git").exists():
            raise InvalidRepoError(
                f"Could not find a git repository in '{working_dir}'"
            )

        if repo_url is None:
            repo_url = GitProcess(git_bin_path, working_dir).get_origin_url()
        if not repo_url:
            raise InvalidRepoError("No remote.origin.url is configured for the repo")

        enlistment = cls(
            enlistment_root=root,
            working_directory_root=working_dir,
            dot_folder_root=root / dot_folder,
            repo_url=repo_url,
            git_bin_path=git_bin_path,
            hooks_root=Path(hooks_root),
        )
        logger.debug("Resolved enlistment at %s (%s)", root, repo_url)
        return enlistment

    def git_process(self) -> GitProcess:
        """Return a :class:`GitProcess` bound to the working directory."""
        return GitProcess(self.git_bin_path, self.working_directory_root)
