"""Exit codes and the exceptions shared across verbs."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vfsverb.verb import VerbFrame


class ReturnCode(enum.IntEnum):
    """Process exit codes reported by a verb."""

    SUCCESS = 0
    PARSING_ERROR = 1
    GENERIC_ERROR = 3


class VerbAbortedError(Exception):
    """Unwinds a verb to the boundary of the frame that raised it.

    The message has already been written to the frame's output and the
    exit code recorded on the frame before this is raised.
    """

    def __init__(self, frame: VerbFrame) -> None:
        super().__init__(f"verb {frame.name!r} aborted")
        self.frame = frame


class InvalidRepoError(Exception):
    """Raised when a directory is not a usable enlistment."""


class GitVersionParseError(ValueError):
    """Raised when git version text cannot be parsed."""
