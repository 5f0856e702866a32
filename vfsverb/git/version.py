"""GitVersion — parse ``git --version`` output and gate on a minimum.

Versions look like ``2.14.1.vfs.1.0``: three numeric components, then an
optional platform tag with its own revision numbers.  The platform tag
must match the minimum exactly; only then are the numbers compared.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from vfsverb.errors import GitVersionParseError

GIT_VERSION_PREFIX = "git version "

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    r"(?:\.(?P<platform>[A-Za-z][A-Za-z0-9_-]*)"
    r"(?:\.(?P<revision>\d+)(?:\.(?P<minor_revision>\d+))?)?)?"
    r"(?:\.[0-9A-Za-z.]*)?$"
)


class GitVersionCheck(enum.Enum):
    """Outcome of comparing an installed git against the minimum."""

    OK = "ok"
    WRONG_PLATFORM = "wrong_platform"
    TOO_OLD = "too_old"


@dataclass(frozen=True)
class GitVersion:
    major: int
    minor: int
    patch: int
    platform: str = ""
    revision: int = 0
    minor_revision: int = 0

    @classmethod
    def parse(cls, text: str) -> GitVersion:
        """Parse *text*, dropping a leading ``"git version "`` if present.

        Raises :class:`GitVersionParseError` for anything else.
        """
        version = text.strip()
        if version.startswith(GIT_VERSION_PREFIX):
            version = version[len(GIT_VERSION_PREFIX):].strip()

        match = _VERSION_RE.match(version)
        if match is None:
            raise GitVersionParseError(f"Unable to parse git version {version!r}")

        return cls(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            platform=match["platform"] or "",
            revision=int(match["revision"] or 0),
            minor_revision=int(match["minor_revision"] or 0),
        )

    @property
    def numbers(self) -> tuple[int, int, int, int, int]:
        return (self.major, self.minor, self.patch, self.revision, self.minor_revision)

    def is_less_than(self, other: GitVersion) -> bool:
        return self.numbers < other.numbers

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.platform:
            text += f".{self.platform}.{self.revision}.{self.minor_revision}"
        return text


def compare_git_versions(installed: GitVersion, minimum: GitVersion) -> GitVersionCheck:
    """Gate *installed* against *minimum*.

    A platform mismatch wins over any numeric ordering.
    """
    if installed.platform != minimum.platform:
        return GitVersionCheck.WRONG_PLATFORM
    if installed.is_less_than(minimum):
        return GitVersionCheck.TOO_OLD
    return GitVersionCheck.OK
