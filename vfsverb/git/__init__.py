"""Git tooling — subprocess adapter and version gate."""

from vfsverb.git.process import GitConfigSetting, GitError, GitProcess, GitResult
from vfsverb.git.version import GitVersion, GitVersionCheck, compare_git_versions

__all__ = [
    "GitConfigSetting",
    "GitError",
    "GitProcess",
    "GitResult",
    "GitVersion",
    "GitVersionCheck",
    "compare_git_versions",
]
