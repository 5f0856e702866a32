"""vfsverb — preflight checks and the execution frame shared by every VFS verb."""

__version__ = "1.0.0"

from vfsverb.enlistment import Enlistment
from vfsverb.errors import InvalidRepoError, ReturnCode, VerbAbortedError
from vfsverb.git.process import GitProcess
from vfsverb.git.version import GitVersion, GitVersionCheck, compare_git_versions
from vfsverb.preflight.exclusion import ExclusionEnforcer
from vfsverb.preflight.reconcile import reconcile_config
from vfsverb.preflight.remote import RemoteCompatibilityChecker, RemoteConfigClient
from vfsverb.preflight.service import ServiceHealth, check_service
from vfsverb.settings import Settings, load_settings
from vfsverb.verb import VerbFrame, execute_verb

__all__ = [
    "__version__",
    # Driver
    "VerbFrame",
    "execute_verb",
    "ReturnCode",
    "VerbAbortedError",
    # Enlistment
    "Enlistment",
    "InvalidRepoError",
    # Git
    "GitProcess",
    "GitVersion",
    "GitVersionCheck",
    "compare_git_versions",
    # Preflight
    "ExclusionEnforcer",
    "RemoteCompatibilityChecker",
    "RemoteConfigClient",
    "ServiceHealth",
    "check_service",
    "reconcile_config",
    # Settings
    "Settings",
    "load_settings",
]
