"""Preflight gates run before a verb does real work.

Each gate returns an explicit result; :class:`vfsverb.verb.VerbFrame`
decides whether a result aborts the verb or only warns.
"""

from vfsverb.preflight.exclusion import ExclusionEnforcer, ExclusionProvider, ExclusionQueryError
from vfsverb.preflight.reconcile import reconcile_config
from vfsverb.preflight.remote import (
    ClientVersion,
    RemoteCompatibilityChecker,
    RemoteConfigClient,
    RemoteVersionPolicy,
    Verdict,
    VersionRange,
    VersionValidation,
    evaluate_policy,
)
from vfsverb.preflight.service import (
    ServiceController,
    ServiceHealth,
    ServiceNotFoundError,
    ServiceStatus,
    check_service,
)

__all__ = [
    "ClientVersion",
    "ExclusionEnforcer",
    "ExclusionProvider",
    "ExclusionQueryError",
    "RemoteCompatibilityChecker",
    "RemoteConfigClient",
    "RemoteVersionPolicy",
    "ServiceController",
    "ServiceHealth",
    "ServiceNotFoundError",
    "ServiceStatus",
    "Verdict",
    "VersionRange",
    "VersionValidation",
    "check_service",
    "evaluate_policy",
    "reconcile_config",
]
