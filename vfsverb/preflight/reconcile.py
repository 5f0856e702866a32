"""Bring the repository-local git config up to the required baseline."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from vfsverb.config import CONFIG_BASELINE
from vfsverb.git.process import GitConfigSetting, GitError, GitResult, normalize_config_key

logger = logging.getLogger(__name__)


class GitConfigAccessor(Protocol):
    def get_all_local_config(self) -> dict[str, GitConfigSetting]: ...

    def set_in_local_config(self, key: str, value: str) -> GitResult: ...


def reconcile_config(
    accessor: GitConfigAccessor,
    baseline: Mapping[str, str] = CONFIG_BASELINE,
) -> bool:
    """Set every *baseline* key that is missing or holds another value.

    The config is read once; each drifted key gets its own set call.
    Returns *False* if the read or any set fails.  Keys already written
    stay written.
    """
    try:
        current = accessor.get_all_local_config()
    except GitError as exc:
        logger.error("Unable to read local git config: %s", exc)
        return False

    for key, expected in baseline.items():
        setting = current.get(normalize_config_key(key))
        if setting is not None and setting.has_value(expected):
            continue

        result = accessor.set_in_local_config(key, expected)
        if result.has_errors:
            logger.error(
                "Unable to set %s=%s in local git config: %s",
                key, expected, result.errors.strip(),
            )
            return False
        logger.debug("Set %s=%s", key, expected)

    return True
