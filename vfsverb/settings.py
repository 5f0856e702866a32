"""Settings — immutable tunables loaded once at process start."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from vfsverb import config

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".vfsverb" / "config.json"

# Every settings field, the environment variable overriding it, and its default
_CONFIG_KEYS: dict[str, dict[str, Any]] = {
    "minimum_git_version": {
        "env": "VFS_MINIMUM_GIT_VERSION",
        "default": config.MINIMUM_GIT_VERSION,
        "description": "Oldest supported git, including platform tag",
    },
    "service_name": {
        "env": "VFS_SERVICE_NAME",
        "default": config.SERVICE_NAME,
        "description": "Virtualization filter service name",
    },
    "hooks_executable": {
        "env": "VFS_HOOKS_EXECUTABLE",
        "default": config.HOOKS_EXECUTABLE_NAME,
        "description": "Hooks executable located on the PATH",
    },
    "dot_folder": {
        "env": "VFS_DOT_FOLDER",
        "default": config.DOT_FOLDER,
        "description": "Folder marking an enlistment root",
    },
    "remote_config_endpoint": {
        "env": "VFS_REMOTE_CONFIG_ENDPOINT",
        "default": config.REMOTE_CONFIG_ENDPOINT,
        "description": "Server endpoint listing allowed client versions",
    },
    "remote_config_timeout": {
        "env": "VFS_REMOTE_CONFIG_TIMEOUT",
        "default": config.REMOTE_CONFIG_TIMEOUT,
        "description": "Seconds to wait for the server config",
    },
    "log_level": {
        "env": "VFS_LOG_LEVEL",
        "default": "WARNING",
        "description": "Logging level",
    },
}


class Settings(BaseModel):
    """Tunables shared by every verb.  Never mutated after load."""

    model_config = ConfigDict(frozen=True)

    minimum_git_version: str = config.MINIMUM_GIT_VERSION
    service_name: str = config.SERVICE_NAME
    hooks_executable: str = config.HOOKS_EXECUTABLE_NAME
    dot_folder: str = config.DOT_FOLDER
    remote_config_endpoint: str = config.REMOTE_CONFIG_ENDPOINT
    remote_config_timeout: float = config.REMOTE_CONFIG_TIMEOUT
    log_level: str = "WARNING"


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load merged settings: defaults -> config.json -> env vars.

    Parameters
    ----------
    config_path:
        JSON file with field overrides.  Defaults to
        ``~/.vfsverb/config.json``; a missing file is not an error.
    """
    values: dict[str, Any] = {
        key: info["default"] for key, info in _CONFIG_KEYS.items()
    }

    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if path.is_file():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            for k, v in data.items():
                if k in _CONFIG_KEYS:
                    values[k] = v
                else:
                    logger.debug("Ignoring unknown setting %r in %s", k, path)
        except (json.JSONDecodeError, OSError, AttributeError):
            logger.debug("Could not read %s", path, exc_info=True)

    for key, info in _CONFIG_KEYS.items():
        env_val = os.environ.get(info["env"])
        if env_val is not None:
            values[key] = env_val

    return Settings(**values)


def configure_logging(level: str | None = None) -> None:
    """Apply *level* (e.g. ``"DEBUG"``) to the root logger."""
    resolved = getattr(logging, (level or "WARNING").upper(), logging.WARNING)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
