"""Verify the virtualization filter service is installed and running."""

from __future__ import annotations

import abc
import enum
import logging
import re
import subprocess
import sys

logger = logging.getLogger(__name__)

# sc.exe exit code for ERROR_SERVICE_DOES_NOT_EXIST
_SC_SERVICE_DOES_NOT_EXIST = 1060

_SC_STATE_RE = re.compile(r"STATE\s*:\s*\d+\s+(\w+)")


class ServiceNotFoundError(Exception):
    """Raised when the queried service is not installed."""


class ServiceStatus(enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    PENDING = "pending"
    UNKNOWN = "unknown"


class ServiceHealth(enum.Enum):
    RUNNING = "running"
    NOT_FOUND = "not_found"
    NOT_RUNNING = "not_running"


class ServiceController(abc.ABC):
    """Query the state of an operating-system service."""

    @abc.abstractmethod
    def query_status(self, name: str) -> ServiceStatus:
        """Return the status of *name*.

        Raises :class:`ServiceNotFoundError` if it is not installed.
        """


class ScServiceController(ServiceController):
    """Windows service control manager via ``sc query``."""

    def query_status(self, name: str) -> ServiceStatus:
        try:
            result = subprocess.run(["sc", "query", name], capture_output=True, text=True)
        except OSError as exc:
            logger.warning("sc unavailable: %s", exc)
            raise ServiceNotFoundError(name) from exc
        if result.returncode == _SC_SERVICE_DOES_NOT_EXIST:
            raise ServiceNotFoundError(name)
        if result.returncode != 0:
            logger.warning("sc query %s failed (rc=%s)", name, result.returncode)
            return ServiceStatus.UNKNOWN

        match = _SC_STATE_RE.search(result.stdout)
        if match is None:
            return ServiceStatus.UNKNOWN
        state = match.group(1).upper()
        if state == "RUNNING":
            return ServiceStatus.RUNNING
        if state == "STOPPED":
            return ServiceStatus.STOPPED
        if state.endswith("_PENDING"):
            return ServiceStatus.PENDING
        return ServiceStatus.UNKNOWN


class SystemdServiceController(ServiceController):
    """systemd units via ``systemctl show``."""

    def query_status(self, name: str) -> ServiceStatus:
        try:
            result = subprocess.run(
                ["systemctl", "show", name, "--property=LoadState,ActiveState"],
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            logger.warning("systemctl unavailable: %s", exc)
            raise ServiceNotFoundError(name) from exc

        props: dict[str, str] = {}
        for line in result.stdout.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                props[key.strip()] = value.strip()

        if result.returncode != 0 or props.get("LoadState") in (None, "not-found"):
            raise ServiceNotFoundError(name)

        active = props.get("ActiveState", "")
        if active == "active":
            return ServiceStatus.RUNNING
        if active in ("inactive", "failed"):
            return ServiceStatus.STOPPED
        if active in ("activating", "deactivating", "reloading"):
            return ServiceStatus.PENDING
        return ServiceStatus.UNKNOWN


def default_service_controller() -> ServiceController:
    if sys.platform == "win32":
        return ScServiceController()
    return SystemdServiceController()


def check_service(name: str, controller: ServiceController | None = None) -> ServiceHealth:
    """Classify the service *name* as running, stopped, or missing."""
    controller = controller or default_service_controller()
    try:
        status = controller.query_status(name)
    except ServiceNotFoundError:
        logger.error("Service %s was not found", name)
        return ServiceHealth.NOT_FOUND

    if status is ServiceStatus.RUNNING:
        logger.debug("Service %s is running", name)
        return ServiceHealth.RUNNING

    logger.error("Service %s is not running (status=%s)", name, status.value)
    return ServiceHealth.NOT_RUNNING
