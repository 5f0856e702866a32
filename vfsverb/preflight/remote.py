"""Server-declared client version policy.

The server publishes the ranges of client versions it still accepts::

    {"AllowedVfsClientVersions": [{"Min": "0.2.173.2", "Max": null}]}

An unreachable server or an empty list only warns; a reachable server
whose ranges exclude the running client rejects it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from vfsverb.config import REMOTE_CONFIG_ENDPOINT, REMOTE_CONFIG_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class ClientVersion:
    """Dotted version of up to four integers; missing parts count as 0."""

    parts: tuple[int, int, int, int]

    @classmethod
    def parse(cls, text: str) -> ClientVersion:
        pieces = str(text).strip().split(".")
        if not 1 <= len(pieces) <= 4:
            raise ValueError(f"Invalid version {text!r}")
        try:
            numbers = [int(p) for p in pieces]
        except ValueError:
            raise ValueError(f"Invalid version {text!r}") from None
        if any(n < 0 for n in numbers):
            raise ValueError(f"Invalid version {text!r}")
        numbers += [0] * (4 - len(numbers))
        return cls(tuple(numbers))  # type: ignore[arg-type]

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)


class VersionRange(BaseModel):
    """Inclusive client version window; no ``max`` means unbounded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    min: ClientVersion = Field(alias="Min")
    max: Optional[ClientVersion] = Field(default=None, alias="Max")

    @field_validator("min", "max", mode="before")
    @classmethod
    def _parse_version(cls, value: object) -> object:
        if value is None or isinstance(value, ClientVersion):
            return value
        return ClientVersion.parse(str(value))

    def contains(self, version: ClientVersion) -> bool:
        return version >= self.min and (self.max is None or version <= self.max)

    def __str__(self) -> str:
        return f"[{self.min}, {self.max if self.max is not None else '*'}]"


class RemoteVersionPolicy(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allowed_client_versions: list[VersionRange] = Field(
        default_factory=list, alias="AllowedVfsClientVersions",
    )

    @field_validator("allowed_client_versions", mode="before")
    @classmethod
    def _null_means_empty(cls, value: object) -> object:
        # A config without ranges is "not configured", not malformed
        return [] if value is None else value


class Verdict(enum.Enum):
    ACCEPTED = "accepted"
    WARNED = "warned"
    REJECTED = "rejected"


class VersionValidation(BaseModel):
    """Outcome of checking the running client against the server policy."""

    verdict: Verdict
    message: str = ""
    matched_range: Optional[int] = None


class RemoteConfigSource(Protocol):
    repo_url: str

    def query_config(self) -> RemoteVersionPolicy | None: ...


class RemoteConfigClient:
    """Fetch the version policy from ``<repo_url>/vfs/config``.

    Parameters
    ----------
    repo_url:
        Remote repository URL of the enlistment.
    session:
        Optional :class:`requests.Session` (or compatible object).
    timeout:
        Seconds to wait for the response.
    """

    def __init__(
        self,
        repo_url: str,
        *,
        endpoint: str = REMOTE_CONFIG_ENDPOINT,
        session: requests.Session | None = None,
        timeout: float = REMOTE_CONFIG_TIMEOUT,
    ) -> None:
        self.repo_url = repo_url
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def config_url(self) -> str:
        return f"{self.repo_url.rstrip('/')}/{self.endpoint.lstrip('/')}"

    def query_config(self) -> RemoteVersionPolicy | None:
        """Return the server policy, or *None* if it cannot be obtained."""
        try:
            resp = self.session.get(self.config_url, timeout=self.timeout)
            resp.raise_for_status()
            return RemoteVersionPolicy.model_validate(resp.json())
        except requests.RequestException as exc:
            logger.warning("Config query to %s failed: %s", self.config_url, exc)
        except (ValueError, ValidationError) as exc:
            logger.warning("Malformed config from %s: %s", self.config_url, exc)
        return None


def evaluate_policy(
    current: ClientVersion,
    policy: RemoteVersionPolicy | None,
    source_url: str = "",
) -> VersionValidation:
    """Match *current* against the ranges of *policy* in server order."""
    if policy is None or not policy.allowed_client_versions:
        if policy is None:
            message = "Could not query valid VFS versions from: " + quote(source_url, safe=":/?#[]@!$&'()*+,;=%")
        else:
            message = "Server not configured to provide supported VFS versions"
        return VersionValidation(verdict=Verdict.WARNED, message=message)

    for index, version_range in enumerate(policy.allowed_client_versions):
        if version_range.contains(current):
            return VersionValidation(
                verdict=Verdict.ACCEPTED,
                message=f"Supported version range {version_range}",
                matched_range=index,
            )

    return VersionValidation(
        verdict=Verdict.REJECTED,
        message=f"VFS version {current} is not supported",
    )


class RemoteCompatibilityChecker:
    """Fetch the policy once and evaluate the running client against it."""

    def __init__(self, client: RemoteConfigSource) -> None:
        self.client = client

    def check(self, current: ClientVersion | str) -> VersionValidation:
        if not isinstance(current, ClientVersion):
            current = ClientVersion.parse(current)
        policy = self.client.query_config()
        validation = evaluate_policy(current, policy, self.client.repo_url)
        if validation.verdict is Verdict.ACCEPTED:
            logger.info("Client version %s validated: %s", current, validation.message)
        elif validation.verdict is Verdict.WARNED:
            logger.warning("Unable to validate client version: %s", validation.message)
        else:
            logger.error(validation.message)
        return validation
