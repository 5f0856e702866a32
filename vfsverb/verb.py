"""VerbFrame — the fixed driver every verb runs inside.

Usage::

    from vfsverb import execute_verb

    def run(frame, enlistment):
        frame.check_git_version(enlistment)
        frame.ensure_git_config(enlistment)
        frame.output.write("mounted\\n")

    code = execute_verb("mount", "/repos/big", run)

The frame resolves the enlistment, then hands it to ``run``.  Any check
that fails calls :meth:`VerbFrame.report_error_and_exit`, which writes the
message, records the exit code and unwinds to :meth:`VerbFrame.execute`.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional, TextIO

from vfsverb import __version__
from vfsverb.config import GIT_NOT_INSTALLED_ERROR
from vfsverb.enlistment import Enlistment
from vfsverb.errors import GitVersionParseError, InvalidRepoError, ReturnCode, VerbAbortedError
from vfsverb.git.process import GitResult
from vfsverb.git.version import GIT_VERSION_PREFIX, GitVersion, GitVersionCheck, compare_git_versions
from vfsverb.preflight.exclusion import ExclusionEnforcer, ExclusionProvider
from vfsverb.preflight.hooks import read_hooks_version
from vfsverb.preflight.reconcile import GitConfigAccessor, reconcile_config
from vfsverb.preflight.remote import (
    ClientVersion,
    RemoteCompatibilityChecker,
    RemoteConfigClient,
    RemoteConfigSource,
    Verdict,
    VersionValidation,
)
from vfsverb.preflight.service import ServiceController, ServiceHealth, check_service
from vfsverb.settings import Settings
from vfsverb.tooling import ToolingLocator, is_admin_elevated

logger = logging.getLogger(__name__)

RunStep = Callable[["VerbFrame", Enlistment], None]
PreExecuteStep = Callable[["VerbFrame", str], None]

UNSUPPORTED_VERSION_ERROR = (
    "\nERROR: Your VFS version is no longer supported.  "
    "Install the latest and try again.\n"
)


class VerbFrame:
    """Execution boundary and error reporter for one verb invocation.

    Parameters
    ----------
    name:
        Verb name used in messages.
    output:
        Stream for user-facing messages; ``sys.stdout`` by default.
    settings:
        Tunables; defaults are used when omitted.
    locator:
        Finds git and the hooks executable.
    is_elevated:
        Returns True when running with elevated privileges.
    client_version:
        Version of the running tool, checked against the server policy.
    """

    def __init__(
        self,
        name: str,
        *,
        output: TextIO | None = None,
        settings: Settings | None = None,
        locator: ToolingLocator | None = None,
        is_elevated: Callable[[], bool] = is_admin_elevated,
        client_version: str = __version__,
    ) -> None:
        self.name = name
        self.output = output if output is not None else sys.stdout
        self.settings = settings or Settings()
        self.locator = locator or ToolingLocator()
        self.is_elevated = is_elevated
        self.client_version = client_version
        self.return_code = ReturnCode.SUCCESS

    # -- Driver ---------------------------------------------------------------

    def execute(
        self,
        root_path: str | Path | None,
        run: RunStep,
        pre_execute: Optional[PreExecuteStep] = None,
    ) -> ReturnCode:
        """Resolve the enlistment at *root_path* and run the verb body.

        Aborts raised by this frame end here.  An abort raised by an outer
        frame from inside this one is re-raised and unwinds through this
        frame to its own boundary; this frame keeps its current return code.
        """
        root = str(root_path) if root_path else ""
        try:
            if pre_execute is not None:
                pre_execute(self, root)
            enlistment = self.create_enlistment(root)
            run(self, enlistment)
        except VerbAbortedError as exc:
            if exc.frame is not self:
                raise
            logger.info("%s aborted with %s", self.name, self.return_code.name)
        return self.return_code

    def report_error_and_exit(
        self,
        message: str | None,
        *args: Any,
        exit_code: ReturnCode = ReturnCode.GENERIC_ERROR,
    ) -> NoReturn:
        """Write *message*, record *exit_code* and unwind the frame.

        *message* is a :meth:`str.format` template when *args* are given.
        """
        if message:
            text = message.format(*args) if args else message
            self.output.write(text + "\n")
            logger.error("%s: %s", self.name, text.strip())

        # An abort never reports success.
        if exit_code == ReturnCode.SUCCESS:
            exit_code = ReturnCode.GENERIC_ERROR
        self.return_code = exit_code
        raise VerbAbortedError(self)

    def create_enlistment(self, root_path: str) -> Enlistment:
        git_bin_path = self.locator.find_installed_git_bin_path()
        if not git_bin_path.strip():
            self.report_error_and_exit("Error: " + GIT_NOT_INSTALLED_ERROR)

        if not root_path.strip():
            root_path = os.getcwd()

        hooks_root = self.locator.find_directory_containing(self.settings.hooks_executable)
        if hooks_root is None:
            self.report_error_and_exit("Could not find " + self.settings.hooks_executable)

        detail = ""
        enlistment = None
        try:
            enlistment = Enlistment.create_from_directory(
                root_path,
                git_bin_path,
                hooks_root,
                dot_folder=self.settings.dot_folder,
            )
        except InvalidRepoError as exc:
            detail = str(exc)

        if detail:
            self.report_error_and_exit(
                "Error: '{0}' is not a valid VFS enlistment. {1}", root_path, detail,
            )
        if enlistment is None:
            self.report_error_and_exit("Error: '{0}' is not a valid VFS enlistment", root_path)
        return enlistment

    # -- Preflight checks -----------------------------------------------------

    def check_elevated(self) -> None:
        if not self.is_elevated():
            self.report_error_and_exit("{0} must be run with elevated privileges", self.name)

    def check_service_running(self, controller: ServiceController | None = None) -> None:
        """Abort unless the virtualization service is installed and running."""
        service = self.settings.service_name
        health = check_service(service, controller)
        if health is ServiceHealth.NOT_FOUND:
            self.report_error_and_exit(
                "Error: {0} Service was not found. To resolve, re-install VFS", service,
            )
        if health is ServiceHealth.NOT_RUNNING:
            self.report_error_and_exit(
                'Error: {0} Service is not running. To resolve, run "sc start {0}" '
                "from an admin command prompt",
                service,
            )

    def check_git_version(self, enlistment: Enlistment, git: Any = None) -> GitVersion:
        """Abort unless the installed git is the right platform and new enough.

        *git* is anything with a ``version() -> GitResult`` method and
        defaults to the enlistment's git.
        """
        git = git or enlistment.git_process()
        result: GitResult = git.version()
        if result.has_errors:
            self.report_error_and_exit("Error: Unable to retrieve the git version")

        version = result.output.strip()
        if version.startswith(GIT_VERSION_PREFIX):
            version = version[len(GIT_VERSION_PREFIX):]

        try:
            installed = GitVersion.parse(version)
        except GitVersionParseError:
            installed = None
        if installed is None:
            self.report_error_and_exit("Error: Unable to parse the git version. {0}", version)

        minimum = GitVersion.parse(self.settings.minimum_git_version)
        check = compare_git_versions(installed, minimum)
        if check is GitVersionCheck.WRONG_PLATFORM:
            self.report_error_and_exit(
                "Error: Invalid version of git {0}.  Must use vfs version.", version,
            )
        if check is GitVersionCheck.TOO_OLD:
            self.report_error_and_exit(
                "Error: Installed git version {0} is less than the minimum version of {1}.",
                installed,
                minimum,
            )
        logger.debug("git %s satisfies minimum %s", installed, minimum)
        return installed

    def check_hooks_version(self, hooks_root: str | Path | None = None) -> None:
        """Abort unless the hooks executable reports our own version."""
        name = self.settings.hooks_executable
        if hooks_root is None:
            hooks_root = self.locator.find_directory_containing(name)
            if hooks_root is None:
                self.report_error_and_exit("Could not find " + name)

        hooks_version = read_hooks_version(hooks_root, name)
        if hooks_version != self.client_version:
            self.report_error_and_exit(
                "VFS.Hooks version ({0}) does not match VFS version ({1}).",
                hooks_version or "unknown",
                self.client_version,
            )

    def check_antivirus_exclusion(
        self,
        enlistment: Enlistment,
        provider: ExclusionProvider | None = None,
    ) -> bool:
        """Try to keep the enlistment excluded from antivirus; never aborts."""
        enforcer = ExclusionEnforcer(provider, self.output, self.is_elevated)
        excluded, _ = enforcer.ensure_excluded(enlistment.enlistment_root)
        return excluded

    def validate_client_version(
        self,
        enlistment: Enlistment,
        client: RemoteConfigSource | None = None,
    ) -> VersionValidation:
        """Check this client against the server's allowed version ranges.

        An unreachable or unconfigured server only warns.
        """
        if client is None:
            client = RemoteConfigClient(
                enlistment.repo_url,
                endpoint=self.settings.remote_config_endpoint,
                timeout=self.settings.remote_config_timeout,
            )

        try:
            current = ClientVersion.parse(self.client_version)
        except ValueError:
            current = None
        if current is None:
            self.report_error_and_exit("Error: Unable to parse the VFS version {0}", self.client_version)

        validation = RemoteCompatibilityChecker(client).check(current)
        if validation.verdict is Verdict.WARNED:
            self.output.write("\nWARNING: Unable to validate your VFS version\n\n")
        elif validation.verdict is Verdict.REJECTED:
            self.report_error_and_exit(UNSUPPORTED_VERSION_ERROR)
        return validation

    def ensure_git_config(
        self,
        enlistment: Enlistment,
        accessor: GitConfigAccessor | None = None,
    ) -> None:
        """Abort unless the local git config matches the baseline."""
        if not reconcile_config(accessor or enlistment.git_process()):
            self.report_error_and_exit("Error: Unable to configure git repo")

    # -- Output helpers -------------------------------------------------------

    def show_status_while_running(self, action: Callable[[], bool], message: str) -> bool:
        """Run *action* between a status line and its outcome."""
        self.output.write(message + "...")
        succeeded = bool(action())
        self.output.write("Succeeded\n" if succeeded else "Failed\n")
        return succeeded


def execute_verb(
    name: str,
    root_path: str | Path | None,
    run: RunStep,
    *,
    pre_execute: Optional[PreExecuteStep] = None,
    **frame_options: Any,
) -> ReturnCode:
    """Run one verb to completion and return its exit code.

    *frame_options* are passed to :class:`VerbFrame`.
    """
    frame = VerbFrame(name, **frame_options)
    return frame.execute(root_path, run, pre_execute)
