"""Tests for the verb execution frame and enlistment resolution.

Enlistments are built in tmp_path with a real git working directory
(subprocess git); the service, antivirus and network collaborators are
replaced with in-memory fakes.
"""

from __future__ import annotations

import io
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from vfsverb import execute_verb
from vfsverb.enlistment import Enlistment, find_enlistment_root
from vfsverb.errors import InvalidRepoError, ReturnCode, VerbAbortedError
from vfsverb.git.process import GitConfigSetting, GitResult
from vfsverb.preflight.exclusion import ExclusionProvider
from vfsverb.preflight.remote import RemoteVersionPolicy, Verdict
from vfsverb.preflight.service import ServiceController, ServiceNotFoundError, ServiceStatus
from vfsverb.settings import Settings
from vfsverb.verb import VerbFrame

GIT = shutil.which("git")

requires_git = pytest.mark.skipif(GIT is None, reason="git is not installed")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeLocator:
    def __init__(self, git_bin_path: str | None, hooks_root: Path | None) -> None:
        self.git_bin_path = git_bin_path or ""
        self.hooks_root = hooks_root
        self.lookups: list[str] = []

    def find_installed_git_bin_path(self) -> str:
        self.lookups.append("git")
        return self.git_bin_path

    def find_directory_containing(self, name: str) -> Path | None:
        self.lookups.append(name)
        return self.hooks_root


class FakeGit:
    def __init__(self, output: str = "", return_code: int = 0) -> None:
        self.output = output
        self.return_code = return_code

    def version(self) -> GitResult:
        return GitResult(output=self.output, return_code=self.return_code)


class FakeController(ServiceController):
    def __init__(self, status: ServiceStatus | None) -> None:
        self.status = status

    def query_status(self, name: str) -> ServiceStatus:
        if self.status is None:
            raise ServiceNotFoundError(name)
        return self.status


class FakeProvider(ExclusionProvider):
    def __init__(self, excluded: bool) -> None:
        self.excluded = excluded

    def is_path_excluded(self, path: str) -> bool:
        return self.excluded

    def add_exclusion(self, path: str) -> tuple[bool, str]:
        return False, "Access denied"


class FakeClient:
    repo_url = "https://example.com/big"

    def __init__(self, policy: RemoteVersionPolicy | None) -> None:
        self.policy = policy
        self.queries = 0

    def query_config(self) -> RemoteVersionPolicy | None:
        self.queries += 1
        return self.policy


class FailingAccessor:
    def get_all_local_config(self) -> dict[str, GitConfigSetting]:
        return {}

    def set_in_local_config(self, key: str, value: str) -> GitResult:
        return GitResult(errors="error: could not lock config file", return_code=255)


def _make_enlistment_dir(root: Path, origin: str | None = "https://example.com/big") -> Path:
    """Create ``<root>/.vfs`` and a git repo at ``<root>/src``."""
    (root / ".vfs").mkdir(parents=True)
    src = root / "src"
    src.mkdir()
    subprocess.run(["git", "init"], cwd=src, capture_output=True)
    if origin:
        subprocess.run(["git", "remote", "add", "origin", origin], cwd=src, capture_output=True)
    return root


def _enlistment(tmp_path: Path) -> Enlistment:
    return Enlistment(
        enlistment_root=tmp_path,
        working_directory_root=tmp_path / "src",
        dot_folder_root=tmp_path / ".vfs",
        repo_url="https://example.com/big",
        git_bin_path="git",
        hooks_root=tmp_path,
    )


def _frame(**kwargs) -> tuple[VerbFrame, io.StringIO]:
    out = io.StringIO()
    kwargs.setdefault("locator", FakeLocator(GIT or "/usr/bin/git", Path("/opt/vfs")))
    return VerbFrame("mount", output=out, **kwargs), out


# ---------------------------------------------------------------------------
# Enlistment
# ---------------------------------------------------------------------------


class TestEnlistment:
    def test_find_root_walks_up(self, tmp_path: Path):
        (tmp_path / "enl" / ".vfs").mkdir(parents=True)
        deep = tmp_path / "enl" / "src" / "a" / "b"
        deep.mkdir(parents=True)
        assert find_enlistment_root(deep) == (tmp_path / "enl").resolve()

    def test_find_root_none(self, tmp_path: Path):
        assert find_enlistment_root(tmp_path, dot_folder=".vfs-missing-marker") is None

    @requires_git
    def test_create_reads_origin(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl")
        enlistment = Enlistment.create_from_directory(root / "src", GIT, tmp_path)

        assert enlistment is not None
        assert enlistment.enlistment_root == root.resolve()
        assert enlistment.working_directory_root == root.resolve() / "src"
        assert enlistment.repo_url == "https://example.com/big"

    @requires_git
    def test_create_without_origin_is_invalid(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl", origin=None)
        with pytest.raises(InvalidRepoError, match="remote.origin.url"):
            Enlistment.create_from_directory(root, GIT, tmp_path)

    def test_create_without_working_directory_is_invalid(self, tmp_path: Path):
        (tmp_path / "enl" / ".vfs").mkdir(parents=True)
        with pytest.raises(InvalidRepoError, match="git repository"):
            Enlistment.create_from_directory(tmp_path / "enl", "git", tmp_path)

    def test_missing_directory_is_invalid(self, tmp_path: Path):
        with pytest.raises(InvalidRepoError):
            Enlistment.create_from_directory(tmp_path / "nope", "git", tmp_path)

    def test_is_immutable(self, tmp_path: Path):
        enlistment = _enlistment(tmp_path)
        with pytest.raises(Exception):
            enlistment.repo_url = "https://elsewhere"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Frame driver
# ---------------------------------------------------------------------------


class TestFrameExecute:
    @requires_git
    def test_runs_body_with_enlistment(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl")
        seen: list[Enlistment] = []
        frame, _ = _frame()

        code = frame.execute(str(root), lambda f, e: seen.append(e))
        assert code is ReturnCode.SUCCESS
        assert seen[0].repo_url == "https://example.com/big"

    @requires_git
    def test_empty_root_uses_cwd(self, tmp_path: Path, monkeypatch):
        root = _make_enlistment_dir(tmp_path / "enl")
        monkeypatch.chdir(root / "src")
        seen: list[Enlistment] = []
        frame, _ = _frame()

        assert frame.execute("", lambda f, e: seen.append(e)) is ReturnCode.SUCCESS
        assert seen[0].enlistment_root == root.resolve()

    def test_git_not_installed(self, tmp_path: Path):
        ran: list[bool] = []
        frame, out = _frame(locator=FakeLocator(None, tmp_path))

        code = frame.execute(str(tmp_path), lambda f, e: ran.append(True))
        assert code is ReturnCode.GENERIC_ERROR
        assert frame.return_code is ReturnCode.GENERIC_ERROR
        assert "Git is not installed" in out.getvalue()
        assert ran == []

    def test_hooks_not_found(self, tmp_path: Path):
        locator = FakeLocator("/usr/bin/git", None)
        frame, out = _frame(locator=locator)

        assert frame.execute(str(tmp_path), lambda f, e: None) is ReturnCode.GENERIC_ERROR
        assert out.getvalue() == "Could not find VFS.Hooks\n"
        assert locator.lookups == ["git", "VFS.Hooks"]

    def test_not_an_enlistment(self, tmp_path: Path):
        settings = Settings(dot_folder=".vfs-missing-marker")
        frame, out = _frame(settings=settings)

        assert frame.execute(str(tmp_path), lambda f, e: None) is ReturnCode.GENERIC_ERROR
        assert out.getvalue() == f"Error: '{tmp_path}' is not a valid VFS enlistment\n"

    def test_invalid_enlistment_embeds_detail(self, tmp_path: Path):
        (tmp_path / ".vfs").mkdir()
        frame, out = _frame()

        assert frame.execute(str(tmp_path), lambda f, e: None) is ReturnCode.GENERIC_ERROR
        assert "is not a valid VFS enlistment. Could not find a git repository" in out.getvalue()

    @requires_git
    def test_abort_in_body_sets_exit_code(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl")
        after: list[bool] = []

        def run(frame: VerbFrame, enlistment: Enlistment) -> None:
            frame.report_error_and_exit("Error: {0} failed with {1}", "mount", 7, exit_code=ReturnCode.PARSING_ERROR)
            after.append(True)

        frame, out = _frame()
        assert frame.execute(str(root), run) is ReturnCode.PARSING_ERROR
        assert out.getvalue() == "Error: mount failed with 7\n"
        assert after == []

    def test_abort_never_reports_success(self, tmp_path: Path):
        def pre(frame: VerbFrame, root: str) -> None:
            frame.report_error_and_exit(None, exit_code=ReturnCode.SUCCESS)

        frame, out = _frame()
        assert frame.execute(str(tmp_path), lambda f, e: None, pre) is ReturnCode.GENERIC_ERROR
        assert out.getvalue() == ""

    def test_pre_execute_runs_before_resolution(self, tmp_path: Path):
        locator = FakeLocator(None, None)

        def pre(frame: VerbFrame, root: str) -> None:
            frame.report_error_and_exit("stop")

        frame, _ = _frame(locator=locator)
        assert frame.execute(str(tmp_path), lambda f, e: None, pre) is ReturnCode.GENERIC_ERROR
        assert locator.lookups == []

    def test_message_braces_without_args(self, tmp_path: Path):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.report_error_and_exit("literal {braces}")
        assert out.getvalue() == "literal {braces}\n"

    @requires_git
    def test_inner_abort_stays_inside_inner_frame(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl")
        reached: list[bool] = []

        def outer_run(outer: VerbFrame, enlistment: Enlistment) -> None:
            inner, _ = _frame()
            code = inner.execute(str(root), lambda f, e: f.report_error_and_exit("inner"))
            assert code is ReturnCode.GENERIC_ERROR
            reached.append(True)

        outer, _ = _frame()
        assert outer.execute(str(root), outer_run) is ReturnCode.SUCCESS
        assert reached == [True]

    @requires_git
    def test_outer_abort_crosses_inner_frame(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl")
        reached: list[bool] = []
        inner, _ = _frame()

        def outer_run(outer: VerbFrame, enlistment: Enlistment) -> None:
            inner.execute(str(root), lambda f, e: outer.report_error_and_exit("outer"))
            reached.append(True)

        outer, _ = _frame()
        assert outer.execute(str(root), outer_run) is ReturnCode.GENERIC_ERROR
        assert inner.return_code is ReturnCode.SUCCESS
        assert reached == []

    def test_execute_verb(self, tmp_path: Path):
        out = io.StringIO()
        code = execute_verb(
            "status",
            str(tmp_path),
            lambda f, e: None,
            output=out,
            locator=FakeLocator(None, None),
        )
        assert code is ReturnCode.GENERIC_ERROR
        assert "Git is not installed" in out.getvalue()


# ---------------------------------------------------------------------------
# Frame checks
# ---------------------------------------------------------------------------


class TestCheckGitVersion:
    def test_accepts_minimum(self, tmp_path: Path):
        frame, out = _frame()
        version = frame.check_git_version(_enlistment(tmp_path), FakeGit("git version 2.14.1.vfs.1.0\n"))
        assert str(version) == "2.14.1.vfs.1.0"
        assert out.getvalue() == ""

    def test_unable_to_retrieve(self, tmp_path: Path):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.check_git_version(_enlistment(tmp_path), FakeGit(return_code=1))
        assert "Unable to retrieve the git version" in out.getvalue()
        assert frame.return_code is ReturnCode.GENERIC_ERROR

    def test_unparsable(self, tmp_path: Path):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.check_git_version(_enlistment(tmp_path), FakeGit("git version banana"))
        assert out.getvalue() == "Error: Unable to parse the git version. banana\n"

    def test_wrong_platform(self, tmp_path: Path):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.check_git_version(_enlistment(tmp_path), FakeGit("git version 9.0.0.windows.1"))
        assert "Invalid version of git 9.0.0.windows.1.  Must use vfs version." in out.getvalue()

    def test_too_old(self, tmp_path: Path):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.check_git_version(_enlistment(tmp_path), FakeGit("git version 2.13.0.vfs.1.0"))
        assert "less than the minimum version of 2.14.1.vfs.1.0" in out.getvalue()

    def test_minimum_from_settings(self, tmp_path: Path):
        frame, _ = _frame(settings=Settings(minimum_git_version="2.0.0"))
        frame.check_git_version(_enlistment(tmp_path), FakeGit("git version 2.39.2"))
        assert frame.return_code is ReturnCode.SUCCESS


class TestCheckServiceRunning:
    def test_running(self):
        frame, out = _frame()
        frame.check_service_running(FakeController(ServiceStatus.RUNNING))
        assert frame.return_code is ReturnCode.SUCCESS

    def test_not_found(self):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.check_service_running(FakeController(None))
        assert out.getvalue() == "Error: vfsflt Service was not found. To resolve, re-install VFS\n"

    def test_not_running(self):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.check_service_running(FakeController(ServiceStatus.STOPPED))
        assert 'run "sc start vfsflt"' in out.getvalue()


class TestValidateClientVersion:
    def _policy(self, lo: str, hi: str | None) -> RemoteVersionPolicy:
        return RemoteVersionPolicy.model_validate({"AllowedVfsClientVersions": [{"Min": lo, "Max": hi}]})

    def test_accepted(self, tmp_path: Path):
        frame, out = _frame(client_version="1.5")
        result = frame.validate_client_version(_enlistment(tmp_path), FakeClient(self._policy("1.0", "2.0")))
        assert result.verdict is Verdict.ACCEPTED
        assert out.getvalue() == ""

    def test_unreachable_warns_only(self, tmp_path: Path):
        frame, out = _frame(client_version="1.5")
        result = frame.validate_client_version(_enlistment(tmp_path), FakeClient(None))
        assert result.verdict is Verdict.WARNED
        assert "WARNING: Unable to validate your VFS version" in out.getvalue()
        assert frame.return_code is ReturnCode.SUCCESS

    def test_rejected_aborts(self, tmp_path: Path):
        frame, out = _frame(client_version="3.0")
        with pytest.raises(VerbAbortedError):
            frame.validate_client_version(_enlistment(tmp_path), FakeClient(self._policy("1.0", "2.0")))
        assert "Your VFS version is no longer supported" in out.getvalue()
        assert frame.return_code is ReturnCode.GENERIC_ERROR

    def test_unparsable_client_version_aborts(self, tmp_path: Path):
        client = FakeClient(self._policy("1.0", None))
        frame, out = _frame(client_version="1.0.0-dev")
        with pytest.raises(VerbAbortedError):
            frame.validate_client_version(_enlistment(tmp_path), client)
        assert out.getvalue() == "Error: Unable to parse the VFS version 1.0.0-dev\n"
        assert frame.return_code is ReturnCode.GENERIC_ERROR
        assert client.queries == 0

    @requires_git
    def test_unparsable_client_version_ends_at_frame(self, tmp_path: Path):
        root = _make_enlistment_dir(tmp_path / "enl")
        frame, out = _frame(client_version="1.0.0-dev")
        code = frame.execute(str(root), lambda f, e: f.validate_client_version(e, FakeClient(None)))
        assert code is ReturnCode.GENERIC_ERROR
        assert "Unable to parse the VFS version 1.0.0-dev" in out.getvalue()


class TestOtherChecks:
    def test_antivirus_never_aborts(self, tmp_path: Path):
        frame, out = _frame(is_elevated=lambda: False)
        assert frame.check_antivirus_exclusion(_enlistment(tmp_path), FakeProvider(False)) is False
        assert "Need elevated privileges" in out.getvalue()
        assert frame.return_code is ReturnCode.SUCCESS

    def test_antivirus_already_excluded(self, tmp_path: Path):
        frame, out = _frame()
        assert frame.check_antivirus_exclusion(_enlistment(tmp_path), FakeProvider(True)) is True
        assert out.getvalue() == ""

    def test_check_elevated(self):
        frame, out = _frame(is_elevated=lambda: False)
        with pytest.raises(VerbAbortedError):
            frame.check_elevated()
        assert out.getvalue() == "mount must be run with elevated privileges\n"

    def test_ensure_git_config_failure(self, tmp_path: Path):
        frame, out = _frame()
        with pytest.raises(VerbAbortedError):
            frame.ensure_git_config(_enlistment(tmp_path), FailingAccessor())
        assert "Unable to configure git repo" in out.getvalue()

    def test_show_status_while_running(self):
        frame, out = _frame()
        assert frame.show_status_while_running(lambda: True, "Mounting") is True
        assert frame.show_status_while_running(lambda: False, "Unmounting") is False
        assert out.getvalue() == "Mounting...Succeeded\nUnmounting...Failed\n"


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script")
class TestCheckHooksVersion:
    def _write_hooks(self, directory: Path, version: str) -> Path:
        exe = directory / "VFS.Hooks"
        exe.write_text(f"#!/bin/sh\necho {version}\n", encoding="utf-8")
        exe.chmod(0o755)
        return directory

    def test_matching_version(self, tmp_path: Path):
        frame, _ = _frame(client_version="1.0.0")
        frame.check_hooks_version(self._write_hooks(tmp_path, "1.0.0"))
        assert frame.return_code is ReturnCode.SUCCESS

    def test_mismatched_version(self, tmp_path: Path):
        frame, out = _frame(client_version="1.0.0")
        with pytest.raises(VerbAbortedError):
            frame.check_hooks_version(self._write_hooks(tmp_path, "0.9.0"))
        assert out.getvalue() == "VFS.Hooks version (0.9.0) does not match VFS version (1.0.0).\n"

    def test_locates_hooks_when_not_given(self, tmp_path: Path):
        frame, out = _frame(locator=FakeLocator("/usr/bin/git", None))
        with pytest.raises(VerbAbortedError):
            frame.check_hooks_version()
        assert out.getvalue() == "Could not find VFS.Hooks\n"
