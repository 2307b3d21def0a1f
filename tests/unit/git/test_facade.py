from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING, Any

import pytest

from releaseprep.git.facade import GitCommandError, GitFacade, GitInvocation

if TYPE_CHECKING:
    from pathlib import Path
    from releaseprep.io.logging import StructuredLogger


class RecordingRunner:
    """Stand-in for ``subprocess.run`` returning scripted results."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.calls: list[tuple[tuple[str, ...], dict[str, Any]]] = []
        self._result = (returncode, stdout, stderr)

    def __call__(self, command: tuple[str, ...], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, kwargs))
        returncode, stdout, stderr = self._result
        return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr=stderr)


def test_run_prefixes_git_and_records(tmp_path: Path, logger: StructuredLogger) -> None:
    """run() executes git in the working copy and records the invocation."""
    runner = RecordingRunner(stdout="ok")
    facade = GitFacade(tmp_path, logger, runner=runner)

    result = facade.run(["status", "--short"])

    assert result.stdout == "ok"
    command, kwargs = runner.calls[0]
    assert command == ("git", "status", "--short")
    assert kwargs["cwd"] == tmp_path
    assert kwargs["env"] is None
    assert facade.invocations == (GitInvocation(command=("git", "status", "--short"), returncode=0),)


def test_explicit_environment_is_passed_through(tmp_path: Path, logger: StructuredLogger) -> None:
    """An explicit env mapping replaces the inherited environment."""
    runner = RecordingRunner()
    GitFacade(tmp_path, logger, env={"GIT_DIR": "x"}, runner=runner).run(["status"])

    assert runner.calls[0][1]["env"] == {"GIT_DIR": "x"}


def test_run_raises_on_nonzero_exit(tmp_path: Path, logger: StructuredLogger) -> None:
    """GitCommandError carries the status and the last stderr line."""
    facade = GitFacade(tmp_path, logger, runner=RecordingRunner(128, stderr="fatal: not a git repository\n"))

    with pytest.raises(GitCommandError) as exc:
        facade.rev_parse_head()

    assert exc.value.returncode == 128
    assert str(exc.value) == "`git rev-parse HEAD` exited with 128: fatal: not a git repository"
    assert facade.invocations[0].returncode == 128


def test_unchecked_failures_are_returned(tmp_path: Path, logger: StructuredLogger) -> None:
    """check=False hands the failed process back to the caller."""
    facade = GitFacade(tmp_path, logger, runner=RecordingRunner(1))

    assert facade.run(["diff", "--quiet"], check=False).returncode == 1


def test_add_force_without_paths_runs_nothing(tmp_path: Path, logger: StructuredLogger) -> None:
    """Nothing is executed for an empty path list."""
    runner = RecordingRunner()
    GitFacade(tmp_path, logger, runner=runner).add_force([])

    assert runner.calls == []


def test_queries_against_real_repository(make_repo: Any, logger: StructuredLogger) -> None:
    """ls_files, rev_parse_head and current_branch read a real working copy."""
    repo = make_repo({"README.md": "seed", "actions/build/action.yml": "name: build\n"})
    facade = GitFacade(repo, logger)

    assert facade.ls_files() == ["README.md", "actions/build/action.yml"]
    assert facade.ls_files(["actions"]) == ["actions/build/action.yml"]
    assert len(facade.rev_parse_head()) == 40
    assert facade.current_branch() == "main"

    subprocess.run(("git", "checkout", "-q", "--detach"), cwd=repo, check=True)
    assert facade.current_branch() is None


def test_add_force_stages_ignored_paths(make_repo: Any, logger: StructuredLogger) -> None:
    """Ignored build output is staged when forced."""
    repo = make_repo({".gitignore": "dist/\n", "README.md": "seed"})
    (repo / "dist").mkdir()
    (repo / "dist" / "index.js").write_text("module.exports = 1;\n", encoding="utf-8")
    facade = GitFacade(repo, logger)

    assert facade.ls_files(["dist"]) == []
    facade.add_force(["dist"])
    assert facade.ls_files(["dist"]) == ["dist/index.js"]
