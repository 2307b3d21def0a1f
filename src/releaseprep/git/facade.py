"""Thin wrapper over the ``git`` CLI for the local working copy.

Commits are never created locally. The working copy is only read (tracked
files, checked out revision and branch) and build artifacts are force-added so
that ``git ls-files`` reports them.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from releaseprep.io.logging import StructuredLogger


class GitCommandError(RuntimeError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stdout: str, stderr: str) -> None:
        """Keep the failing invocation and its output for the caller."""
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        lines = stderr.strip().splitlines()
        reason = f": {lines[-1]}" if lines else ""
        super().__init__(f"`{' '.join(self.command)}` exited with {returncode}{reason}")


@dataclass(frozen=True, slots=True)
class GitInvocation:
    """One git command run by :class:`GitFacade`."""

    command: tuple[str, ...]
    returncode: int


class GitFacade:
    """Run git commands inside ``repo_path`` and keep a record of them."""

    def __init__(
        self,
        repo_path: Path,
        logger: StructuredLogger,
        *,
        env: Mapping[str, str] | None = None,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        """Bind the facade to a working copy; ``env`` replaces the process environment."""
        self._root = Path(repo_path)
        self._logger = logger
        self._env = dict(env) if env else None
        self._runner = runner
        self._invocations: list[GitInvocation] = []

    @property
    def repo_path(self) -> Path:
        """Return the root of the working copy."""
        return self._root

    @property
    def invocations(self) -> tuple[GitInvocation, ...]:
        """Return the commands run so far, oldest first."""
        return tuple(self._invocations)

    def run(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run ``git <args>`` in the working copy and return the completed process."""
        command = ("git", *(str(arg) for arg in args))
        self._logger.debug("running git", command=list(command))
        completed = self._runner(
            command,
            cwd=self._root,
            env=self._env,
            capture_output=True,
            text=True,
            check=False,
        )
        self._invocations.append(GitInvocation(command=command, returncode=completed.returncode))
        if completed.stderr:
            self._logger.debug("git wrote to stderr", command=list(command), stderr=completed.stderr)
        if check and completed.returncode != 0:
            raise GitCommandError(command, completed.returncode, completed.stdout or "", completed.stderr or "")
        return completed

    def ls_files(self, paths: Sequence[str] | None = None) -> list[str]:
        """Return tracked paths, optionally limited to ``paths``."""
        args = ["ls-files", "-z"]
        if paths:
            args += ["--", *paths]
        output = self.run(args).stdout or ""
        return [path for path in output.split("\0") if path]

    def rev_parse_head(self) -> str:
        """Return the id of the checked out commit."""
        return (self.run(["rev-parse", "HEAD"]).stdout or "").strip()

    def current_branch(self) -> str | None:
        """Return the checked out branch, or ``None`` on a detached HEAD."""
        name = (self.run(["branch", "--show-current"]).stdout or "").strip()
        return name or None

    def add_force(self, paths: Sequence[str]) -> None:
        """Stage ``paths`` even if ``.gitignore`` excludes them."""
        if paths:
            self.run(["add", "-f", "--", *paths])


__all__ = ["GitCommandError", "GitFacade", "GitInvocation"]
