"""Shared fixtures for the releaseprep test suite."""
from __future__ import annotations
import io
import itertools
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

import pytest
from releaseprep.core.models import BranchRef, CommitRequest
from releaseprep.forge.client import ForgeAPIError, ForgeErrorKind
from releaseprep.io.logging import StructuredLogger

@dataclass
class FakeCommit:
    """A commit stored by :class:`FakeForge`."""

    tree: str
    parents: tuple[str, ...]
    message: str

@dataclass
class FakeForge:
    """In-memory stand-in for :class:`releaseprep.forge.client.ForgeClient`.

    Trees are flat ``path -> entry`` mappings; every call is recorded in
    ``calls`` as ``(method, *args)``.
    """

    default_branch: str = "main"
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    branches: dict[str, str] = field(default_factory=dict)
    commits: dict[str, FakeCommit] = field(default_factory=dict)
    trees: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    blobs: dict[str, bytes] = field(default_factory=dict)
    closed: bool = False

    def __post_init__(self) -> None:
        """Prepare the id counter."""
        self._ids = itertools.count(1)

    def _new_id(self, kind: str) -> str:
        return f"{kind}{next(self._ids):04d}"

    def seed(self, files: Mapping[str, str], *, branch: str | None = None, parents: Sequence[str] = ()) -> str:
        """Store a commit holding ``files`` and point ``branch`` at it."""
        tree_id = self._new_id("tree")
        self.trees[tree_id] = {
            path: {"path": path, "mode": "100644", "type": "blob", "content": text}
            for path, text in files.items()
        }
        commit_id = self._new_id("commit")
        self.commits[commit_id] = FakeCommit(tree=tree_id, parents=tuple(parents), message="seed")
        if branch is not None:
            self.branches[branch] = commit_id
        return commit_id

    def method_calls(self) -> list[str]:
        """Return the names of the recorded calls in order."""
        return [call[0] for call in self.calls]

    def files_at(self, commit_id: str) -> dict[str, str]:
        """Return inline contents of the tree of ``commit_id``."""
        tree = self.trees[self.commits[commit_id].tree]
        return {path: str(entry.get("content", entry.get("sha"))) for path, entry in tree.items()}

    def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """Store a blob."""
        self.calls.append(("create_blob", owner, repo, content))
        blob_id = self._new_id("blob")
        self.blobs[blob_id] = content
        return blob_id

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: Sequence[Mapping[str, Any]],
        base_tree: str | None = None,
    ) -> str:
        """Layer ``entries`` on ``base_tree``; ``sha: None`` deletes a path."""
        self.calls.append(("create_tree", owner, repo, [dict(entry) for entry in entries], base_tree))
        tree = dict(self.trees[base_tree]) if base_tree is not None else {}
        for entry in entries:
            if "content" not in entry and entry.get("sha") is None:
                tree.pop(entry["path"], None)
            else:
                tree[entry["path"]] = dict(entry)
        tree_id = self._new_id("tree")
        self.trees[tree_id] = tree
        return tree_id

    def create_commit(self, owner: str, repo: str, request: CommitRequest) -> str:
        """Store a commit object."""
        self.calls.append(("create_commit", owner, repo, request))
        commit_id = self._new_id("commit")
        self.commits[commit_id] = FakeCommit(tree=request.tree_id, parents=request.parents, message=request.message)
        return commit_id

    def update_ref(self, owner: str, repo: str, branch: str, sha: str, *, force: bool = False) -> str:
        """Move a branch, refusing missing branches and non-fast-forward moves."""
        self.calls.append(("update_ref", owner, repo, branch, sha, force))
        if branch not in self.branches:
            raise ForgeAPIError(ForgeErrorKind.ref_missing, "Reference does not exist", status=422)
        if not force and not self._is_ancestor(self.branches[branch], sha):
            raise ForgeAPIError(ForgeErrorKind.non_fast_forward, "Update is not a fast forward", status=422)
        self.branches[branch] = sha
        return sha

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> str:
        """Create a branch."""
        self.calls.append(("create_ref", owner, repo, branch, sha))
        if branch in self.branches:
            raise ForgeAPIError(ForgeErrorKind.ref_exists, "Reference already exists", status=422)
        self.branches[branch] = sha
        return sha

    def delete_ref(self, owner: str, repo: str, branch: str) -> None:
        """Delete a branch."""
        self.calls.append(("delete_ref", owner, repo, branch))
        if self.branches.pop(branch, None) is None:
            raise ForgeAPIError(ForgeErrorKind.ref_missing, "Reference does not exist", status=422)

    def query_branch(self, owner: str, repo: str, branch: str) -> BranchRef | None:
        """Return a branch head or ``None``."""
        self.calls.append(("query_branch", owner, repo, branch))
        commit_id = self.branches.get(branch)
        if commit_id is None:
            return None
        return BranchRef(name=branch, commit_id=commit_id, tree_id=self.commits[commit_id].tree)

    def query_default_branch(self, owner: str, repo: str) -> BranchRef:
        """Return the default branch head."""
        self.calls.append(("query_default_branch", owner, repo))
        commit_id = self.branches[self.default_branch]
        return BranchRef(name=self.default_branch, commit_id=commit_id, tree_id=self.commits[commit_id].tree)

    def query_tree_of_commit(self, owner: str, repo: str, sha: str) -> str:
        """Return the tree of a stored commit."""
        self.calls.append(("query_tree_of_commit", owner, repo, sha))
        if sha not in self.commits:
            raise ForgeAPIError(ForgeErrorKind.not_found, f"commit {sha} not found")
        return self.commits[sha].tree

    def close(self) -> None:
        """Mark the fake as closed."""
        self.closed = True

    def _is_ancestor(self, ancestor: str, descendant: str) -> bool:
        pending = [descendant]
        seen: set[str] = set()
        while pending:
            current = pending.pop()
            if current == ancestor:
                return True
            if current in seen or current not in self.commits:
                continue
            seen.add(current)
            pending.extend(self.commits[current].parents)
        return False

@pytest.fixture
def log_stream() -> io.StringIO:
    """Provide the in-memory stream behind :func:`logger`."""
    return io.StringIO()

@pytest.fixture
def logger(log_stream: io.StringIO) -> StructuredLogger:
    """Provide a structured logger backed by an in-memory stream."""
    return StructuredLogger(name="test", stream=log_stream)

@pytest.fixture
def fake_forge() -> FakeForge:
    """Provide an empty in-memory forge."""
    return FakeForge()

@pytest.fixture
def patch_forge_client(monkeypatch: pytest.MonkeyPatch, fake_forge: FakeForge) -> Iterator[FakeForge]:
    """Make the CLI build its context around ``fake_forge``."""

    def factory(*_: object, **__: object) -> FakeForge:
        return fake_forge

    monkeypatch.setattr("releaseprep.cli.runtime.ForgeClient", factory)
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/tools")
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    yield fake_forge

@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Prepare git identity and configuration for isolated repositories."""
    config_file = tmp_path / "gitconfig"
    config_file.write_text(
        "[user]\n    name = Test User\n    email = test@example.com\n[init]\n    defaultBranch = main\n",
        encoding="utf-8",
    )
    env = {
        "GIT_CONFIG_GLOBAL": str(config_file),
        "GIT_CONFIG_NOSYSTEM": "1",
        "GIT_AUTHOR_NAME": "Test User",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test User",
        "GIT_COMMITTER_EMAIL": "test@example.com",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env

@pytest.fixture
def make_repo(tmp_path: Path, git_env: dict[str, str]) -> Any:
    """Return a factory creating a committed git repository from ``files``."""
    _ = git_env

    def factory(files: Mapping[str, str], *, name: str = "repo") -> Path:
        repo = tmp_path / name
        repo.mkdir()
        subprocess.run(("git", "init", "-q", "-b", "main"), cwd=repo, check=True)
        for path, text in files.items():
            target = repo / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        subprocess.run(("git", "add", "-A"), cwd=repo, check=True)
        subprocess.run(("git", "commit", "-q", "-m", "initial"), cwd=repo, check=True)
        return repo

    return factory

__all__ = ["FakeCommit", "FakeForge"]
