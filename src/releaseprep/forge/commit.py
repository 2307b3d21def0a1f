"""Build and publish a commit through the forge API without a local push."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING, Any

from releaseprep.core.models import CommitRequest, CommitResult, FileChange, FileMode
from releaseprep.forge.client import ForgeAPIError, ForgeErrorKind
from releaseprep.forge.refs import resolve_base

if TYPE_CHECKING:
    from collections.abc import Sequence
    from releaseprep.core.models import BranchRef, CommitOptions
    from releaseprep.forge.client import ObjectStore
    from releaseprep.io.logging import StructuredLogger


_REQUIRED_OPTIONS = ("owner", "repo", "branch", "message")
_GITLINK = 0o160000


class CommitOptionsError(ValueError):
    """Raised when a required commit option is missing."""


def validate_options(options: CommitOptions) -> None:
    """Raise :class:`CommitOptionsError` for the first missing required option."""
    for key in _REQUIRED_OPTIONS:
        if not getattr(options, key):
            msg = f"{key} is required"
            raise CommitOptionsError(msg)


def file_mode(st_mode: int) -> FileMode:
    """Map POSIX mode bits onto a tree entry mode."""
    kind = st_mode & 0o170000
    if kind == _GITLINK:
        return FileMode.submodule
    if kind == stat.S_IFLNK:
        return FileMode.symlink
    if kind == stat.S_IFDIR:
        return FileMode.directory
    if kind == stat.S_IFREG and st_mode & 0o111:
        return FileMode.executable
    return FileMode.regular


def read_file_change(root: Path, path: str, *, delete_if_not_exist: bool = False) -> FileChange:
    """Read ``path`` (relative to ``root``) from disk as a tree entry.

    A missing file becomes a deletion entry when ``delete_if_not_exist`` is
    set; every other read failure propagates.
    """
    full_path = root / path
    try:
        st_mode = full_path.lstat().st_mode
        mode = file_mode(st_mode)
        if mode is FileMode.symlink:
            content = os.fsencode(os.readlink(full_path))
        else:
            content = full_path.read_bytes()
    except FileNotFoundError:
        if not delete_if_not_exist:
            raise
        return FileChange(path=path, deletion=True)
    return FileChange(path=path, content=content, mode=mode)


def build_commit(
    client: ObjectStore,
    options: CommitOptions,
    logger: StructuredLogger,
    *,
    root: Path | None = None,
) -> CommitResult | None:
    """Create one commit on ``options.branch`` and return its id.

    Returns ``None`` without contacting the forge when ``options`` selects no
    files, no deletions and no empty commit.
    """
    if options.is_noop:
        logger.info("nothing to commit", branch=options.branch)
        return None
    validate_options(options)
    working_root = Path(root) if root is not None else Path.cwd()

    base = resolve_base(client, options, logger)
    tree_id = _build_tree(client, options, base, working_root, logger)
    parents: tuple[str, ...] = () if options.no_parent else (base.commit_id,)
    logger.info("creating a commit", tree=tree_id, parents=list(parents))
    commit_id = client.create_commit(
        options.owner,
        options.repo,
        CommitRequest(message=options.message, tree_id=tree_id, parents=parents),
    )
    return _publish(client, options, commit_id, logger)


def _build_tree(
    client: ObjectStore,
    options: CommitOptions,
    base: BranchRef,
    root: Path,
    logger: StructuredLogger,
) -> str:
    if options.empty:
        return base.tree_id

    changes: list[FileChange] = [
        read_file_change(root, path, delete_if_not_exist=options.delete_if_not_exist)
        for path in options.files
    ]
    changes.extend(FileChange(path=path, deletion=True) for path in options.deleted_files)
    entries = _tree_entries(client, options, changes)
    base_tree = None if options.no_parent else base.tree_id
    logger.info("creating a tree", entries=len(entries), base_tree=base_tree)
    return client.create_tree(options.owner, options.repo, entries, base_tree)


def _tree_entries(client: ObjectStore, options: CommitOptions, changes: Sequence[FileChange]) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for change in changes:
        entry: dict[str, Any] = {"path": change.path, "mode": change.mode.value, "type": change.mode.entry_type}
        if change.deletion or change.content is None:
            entry["sha"] = None
        else:
            try:
                entry["content"] = change.content.decode("utf-8")
            except UnicodeDecodeError:
                entry["sha"] = client.create_blob(options.owner, options.repo, change.content)
        entries.append(entry)
    return entries


def _publish(client: ObjectStore, options: CommitOptions, commit_id: str, logger: StructuredLogger) -> CommitResult:
    owner, repo, branch = options.owner, options.repo, options.branch
    logger.info("updating ref", ref=f"heads/{branch}", sha=commit_id, force=options.force_push)
    try:
        applied = client.update_ref(owner, repo, branch, commit_id, force=options.force_push)
    except ForgeAPIError as error:
        if error.kind is not ForgeErrorKind.ref_missing:
            raise
        logger.info("creating ref", ref=f"refs/heads/{branch}", sha=commit_id)
        applied = client.create_ref(owner, repo, branch, commit_id)
    return CommitResult(commit_id=applied)


__all__ = [
    "CommitOptionsError",
    "build_commit",
    "file_mode",
    "read_file_change",
    "validate_options",
]
