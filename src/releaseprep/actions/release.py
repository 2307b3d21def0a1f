"""Release branch preparation built from remote commits."""

from __future__ import annotations

import fnmatch
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from releaseprep.actions.pinning import pin_action_references
from releaseprep.core.models import CommitOptions
from releaseprep.forge.commit import build_commit

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path
    from releaseprep.core.models import ReleaseSettings
    from releaseprep.forge.client import ObjectStore
    from releaseprep.git.facade import GitFacade
    from releaseprep.io.logging import StructuredLogger


@dataclass(frozen=True, slots=True)
class ReleaseOutcome:
    """Result values of a release preparation run."""

    branch: str
    base_revision: str
    release_commit: str
    commit: str
    artifacts: tuple[str, ...] = ()


def release_branch_name(version: str, prefix: str = "release-") -> str:
    """Return the branch a version is released from."""
    if version == "latest" or version.startswith("pr/"):
        return version
    return f"{prefix}{version}"


def release_message(version: str, base_revision: str) -> str:
    """Return the commit message of the release commit."""
    return f"chore: release {version}\nbase revision: {base_revision}"


def find_artifact_dirs(root: Path, patterns: Sequence[str], ignore: Sequence[str]) -> list[str]:
    """Return directories under ``root`` matching ``patterns`` and no ``ignore`` glob."""
    found: set[str] = set()
    for pattern in patterns:
        for candidate in root.glob(pattern):
            if not candidate.is_dir():
                continue
            relative = candidate.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(relative, skip) for skip in ignore):
                continue
            found.add(relative)
    return sorted(found)


def stage_artifacts(
    facade: GitFacade,
    logger: StructuredLogger,
    *,
    patterns: Sequence[str],
    ignore: Sequence[str],
) -> list[str]:
    """Force-add build artifact directories and return the files they hold."""
    directories = find_artifact_dirs(facade.repo_path, patterns, ignore)
    if not directories:
        logger.info("no artifact directories found", patterns=list(patterns))
        return []
    facade.add_force(directories)
    files = facade.ls_files(directories)
    logger.info("staged artifacts", directories=directories, files=len(files))
    return files


def prepare_release(
    client: ObjectStore,
    facade: GitFacade,
    logger: StructuredLogger,
    *,
    owner: str,
    repo: str,
    version: str,
    settings: ReleaseSettings,
    sleep: Callable[[float], None] = time.sleep,
) -> ReleaseOutcome:
    """Publish a release branch for ``version`` and pin its action references."""
    branch = release_branch_name(version, settings.branch_prefix)
    base_revision = facade.rev_parse_head()
    current_branch = facade.current_branch()
    logger.info("preparing release", version=version, branch=branch, base_revision=base_revision)

    artifacts = stage_artifacts(
        facade,
        logger,
        patterns=settings.artifact_patterns,
        ignore=settings.artifact_ignore,
    )

    if client.query_branch(owner, repo, branch) is not None:
        logger.warning("deleting existing release branch", branch=branch)
        client.delete_ref(owner, repo, branch)

    message = release_message(version, base_revision)
    result = build_commit(
        client,
        CommitOptions(
            owner=owner,
            repo=repo,
            branch=branch,
            message=message,
            files=artifacts,
            empty=not artifacts,
            base_branch=current_branch,
            base_sha=None if current_branch else base_revision,
        ),
        logger,
        root=facade.repo_path,
    )
    if result is None:  # pragma: no cover - empty=True whenever there are no artifacts
        msg = "release commit was not created"
        raise RuntimeError(msg)

    final_commit = pin_action_references(
        client,
        facade,
        logger,
        owner=owner,
        repo=repo,
        branch=branch,
        base_message=message,
        base_commit_id=result.commit_id,
        filenames=settings.action_filenames,
        propagation_delay=settings.propagation_delay_sec,
        sleep=sleep,
    )
    return ReleaseOutcome(
        branch=branch,
        base_revision=base_revision,
        release_commit=result.commit_id,
        commit=final_commit,
        artifacts=tuple(artifacts),
    )


__all__ = [
    "ReleaseOutcome",
    "find_artifact_dirs",
    "prepare_release",
    "release_branch_name",
    "release_message",
    "stage_artifacts",
]
