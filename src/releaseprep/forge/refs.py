"""Resolution of the base commit a new remote commit builds on."""

from __future__ import annotations

from typing import TYPE_CHECKING

from releaseprep.core.models import BranchRef

if TYPE_CHECKING:
    from releaseprep.core.models import CommitOptions
    from releaseprep.forge.client import ObjectStore
    from releaseprep.io.logging import StructuredLogger


class BranchNotFoundError(RuntimeError):
    """Raised when an explicitly requested base branch does not exist."""

    def __init__(self, owner: str, repo: str, branch: str) -> None:
        """Record the missing branch."""
        self.branch = branch
        super().__init__(f"Branch {branch} does not exist in {owner}/{repo}")


def resolve_base(client: ObjectStore, options: CommitOptions, logger: StructuredLogger) -> BranchRef:
    """Return the commit and tree a new commit for ``options`` is based on.

    Resolution order: ``base_sha``, then ``base_branch``, then the target
    branch itself when it exists, then the repository default branch.
    """
    owner, repo = options.owner, options.repo
    if options.base_sha:
        tree_id = client.query_tree_of_commit(owner, repo, options.base_sha)
        logger.info("resolved base from commit", sha=options.base_sha, tree=tree_id)
        return BranchRef(name=None, commit_id=options.base_sha, tree_id=tree_id)

    if options.base_branch:
        ref = client.query_branch(owner, repo, options.base_branch)
        if ref is None:
            raise BranchNotFoundError(owner, repo, options.base_branch)
        logger.info("resolved base from branch", branch=options.base_branch, sha=ref.commit_id)
        return ref

    ref = client.query_branch(owner, repo, options.branch)
    if ref is not None:
        logger.info("resolved base from target branch", branch=options.branch, sha=ref.commit_id)
        return ref

    ref = client.query_default_branch(owner, repo)
    logger.info("resolved base from default branch", branch=ref.name, sha=ref.commit_id)
    return ref


__all__ = ["BranchNotFoundError", "resolve_base"]
