"""Local git working copy helpers for releaseprep."""

from releaseprep.git.facade import GitCommandError, GitFacade

__all__ = ["GitCommandError", "GitFacade"]
