"""Forge (GitHub) object-graph access for releaseprep."""

from releaseprep.forge.client import (
    ForgeAPIError,
    ForgeClient,
    ForgeErrorKind,
    ObjectStore,
    classify_failure,
)
from releaseprep.forge.commit import (
    CommitOptionsError,
    build_commit,
    file_mode,
    read_file_change,
    validate_options,
)
from releaseprep.forge.refs import BranchNotFoundError, resolve_base

__all__ = [
    "BranchNotFoundError",
    "CommitOptionsError",
    "ForgeAPIError",
    "ForgeClient",
    "ForgeErrorKind",
    "ObjectStore",
    "build_commit",
    "classify_failure",
    "file_mode",
    "read_file_change",
    "resolve_base",
    "validate_options",
]
