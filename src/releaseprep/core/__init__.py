"""Core data model for releaseprep."""

from .models import (
    ActionModule,
    BranchRef,
    CommitOptions,
    CommitRequest,
    CommitResult,
    Config,
    FileChange,
    FileMode,
    ForgeSettings,
    ReleaseSettings,
)

__all__ = [
    "ActionModule",
    "BranchRef",
    "CommitOptions",
    "CommitRequest",
    "CommitResult",
    "Config",
    "FileChange",
    "FileMode",
    "ForgeSettings",
    "ReleaseSettings",
]
