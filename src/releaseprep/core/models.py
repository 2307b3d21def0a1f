"""Core data models for releaseprep."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator


class FileMode(str, Enum):
    """Tree entry modes recognised by the forge."""

    regular = "100644"
    executable = "100755"
    directory = "040000"
    submodule = "160000"
    symlink = "120000"

    @property
    def entry_type(self) -> str:
        """Return the tree entry type matching this mode."""
        if self is FileMode.directory:
            return "tree"
        if self is FileMode.submodule:
            return "commit"
        return "blob"


class FileChange(BaseModel):
    """A single tree entry mutation for a commit."""

    path: str
    content: bytes | None = None
    mode: FileMode = FileMode.regular
    deletion: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _deletion_has_no_content(self) -> FileChange:
        if self.deletion and self.content is not None:
            msg = f"deleted path {self.path} must not carry content"
            raise ValueError(msg)
        return self


class BranchRef(BaseModel):
    """A branch (or bare commit) resolved on the forge."""

    name: str | None = None
    commit_id: str
    tree_id: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class CommitRequest(BaseModel):
    """Payload for creating a commit object."""

    message: str
    tree_id: str
    parents: tuple[str, ...] = Field(default_factory=tuple, max_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


class CommitOptions(BaseModel):
    """Options controlling a single remote commit."""

    owner: str = ""
    repo: str = ""
    branch: str = ""
    message: str = ""
    files: list[str] = Field(default_factory=list)
    deleted_files: list[str] = Field(default_factory=list)
    empty: bool = False
    base_sha: str | None = None
    base_branch: str | None = None
    no_parent: bool = False
    force_push: bool = False
    delete_if_not_exist: bool = False

    model_config = ConfigDict(extra="forbid")

    @property
    def is_noop(self) -> bool:
        """Return ``True`` when there is nothing to commit."""
        return not self.files and not self.deleted_files and not self.empty


class CommitResult(BaseModel):
    """The commit published by a commit build."""

    commit_id: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class ActionModule(BaseModel):
    """An action definition file taking part in reference pinning.

    Instances are mutated while waves are applied: ``content`` is rewritten and
    ``dependencies`` shrink as referenced modules get pinned.
    """

    path: str
    content: str
    canonical_name: str
    dependencies: set[str] = Field(default_factory=set)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @property
    def pinned(self) -> bool:
        """Return whether every dependency of the module has been retired."""
        return not self.dependencies


class ForgeSettings(BaseModel):
    """Connection settings for the forge API."""

    api_url: str = "https://api.github.com"
    graphql_url: str = ""
    timeout_sec: float = Field(default=30.0, gt=0)
    token: SecretStr | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def resolved_graphql_url(self) -> str:
        """Return the GraphQL endpoint, derived from ``api_url`` when unset."""
        return self.graphql_url or f"{self.api_url}/graphql"


def _default_action_filenames() -> list[str]:
    return ["action.yml", "action.yaml"]


def _default_artifact_patterns() -> list[str]:
    return ["**/dist"]


def _default_artifact_ignore() -> list[str]:
    return ["node_modules/**", ".git/**"]


class ReleaseSettings(BaseModel):
    """Settings for release branch preparation."""

    branch_prefix: str = "release-"
    propagation_delay_sec: float = Field(default=2.0, ge=0)
    action_filenames: list[str] = Field(default_factory=_default_action_filenames)
    artifact_patterns: list[str] = Field(default_factory=_default_artifact_patterns)
    artifact_ignore: list[str] = Field(default_factory=_default_artifact_ignore)

    model_config = ConfigDict(extra="forbid")


class Config(BaseModel):
    """Top level configuration schema validated from TOML files."""

    forge: ForgeSettings = Field(default_factory=ForgeSettings)
    release: ReleaseSettings = Field(default_factory=ReleaseSettings)

    model_config = ConfigDict(extra="forbid")


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
