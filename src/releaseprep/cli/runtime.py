"""Helpers shared across CLI commands for wiring clients and outputs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from releaseprep.core.models import Config
from releaseprep.forge.client import ForgeClient
from releaseprep.git.facade import GitFacade
from releaseprep.io import StructuredLogger, load_config, split_repository, token_from_env
from releaseprep.io.config import REPOSITORY_ENV_VAR

if TYPE_CHECKING:
    from collections.abc import Mapping


OUTPUT_ENV_VAR = "GITHUB_OUTPUT"


class MissingTokenError(RuntimeError):
    """Raised when no API token is configured."""


@dataclass(slots=True)
class ReleaseContext:
    """Container bundling the collaborators of a CLI command."""

    repo_path: Path
    owner: str
    repo: str
    config: Config
    logger: StructuredLogger
    facade: GitFacade
    client: ForgeClient

    def close(self) -> None:
        """Release network resources held by the context."""
        self.client.close()


def default_config() -> Config:
    """Return the configuration used when no config file is provided."""
    return Config()


def load_cli_config(config_path: Path | None) -> Config:
    """Load configuration from ``config_path`` or fall back to defaults."""
    if config_path is None:
        return default_config()
    return load_config(path=config_path)


def resolve_repository(value: str | None, environ: Mapping[str, str] | None = None) -> tuple[str, str]:
    """Return ``(owner, repo)`` from ``value`` or ``$GITHUB_REPOSITORY``."""
    env = os.environ if environ is None else environ
    return split_repository(value or env.get(REPOSITORY_ENV_VAR))


def build_context(
    repo_path: Path,
    config: Config,
    *,
    repository: str | None,
    json_logs: bool,
    verbose: bool = False,
) -> ReleaseContext:
    """Assemble the context required by CLI commands."""
    owner, repo = resolve_repository(repository)
    token = token_from_env()
    if token is None and config.forge.token is None:
        msg = "No API token found; set GITHUB_TOKEN or GH_TOKEN."
        raise MissingTokenError(msg)

    logger = StructuredLogger(
        name="releaseprep",
        json_mode=json_logs,
        level="DEBUG" if verbose else "INFO",
    ).bind(repository=f"{owner}/{repo}")
    facade = GitFacade(repo_path, logger.child("git"))
    client = ForgeClient(config.forge, logger.child("forge"), token=token)
    return ReleaseContext(
        repo_path=repo_path,
        owner=owner,
        repo=repo,
        config=config,
        logger=logger,
        facade=facade,
        client=client,
    )


def write_outputs(values: Mapping[str, str], environ: Mapping[str, str] | None = None) -> Path | None:
    """Append ``values`` to the file named by ``$GITHUB_OUTPUT`` when it is set."""
    env = os.environ if environ is None else environ
    target = env.get(OUTPUT_ENV_VAR)
    if not target:
        return None
    path = Path(target)
    with path.open("a", encoding="utf-8") as handle:
        for key, value in values.items():
            handle.write(f"{key}={value}\n")
    return path


__all__ = [
    "MissingTokenError",
    "ReleaseContext",
    "build_context",
    "default_config",
    "load_cli_config",
    "resolve_repository",
    "write_outputs",
]
