"""CLI entry point for releaseprep built with Typer."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer

from releaseprep.actions.pinning import DependencyCycleError, pin_action_references
from releaseprep.actions.release import prepare_release
from releaseprep.actions.workflow import WorkflowSchemaError
from releaseprep.cli.runtime import (
    MissingTokenError,
    ReleaseContext,
    build_context,
    load_cli_config,
    write_outputs,
)
from releaseprep.core.models import CommitOptions
from releaseprep.forge.client import ForgeAPIError
from releaseprep.forge.commit import CommitOptionsError, build_commit
from releaseprep.forge.refs import BranchNotFoundError
from releaseprep.git.facade import GitCommandError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


app = typer.Typer(add_completion=False, no_args_is_help=True)

_RUN_ERRORS: tuple[type[Exception], ...] = (
    BranchNotFoundError,
    CommitOptionsError,
    DependencyCycleError,
    ForgeAPIError,
    GitCommandError,
    WorkflowSchemaError,
    OSError,
)


def _resolve_repo(repo_path: Path | None) -> Path:
    return repo_path.resolve() if repo_path is not None else Path.cwd()


def _emit_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False))


def _prepare_context(
    repo_path: Path | None,
    config_path: Path | None,
    repository: str | None,
    *,
    json_logs: bool,
    verbose: bool,
) -> ReleaseContext:
    try:
        config = load_cli_config(config_path)
    except FileNotFoundError as exc:
        typer.echo(f"Configuration file not found: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    try:
        return build_context(
            _resolve_repo(repo_path),
            config,
            repository=repository,
            json_logs=json_logs,
            verbose=verbose,
        )
    except (MissingTokenError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc


def _run(context: ReleaseContext, operation: Callable[[], dict[str, str]]) -> dict[str, str]:
    """Run ``operation`` and turn expected failures into exit code 1."""
    try:
        return operation()
    except _RUN_ERRORS as exc:
        context.logger.error("operation failed", error=str(exc), error_type=type(exc).__name__)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    finally:
        context.close()


def _report(values: dict[str, str], *, json_output: bool) -> None:
    write_outputs(values)
    if json_output:
        _emit_json(values)
        return
    typer.echo("\n".join(f"{key}: {value}" for key, value in values.items()))


@app.callback()
def cli_root() -> None:
    """Prepare release branches through the forge API."""


RepoPathOption = Annotated[Path | None, typer.Option("--repo-path", help="Path to the working copy.")]
ConfigOption = Annotated[Path | None, typer.Option(help="Path to a configuration TOML.")]
RepositoryOption = Annotated[
    str | None,
    typer.Option(help="Target repository as owner/name (defaults to $GITHUB_REPOSITORY)."),
]
VerboseFlag = Annotated[bool, typer.Option("--verbose", "-v", help="Include debug records in the log.")]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", "--json-output", help="Emit JSON instead of text."),
]


@app.command("commit")
def commit_command(
    branch: Annotated[str, typer.Option("--branch", "-b", help="Branch to publish to.")],
    message: Annotated[str, typer.Option("--message", "-m", help="Commit message.")],
    files: Annotated[list[str] | None, typer.Argument(help="Files to write, relative to the working copy.")] = None,
    delete: Annotated[list[str] | None, typer.Option("--delete", help="Path to delete (repeatable).")] = None,
    empty: Annotated[bool, typer.Option(help="Create a commit without file changes.")] = False,
    base_sha: Annotated[str | None, typer.Option(help="Commit to build on.")] = None,
    base_branch: Annotated[str | None, typer.Option(help="Branch to build on.")] = None,
    no_parent: Annotated[bool, typer.Option(help="Create a root commit.")] = False,
    force: Annotated[bool, typer.Option(help="Allow non-fast-forward ref updates.")] = False,
    delete_if_not_exist: Annotated[bool, typer.Option(help="Delete listed files missing locally.")] = False,
    repository: RepositoryOption = None,
    repo_path: RepoPathOption = None,
    config: ConfigOption = None,
    json_output: JsonFlag = False,
    verbose: VerboseFlag = False,
) -> None:
    """Create one commit on a remote branch from local files."""
    context = _prepare_context(repo_path, config, repository, json_logs=json_output, verbose=verbose)
    options = CommitOptions(
        owner=context.owner,
        repo=context.repo,
        branch=branch,
        message=message,
        files=list(files or []),
        deleted_files=list(delete or []),
        empty=empty,
        base_sha=base_sha,
        base_branch=base_branch,
        no_parent=no_parent,
        force_push=force,
        delete_if_not_exist=delete_if_not_exist,
    )

    def operation() -> dict[str, str]:
        result = build_commit(context.client, options, context.logger, root=context.repo_path)
        if result is None:
            return {"branch": branch, "commit": ""}
        return {"branch": branch, "commit": result.commit_id}

    values = _run(context, operation)
    if not values["commit"]:
        typer.echo("Nothing to commit.", err=True)
    _report(values, json_output=json_output)


@app.command("pin")
def pin_command(
    branch: Annotated[str, typer.Option("--branch", "-b", help="Branch holding the release.")],
    base_sha: Annotated[str, typer.Option(help="Commit the first wave pins to and builds on.")],
    message: Annotated[str, typer.Option("--message", "-m", help="Base commit message.")] = "chore: pin action references",
    repository: RepositoryOption = None,
    repo_path: RepoPathOption = None,
    config: ConfigOption = None,
    json_output: JsonFlag = False,
    verbose: VerboseFlag = False,
) -> None:
    """Pin internal @main action references on an existing branch."""
    context = _prepare_context(repo_path, config, repository, json_logs=json_output, verbose=verbose)
    settings = context.config.release

    def operation() -> dict[str, str]:
        commit = pin_action_references(
            context.client,
            context.facade,
            context.logger,
            owner=context.owner,
            repo=context.repo,
            branch=branch,
            base_message=message,
            base_commit_id=base_sha,
            filenames=settings.action_filenames,
            propagation_delay=settings.propagation_delay_sec,
        )
        return {"branch": branch, "commit": commit}

    _report(_run(context, operation), json_output=json_output)


@app.command("release")
def release_command(
    version: Annotated[str, typer.Option(help="Version to release, e.g. v1.2.0, latest or pr/42.")],
    repository: RepositoryOption = None,
    repo_path: RepoPathOption = None,
    config: ConfigOption = None,
    json_output: JsonFlag = False,
    verbose: VerboseFlag = False,
) -> None:
    """Publish a release branch with build artifacts and pinned action references."""
    context = _prepare_context(repo_path, config, repository, json_logs=json_output, verbose=verbose)

    def operation() -> dict[str, str]:
        outcome = prepare_release(
            context.client,
            context.facade,
            context.logger,
            owner=context.owner,
            repo=context.repo,
            version=version,
            settings=context.config.release,
        )
        return {"branch": outcome.branch, "commit": outcome.commit}

    _report(_run(context, operation), json_output=json_output)


def main(argv: Sequence[str] | None = None) -> int:
    """Execute the releaseprep CLI and return the exit status."""
    command = typer.main.get_command(app)
    try:
        args = list(argv) if argv is not None else sys.argv[1:]
        result = command.main(args=args, prog_name="releaseprep", standalone_mode=False)
    except SystemExit as exc:  # pragma: no cover - click may still exit directly
        return int(exc.code or 0)
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
