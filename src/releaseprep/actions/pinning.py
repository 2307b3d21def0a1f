"""Pin internal ``uses: <owner>/<repo>/<path>@main`` references in waves.

Each wave pins every action whose own dependencies are already pinned into the
actions that reference it, publishes the rewritten files as one commit and
uses that commit as the pin target of the next wave.
"""

from __future__ import annotations

import re
import time
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from releaseprep.actions.workflow import WorkflowSchemaError, parse_step_references
from releaseprep.core.models import ActionModule, CommitOptions
from releaseprep.forge.commit import build_commit

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from releaseprep.forge.client import ObjectStore
    from releaseprep.git.facade import GitFacade
    from releaseprep.io.logging import StructuredLogger


FLOATING_REF = "main"
DEFAULT_ACTION_FILENAMES = ("action.yml", "action.yaml")


class DependencyCycleError(RuntimeError):
    """Raised when remaining action references can never be pinned."""

    def __init__(self, pending: Mapping[str, Sequence[str]]) -> None:
        """Record each unresolved module with the names it still waits on."""
        self.pending = {name: list(deps) for name, deps in pending.items()}
        details = ", ".join(f"{name} -> {', '.join(deps)}" for name, deps in self.pending.items())
        super().__init__(f"cyclic action references cannot be pinned: {details}")


class ActionGraph:
    """Mutable dependency graph of the action modules of one run."""

    def __init__(self, modules: Iterable[ActionModule]) -> None:
        """Index ``modules`` by path."""
        self._modules: dict[str, ActionModule] = {module.path: module for module in modules}

    @property
    def modules(self) -> list[ActionModule]:
        """Return the modules in path order."""
        return [self._modules[path] for path in sorted(self._modules)]

    def ready_names(self) -> set[str]:
        """Return canonical names whose modules have no unpinned dependencies."""
        blocked = {module.canonical_name for module in self._modules.values() if not module.pinned}
        return {module.canonical_name for module in self._modules.values()} - blocked

    def retire(self, names: Iterable[str]) -> None:
        """Drop ``names`` from every module's dependency set."""
        retired = set(names)
        for module in self._modules.values():
            module.dependencies.difference_update(retired)

    def pending(self) -> dict[str, list[str]]:
        """Return unpinned modules with their remaining dependencies."""
        return {
            module.path: sorted(module.dependencies)
            for module in self.modules
            if not module.pinned
        }


def canonical_name(owner: str, repo: str, path: str) -> str:
    """Return the ``uses`` name of the action defined at ``path``."""
    directory = PurePosixPath(path).parent.as_posix()
    if directory in {"", "."}:
        return f"{owner}/{repo}"
    return f"{owner}/{repo}/{directory}"


def floating_dependencies(references: Iterable[str], owner: str, repo: str) -> set[str]:
    """Return the names of this repository's actions referenced at ``@main``."""
    pattern = re.compile(
        rf"^{re.escape(owner)}/{re.escape(repo)}(?:/(?P<sub>[^@\s]+?))?/?@{FLOATING_REF}$",
    )
    names: set[str] = set()
    for reference in references:
        match = pattern.match(reference)
        if match is None:
            continue
        sub = match.group("sub")
        names.add(f"{owner}/{repo}/{sub}" if sub else f"{owner}/{repo}")
    return names


def pin_reference(content: str, name: str, commit_id: str) -> str:
    """Rewrite ``uses: <name>@main`` occurrences in ``content`` to ``@<commit_id>``.

    A trailing slash before ``@main`` is accepted and kept, matching
    :func:`floating_dependencies`.
    """
    pattern = re.compile(
        rf"(\buses:\s*[\"']?{re.escape(name)}/?)@{FLOATING_REF}(?=[\"'\s#,}}]|$)",
        re.MULTILINE,
    )
    return pattern.sub(lambda match: f"{match.group(1)}@{commit_id}", content)


def load_action_modules(
    facade: GitFacade,
    *,
    owner: str,
    repo: str,
    filenames: Sequence[str] = DEFAULT_ACTION_FILENAMES,
) -> list[ActionModule]:
    """Read every tracked action file and compute its dependency edges."""
    root = facade.repo_path
    wanted = set(filenames)
    paths = sorted(path for path in facade.ls_files() if PurePosixPath(path).name in wanted)

    modules: list[ActionModule] = []
    for path in paths:
        try:
            content = (root / path).read_bytes().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WorkflowSchemaError(path, f"not valid UTF-8: {exc}") from exc
        references = parse_step_references(content, source=path)
        modules.append(
            ActionModule(
                path=path,
                content=content,
                canonical_name=canonical_name(owner, repo, path),
                dependencies=floating_dependencies(references, owner, repo),
            ),
        )

    known = {module.canonical_name for module in modules}
    for module in modules:
        module.dependencies = (module.dependencies & known) - {module.canonical_name}
    return modules


def apply_wave(graph: ActionGraph, commit_id: str) -> tuple[set[str], list[ActionModule]]:
    """Pin every ready name into the modules referencing it.

    Returns the ready names and the modules whose content changed.
    """
    ready = graph.ready_names()
    changed: list[ActionModule] = []
    for module in graph.modules:
        content = module.content
        for name in sorted(ready):
            if name != module.canonical_name:
                content = pin_reference(content, name, commit_id)
        if content != module.content:
            module.content = content
            changed.append(module)
    return ready, changed


def pin_action_references(
    client: ObjectStore,
    facade: GitFacade,
    logger: StructuredLogger,
    *,
    owner: str,
    repo: str,
    branch: str,
    base_message: str,
    base_commit_id: str,
    filenames: Sequence[str] = DEFAULT_ACTION_FILENAMES,
    propagation_delay: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Publish pinning waves on ``branch`` and return the final commit id."""
    modules = load_action_modules(facade, owner=owner, repo=repo, filenames=filenames)
    if not modules:
        logger.info("no action files found; nothing to pin", branch=branch)
        return base_commit_id

    graph = ActionGraph(modules)
    root: Path = facade.repo_path
    latest = base_commit_id
    wave = 0
    while True:
        ready, changed = apply_wave(graph, latest)
        graph.retire(ready)
        if not changed:
            pending = graph.pending()
            if not pending:
                break
            if graph.ready_names() <= ready:
                raise DependencyCycleError(pending)
            # References the text rewrite cannot reach still count as edges.
            logger.warning("ready actions produced no rewrite", ready=sorted(ready), target=latest)
            continue

        wave += 1
        for module in changed:
            (root / module.path).write_bytes(module.content.encode("utf-8"))
        paths = [module.path for module in changed]
        logger.info("publishing pinning wave", wave=wave, pinned=sorted(ready), files=paths, target=latest)
        result = build_commit(
            client,
            CommitOptions(
                owner=owner,
                repo=repo,
                branch=branch,
                message=f"{base_message}\n\npin action references (wave {wave})",
                files=paths,
                base_sha=latest,
            ),
            logger,
            root=root,
        )
        if result is None:  # pragma: no cover - a wave always carries files
            break
        latest = result.commit_id
        sleep(propagation_delay)

    logger.info("action references pinned", waves=wave, commit=latest)
    return latest


__all__ = [
    "ActionGraph",
    "DEFAULT_ACTION_FILENAMES",
    "DependencyCycleError",
    "apply_wave",
    "canonical_name",
    "floating_dependencies",
    "load_action_modules",
    "pin_action_references",
    "pin_reference",
]
