"""GitHub object-graph client built on httpx.

Branch, default-branch and commit-tree lookups go through GraphQL because a
single query returns both the commit id and its tree id. Blob, tree, commit and
ref writes go through the REST ``git`` endpoints.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from releaseprep.core.models import BranchRef, CommitRequest

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from releaseprep.core.models import ForgeSettings
    from releaseprep.io.logging import StructuredLogger


_API_VERSION = "2022-11-28"
_USER_AGENT = "releaseprep"

_COMMIT_FIELDS = """
        ... on Commit {
          oid
          tree {
            oid
          }
        }"""

_BRANCH_QUERY = f"""
query($owner: String!, $repo: String!, $ref: String!) {{
  repository(owner: $owner, name: $repo) {{
    ref(qualifiedName: $ref) {{
      name
      target {{{_COMMIT_FIELDS}
      }}
    }}
  }}
}}"""

_DEFAULT_BRANCH_QUERY = f"""
query($owner: String!, $repo: String!) {{
  repository(owner: $owner, name: $repo) {{
    defaultBranchRef {{
      name
      target {{{_COMMIT_FIELDS}
      }}
    }}
  }}
}}"""

_COMMIT_TREE_QUERY = """
query($owner: String!, $repo: String!, $oid: GitObjectID!) {
  repository(owner: $owner, name: $repo) {
    object(oid: $oid) {
      ... on Commit {
        tree {
          oid
        }
      }
    }
  }
}"""


class ForgeErrorKind(str, Enum):
    """Stable classification of forge failures."""

    not_found = "not_found"
    ref_missing = "ref_missing"
    ref_exists = "ref_exists"
    non_fast_forward = "non_fast_forward"
    unauthorized = "unauthorized"
    other = "other"


class ForgeAPIError(RuntimeError):
    """Raised when a forge request fails."""

    def __init__(
        self,
        kind: ForgeErrorKind,
        message: str,
        *,
        status: int | None = None,
        method: str = "",
        path: str = "",
    ) -> None:
        """Initialise the error with the classified kind and request details."""
        self.kind = kind
        self.status = status
        self.method = method
        self.path = path
        self.detail = message
        parts = [f"{method} {path}".strip(), f"kind={kind.value}"]
        if status is not None:
            parts.append(f"status={status}")
        parts.append(message)
        super().__init__("; ".join(part for part in parts if part))


def classify_failure(status: int | None, message: str) -> ForgeErrorKind:
    """Map a forge status code and message onto a :class:`ForgeErrorKind`."""
    lowered = message.lower()
    if "reference does not exist" in lowered:
        return ForgeErrorKind.ref_missing
    if "not a fast forward" in lowered or "not a fast-forward" in lowered:
        return ForgeErrorKind.non_fast_forward
    if "reference already exists" in lowered:
        return ForgeErrorKind.ref_exists
    if status == httpx.codes.NOT_FOUND:
        return ForgeErrorKind.not_found
    if status in {httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN}:
        return ForgeErrorKind.unauthorized
    return ForgeErrorKind.other


class ObjectStore(Protocol):
    """Object-graph operations the commit builder depends on."""

    def create_blob(self, owner: str, repo: str, content: bytes) -> str: ...

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: Sequence[Mapping[str, Any]],
        base_tree: str | None = None,
    ) -> str: ...

    def create_commit(self, owner: str, repo: str, request: CommitRequest) -> str: ...

    def update_ref(self, owner: str, repo: str, branch: str, sha: str, *, force: bool = False) -> str: ...

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> str: ...

    def delete_ref(self, owner: str, repo: str, branch: str) -> None: ...

    def query_branch(self, owner: str, repo: str, branch: str) -> BranchRef | None: ...

    def query_default_branch(self, owner: str, repo: str) -> BranchRef: ...

    def query_tree_of_commit(self, owner: str, repo: str, sha: str) -> str: ...


class ForgeClient:
    """Synchronous GitHub client for git objects and refs."""

    def __init__(
        self,
        settings: ForgeSettings,
        logger: StructuredLogger,
        *,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Create a client from forge settings; ``token`` overrides the settings token."""
        secret = token
        if secret is None and settings.token is not None:
            secret = settings.token.get_secret_value()
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": _USER_AGENT,
        }
        if secret:
            headers["Authorization"] = f"Bearer {secret}"
        self._graphql_url = settings.resolved_graphql_url
        self._logger = logger
        self._http = httpx.Client(
            base_url=settings.api_url,
            headers=headers,
            timeout=settings.timeout_sec,
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self) -> ForgeClient:
        """Return the client for use as a context manager."""
        return self

    def __exit__(self, *_: object) -> None:
        """Close the client when leaving the context."""
        self.close()

    def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """Upload ``content`` as a blob and return its sha."""
        payload = {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"}
        data = self._rest("POST", f"/repos/{owner}/{repo}/git/blobs", payload)
        return str(data["sha"])

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: Sequence[Mapping[str, Any]],
        base_tree: str | None = None,
    ) -> str:
        """Create a tree from ``entries``, layered on ``base_tree`` when given.

        Without ``base_tree`` the forge builds the tree from ``entries`` alone,
        so every path absent from ``entries`` is absent from the result.
        """
        payload: dict[str, Any] = {"tree": [dict(entry) for entry in entries]}
        if base_tree is not None:
            payload["base_tree"] = base_tree
        data = self._rest("POST", f"/repos/{owner}/{repo}/git/trees", payload)
        return str(data["sha"])

    def create_commit(self, owner: str, repo: str, request: CommitRequest) -> str:
        """Create a commit object and return its sha."""
        payload = {"message": request.message, "tree": request.tree_id, "parents": list(request.parents)}
        data = self._rest("POST", f"/repos/{owner}/{repo}/git/commits", payload)
        return str(data["sha"])

    def update_ref(self, owner: str, repo: str, branch: str, sha: str, *, force: bool = False) -> str:
        """Move ``heads/<branch>`` to ``sha`` and return the applied sha."""
        data = self._rest(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            {"sha": sha, "force": force},
        )
        return str(data["object"]["sha"])

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> str:
        """Create ``refs/heads/<branch>`` at ``sha`` and return the applied sha."""
        data = self._rest(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            {"ref": f"refs/heads/{branch}", "sha": sha},
        )
        return str(data["object"]["sha"])

    def delete_ref(self, owner: str, repo: str, branch: str) -> None:
        """Delete ``heads/<branch>``."""
        self._rest("DELETE", f"/repos/{owner}/{repo}/git/refs/heads/{branch}")

    def query_branch(self, owner: str, repo: str, branch: str) -> BranchRef | None:
        """Return the branch head and tree, or ``None`` if the branch is absent."""
        data = self._graphql(_BRANCH_QUERY, {"owner": owner, "repo": repo, "ref": f"refs/heads/{branch}"})
        ref = _repository(data).get("ref")
        if ref is None:
            return None
        return _branch_ref(ref, fallback_name=branch)

    def query_default_branch(self, owner: str, repo: str) -> BranchRef:
        """Return the head and tree of the repository's default branch."""
        data = self._graphql(_DEFAULT_BRANCH_QUERY, {"owner": owner, "repo": repo})
        ref = _repository(data).get("defaultBranchRef")
        if ref is None:
            raise ForgeAPIError(
                ForgeErrorKind.not_found,
                f"{owner}/{repo} has no default branch",
                method="POST",
                path=self._graphql_url,
            )
        return _branch_ref(ref, fallback_name=None)

    def query_tree_of_commit(self, owner: str, repo: str, sha: str) -> str:
        """Return the tree id of commit ``sha``."""
        data = self._graphql(_COMMIT_TREE_QUERY, {"owner": owner, "repo": repo, "oid": sha})
        obj = _repository(data).get("object")
        tree = obj.get("tree") if isinstance(obj, dict) else None
        if not isinstance(tree, dict) or "oid" not in tree:
            raise ForgeAPIError(
                ForgeErrorKind.not_found,
                f"commit {sha} not found in {owner}/{repo}",
                method="POST",
                path=self._graphql_url,
            )
        return str(tree["oid"])

    def _rest(self, method: str, path: str, payload: Mapping[str, Any] | None = None) -> dict[str, Any]:
        self._logger.debug("forge request", method=method, path=path)
        try:
            response = self._http.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            raise ForgeAPIError(ForgeErrorKind.other, str(exc), method=method, path=path) from exc
        if response.is_error:
            message = _error_message(response)
            raise ForgeAPIError(
                classify_failure(response.status_code, message),
                message,
                status=response.status_code,
                method=method,
                path=path,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ForgeAPIError(
                ForgeErrorKind.other,
                f"invalid JSON response: {exc}",
                status=response.status_code,
                method=method,
                path=path,
            ) from exc

    def _graphql(self, query: str, variables: Mapping[str, Any]) -> dict[str, Any]:
        data = self._rest("POST", self._graphql_url, {"query": query, "variables": dict(variables)})
        errors = data.get("errors") or []
        if errors:
            first = errors[0]
            message = "; ".join(str(error.get("message", error)) for error in errors)
            kind = ForgeErrorKind.not_found if first.get("type") == "NOT_FOUND" else classify_failure(None, message)
            raise ForgeAPIError(kind, message, method="POST", path=self._graphql_url)
        return data.get("data") or {}


def _repository(data: Mapping[str, Any]) -> dict[str, Any]:
    repository = data.get("repository")
    if not isinstance(repository, dict):
        raise ForgeAPIError(ForgeErrorKind.not_found, "repository not found")
    return repository


def _branch_ref(ref: Mapping[str, Any], *, fallback_name: str | None) -> BranchRef:
    target = ref.get("target") or {}
    tree = target.get("tree") or {}
    if "oid" not in target or "oid" not in tree:
        raise ForgeAPIError(ForgeErrorKind.other, f"ref {ref.get('name', fallback_name)} does not point at a commit")
    return BranchRef(name=ref.get("name") or fallback_name, commit_id=target["oid"], tree_id=tree["oid"])


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or response.reason_phrase


__all__ = [
    "ForgeAPIError",
    "ForgeClient",
    "ForgeErrorKind",
    "ObjectStore",
    "classify_failure",
]
