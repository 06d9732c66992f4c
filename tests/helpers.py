"""Factories and fakes shared by the test modules."""

import json
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from monosync.models import Author, Commit, FileChange, FileStatus, PRCommit, PRRef, TreeEntry

AUTHOR = Author(name="Jane Doe", email="jane@example.com", date="2024-01-01T00:00:00Z")


def make_commit(
    sha: str,
    message: str = "Commit",
    parents: Optional[List[str]] = None,
    files: Optional[List[FileChange]] = None,
    tree: Optional[List[TreeEntry]] = None,
    tree_sha: Optional[str] = None,
    author_login: Optional[str] = None,
) -> Commit:
    return Commit(
        sha=sha,
        message=message,
        parent_shas=parents if parents is not None else [f"{sha}-parent"],
        author=AUTHOR,
        committer=AUTHOR,
        tree_sha=tree_sha or f"{sha}-tree",
        tree=tree,
        files=files,
        author_login=author_login,
    )


def change(
    path: str,
    status: FileStatus = FileStatus.MODIFIED,
    content: Optional[bytes] = b"content",
    previous_path: Optional[str] = None,
) -> FileChange:
    if status is FileStatus.REMOVED:
        content = None
    return FileChange(path=path, status=status, previous_path=previous_path, content=content)


def pr_commit(sha: str, message: str = "Commit", should_sync: bool = True, **kwargs) -> PRCommit:
    return PRCommit(commit=make_commit(sha, message, **kwargs), should_sync=should_sync)


def make_pr(repo_name: str, number: int, head_branch: str = "feature", **kwargs) -> PRRef:
    kwargs.setdefault("base_branch", "main")
    kwargs.setdefault("head_sha", f"{repo_name}-{number}-head")
    kwargs.setdefault("base_sha", f"{repo_name}-{number}-base")
    kwargs.setdefault("head_repo_name", repo_name)
    kwargs.setdefault("state", "open")
    kwargs.setdefault("title", "Title")
    kwargs.setdefault("body", "")
    return PRRef(repo_name=repo_name, number=number, head_branch=head_branch, **kwargs)


def pr_payload(
    repo_name: str,
    number: int,
    head_ref: str = "feature",
    merged: bool = False,
    state: str = "open",
    labels: Optional[List[str]] = None,
) -> dict:
    """Pulls API / webhook shaped PR payload."""
    return {
        "number": number,
        "state": state,
        "merged": merged,
        "title": "Title",
        "body": "Body",
        "html_url": f"https://github.com/{repo_name}/pull/{number}",
        "merge_commit_sha": "merge-sha" if merged else None,
        "user": {"login": "jane"},
        "labels": [{"name": name} for name in labels or []],
        "head": {"ref": head_ref, "sha": "head-sha", "repo": {"full_name": repo_name}},
        "base": {"ref": "main", "sha": "base-sha", "repo": {"full_name": repo_name}},
    }


Handler = Callable[[httpx.Request], httpx.Response]


class FakeGitHub:
    """
    Routes requests of an httpx.MockTransport by ``(method, path)``.

    Routes map to a JSON body (status 200), a ``(status, body)`` tuple or a
    handler function. Every request is recorded in ``requests``.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], object]] = None):
        self.routes = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def bodies(self, method: str, path: str) -> List[dict]:
        return [
            json.loads(request.content)
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))

        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, json=body)
        return httpx.Response(200, json=route)
