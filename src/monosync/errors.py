"""
Exceptions raised by monosync.
"""

from typing import Optional


class MonosyncError(Exception):
    """Base class for all monosync errors."""


class GitHubAPIError(MonosyncError):
    """
    Raised when the GitHub API answers with a non-success status.

    Not retried internally; rate limits, missing objects and permission
    problems all surface as this error to the caller.
    """

    def __init__(
        self,
        status_code: int,
        method: str,
        path: str,
        message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.method = method
        self.path = path
        self.message = message or ""
        super().__init__(f"{method} {path} failed: {status_code} - {self.message}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class SyncError(MonosyncError):
    """Raised when a sync cannot be carried out safely."""


class MergeParentNotFoundError(SyncError):
    """Raised when the partner of a merge commit's second parent can't be found."""

    def __init__(self, repo_name: str, sha: str):
        self.repo_name = repo_name
        self.sha = sha
        super().__init__(f"Unable to find partner commit for {repo_name}#{sha}")


class RelationshipConfigError(MonosyncError):
    """Raised when the repository relationship string is malformed."""
