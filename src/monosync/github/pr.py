"""
GitHub Pull Request operations.
"""

import logging
from typing import Dict, List, Optional

from monosync.errors import GitHubAPIError
from monosync.github.client import GitHubClient
from monosync.models import Commit, PRRef

logger = logging.getLogger(__name__)


class PRManager:
    """
    Manages GitHub Pull Request operations.

    Handles:
    - Fetching PRs by number or head branch
    - Listing PR commits and changed files
    - Updating, closing, reopening and merging PRs
    - Reading and posting commit statuses
    """

    # GitHub caps the PR commits endpoint at 250 commits
    MAX_COMMIT_PAGES = 3

    def __init__(self, client: GitHubClient):
        """
        Initialize PR manager.

        Args:
            client: GitHub API client
        """
        self.client = client

    async def get_pr(self, repo: str, number: int) -> PRRef:
        """
        Get a pull request.

        Args:
            repo: Base repository (owner/repo)
            number: PR number

        Returns:
            PR reference with head/base info filled in
        """
        data = await self.client.request_json("GET", f"/repos/{repo}/pulls/{number}")
        return PRRef.from_api(data)

    async def find_pr_by_branch(
        self,
        repo: str,
        branch: str,
        include_closed: bool = False,
    ) -> Optional[PRRef]:
        """
        Find the PR whose head is ``branch`` of ``repo``.

        Args:
            repo: Repository holding both the base and head branch
            branch: Head branch name
            include_closed: Also consider closed PRs

        Returns:
            Most recent matching PR, or None
        """
        owner = repo.split("/")[0]
        prs = await self.client.request_json(
            "GET",
            f"/repos/{repo}/pulls",
            params={
                "head": f"{owner}:{branch}",
                "state": "all" if include_closed else "open",
                "per_page": 1,
            },
        )

        if prs:
            return PRRef.from_api(prs[0])
        return None

    async def list_open_prs(self, repo: str) -> List[PRRef]:
        """List the open PRs of a repository."""
        items = await self.client.paginate(f"/repos/{repo}/pulls", params={"state": "open"})
        return [PRRef.from_api(item) for item in items]

    async def list_commits(self, pr: PRRef) -> List[Commit]:
        """
        Commits of a PR, oldest first (without files or trees).

        Args:
            pr: Pull request

        Returns:
            Up to 250 commits
        """
        items = await self.client.paginate(
            f"/repos/{pr.repo_name}/pulls/{pr.number}/commits",
            max_pages=self.MAX_COMMIT_PAGES,
        )
        return [Commit.from_api(item) for item in items]

    async def list_file_paths(self, pr: PRRef) -> List[str]:
        """Paths of all files changed by a PR."""
        items = await self.client.paginate(f"/repos/{pr.repo_name}/pulls/{pr.number}/files")
        return [item["filename"] for item in items]

    async def update_pr(self, pr: PRRef, **fields) -> None:
        """
        Patch a PR (title, body, state, ...).

        Args:
            pr: Pull request
            **fields: Fields to change
        """
        await self.client.request_json(
            "PATCH", f"/repos/{pr.repo_name}/pulls/{pr.number}", json=fields
        )
        logger.info(f"Updated {pr.key}: {', '.join(sorted(fields))}")

    async def close_pr(self, pr: PRRef) -> None:
        await self.update_pr(pr, state="closed")

    async def reopen_pr(self, pr: PRRef) -> None:
        await self.update_pr(pr, state="open")

    async def merge_pr(
        self,
        pr: PRRef,
        commit_title: str,
        commit_message: str,
        merge_method: str = "squash",
    ) -> None:
        """
        Merge a PR.

        Args:
            pr: Pull request
            commit_title: Title of the merge commit
            commit_message: Body of the merge commit
            merge_method: merge, squash or rebase

        Raises:
            GitHubAPIError: If GitHub refuses the merge
        """
        await self.client.request_json(
            "PUT",
            f"/repos/{pr.repo_name}/pulls/{pr.number}/merge",
            json={
                "commit_title": commit_title,
                "commit_message": commit_message,
                "merge_method": merge_method,
            },
        )
        logger.info(f"Merged {pr.key}")

    async def get_statuses(self, repo: str, sha: str) -> List[Dict[str, str]]:
        """
        Latest status per context for a commit.

        Returns:
            List of ``{"context", "state", "description"}`` dicts
        """
        try:
            data = await self.client.request_json("GET", f"/repos/{repo}/commits/{sha}/status")
        except GitHubAPIError as e:
            if e.is_not_found:
                return []
            raise

        return [
            {
                "context": status.get("context", ""),
                "state": status.get("state", ""),
                "description": status.get("description") or "",
            }
            for status in data.get("statuses", [])
        ]

    async def create_status(
        self,
        repo: str,
        sha: str,
        context: str,
        state: str,
        description: Optional[str] = None,
    ) -> None:
        """Post a commit status."""
        payload = {"context": context, "state": state}
        if description:
            payload["description"] = description
        await self.client.request_json("POST", f"/repos/{repo}/statuses/{sha}", json=payload)
        logger.info(f"Set {context}={state} on {repo}@{sha[:7]}")

    async def list_prs_for_commit(self, repo: str, sha: str) -> List[PRRef]:
        """Open PRs whose head is ``sha``."""
        items = await self.client.request_json("GET", f"/repos/{repo}/commits/{sha}/pulls")
        prs = [PRRef.from_api(item) for item in items or []]
        return [pr for pr in prs if pr.state == "open" and pr.head_sha == sha]
