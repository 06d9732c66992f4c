"""
GitHub git data operations (commits, trees, blobs, refs, contents).
"""

import base64
import logging
from typing import Iterable, List, Optional
from urllib.parse import quote

from monosync.errors import GitHubAPIError, SyncError
from monosync.github.client import GitHubClient
from monosync.models import Author, Commit, TreeEntry

logger = logging.getLogger(__name__)


class GitDataAPI:
    """
    Low-level git object access for a GitHub repository.

    Handles:
    - Fetching commits, commit ranges and recursive trees
    - Fetching file contents at a ref
    - Creating blobs, trees and commits
    - Reading and moving branch refs
    """

    def __init__(self, client: GitHubClient):
        """
        Initialize git data API.

        Args:
            client: GitHub API client
        """
        self.client = client

    async def get_commit(self, repo: str, sha: str) -> Commit:
        """
        Get a commit including its changed files (without file content).

        Args:
            repo: Repository path (owner/repo)
            sha: Commit sha

        Returns:
            Commit with ``files`` populated
        """
        data = await self.client.request_json("GET", f"/repos/{repo}/commits/{sha}")
        commit = Commit.from_api(data)
        if commit.files is None:
            commit.files = []
        return commit

    async def compare(self, repo: str, base_sha: str, head_sha: str) -> List[Commit]:
        """
        Commits reachable from ``head_sha`` but not from ``base_sha``.

        Args:
            repo: Repository path
            base_sha: Exclusive start of the range
            head_sha: Inclusive end of the range

        Returns:
            Commits in the order returned by GitHub (oldest first)
        """
        data = await self.client.request_json(
            "GET", f"/repos/{repo}/compare/{base_sha}...{head_sha}"
        )
        return [Commit.from_api(item) for item in data.get("commits", [])]

    async def get_tree(self, repo: str, tree_sha: str, recursive: bool = True) -> List[TreeEntry]:
        """
        Get a (flattened, when recursive) tree listing.

        Args:
            repo: Repository path
            tree_sha: Tree sha
            recursive: List nested entries too

        Returns:
            Tree entries

        Raises:
            SyncError: If GitHub truncated the listing
        """
        params = {"recursive": 1} if recursive else None
        data = await self.client.request_json(
            "GET", f"/repos/{repo}/git/trees/{tree_sha}", params=params
        )
        if data.get("truncated"):
            # new trees are built from the full listing, a partial one would drop files
            raise SyncError(f"Tree {tree_sha} of {repo} is too large to list")
        return [TreeEntry.from_api(item) for item in data.get("tree", [])]

    async def get_file_content(self, repo: str, path: str, ref: str) -> bytes:
        """
        Get raw file content at a ref.

        Args:
            repo: Repository path
            path: File path in the repository
            ref: Commit sha or branch

        Returns:
            File bytes
        """
        data = await self.client.request_json(
            "GET", f"/repos/{repo}/contents/{quote(path)}", params={"ref": ref}
        )

        # files over 1MB come back without inline content
        if data.get("encoding") == "base64" and data.get("content") is not None:
            return base64.b64decode(data["content"])

        blob = await self.client.request_json("GET", f"/repos/{repo}/git/blobs/{data['sha']}")
        return base64.b64decode(blob.get("content", ""))

    async def create_blob(self, repo: str, content: bytes) -> str:
        """Create a blob from raw bytes; returns its sha."""
        data = await self.client.request_json(
            "POST",
            f"/repos/{repo}/git/blobs",
            json={"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
        )
        return data["sha"]

    async def create_tree(self, repo: str, entries: Iterable[TreeEntry]) -> str:
        """
        Create a tree from a full, flattened entry listing.

        Entries with text content are sent inline; binary content is
        uploaded as a blob first.

        Args:
            repo: Repository path
            entries: Every entry of the new tree

        Returns:
            New tree sha
        """
        tree = []
        for entry in entries:
            item = {"path": entry.path, "mode": entry.mode, "type": entry.type}
            if entry.content is not None:
                try:
                    item["content"] = entry.content.decode("utf-8")
                except UnicodeDecodeError:
                    item["sha"] = await self.create_blob(repo, entry.content)
            else:
                item["sha"] = entry.sha
            tree.append(item)

        data = await self.client.request_json("POST", f"/repos/{repo}/git/trees", json={"tree": tree})
        return data["sha"]

    async def create_commit(
        self,
        repo: str,
        message: str,
        tree_sha: str,
        parent_shas: List[str],
        author: Optional[Author] = None,
        committer: Optional[Author] = None,
    ) -> str:
        """
        Create a commit object.

        Args:
            repo: Repository path
            message: Commit message
            tree_sha: Tree of the commit
            parent_shas: One parent, or two for a merge commit
            author: Author identity (GitHub uses the token's user if omitted)
            committer: Committer identity

        Returns:
            New commit sha
        """
        payload = {"message": message, "tree": tree_sha, "parents": parent_shas}
        if author:
            payload["author"] = author.to_api()
        if committer:
            payload["committer"] = committer.to_api()

        data = await self.client.request_json("POST", f"/repos/{repo}/git/commits", json=payload)
        return data["sha"]

    async def get_branch_head_sha(self, repo: str, branch: str) -> Optional[str]:
        """
        Current head sha of a branch.

        Returns:
            Sha, or None if the branch doesn't exist
        """
        try:
            data = await self.client.request_json("GET", f"/repos/{repo}/git/ref/heads/{branch}")
        except GitHubAPIError as e:
            if e.is_not_found:
                return None
            raise
        return (data.get("object") or {}).get("sha")

    async def update_ref(self, repo: str, branch: str, sha: str, force: bool = False) -> None:
        """
        Move a branch to ``sha``.

        Args:
            repo: Repository path
            branch: Branch name
            sha: New head commit
            force: Allow a non-fast-forward update
        """
        await self.client.request_json(
            "PATCH",
            f"/repos/{repo}/git/refs/heads/{branch}",
            json={"sha": sha, "force": force},
        )
        logger.info(f"Updated {repo}:{branch} to {sha}{' (forced)' if force else ''}")
