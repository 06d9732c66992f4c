"""
Fetching commit lists (PR commits or push ranges) and their full data.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

from monosync.github import GitDataAPI, PRManager
from monosync.meta import decode_meta
from monosync.models import Commit, FileChange, FileStatus, MergedCommit, PRCommit, PRRef

logger = logging.getLogger(__name__)


def split_by_sub_path(files: Iterable[FileChange], sub_path: str) -> Tuple[bool, bool]:
    """
    Whether ``files`` touch paths inside and outside ``sub_path``.

    Returns:
        ``(touches_inside, touches_outside)``
    """
    prefix = f"{sub_path}/"
    inside = outside = False

    for change in files:
        if change.path.startswith(prefix) or change.original_path.startswith(prefix):
            inside = True
        else:
            outside = True
        if inside and outside:
            break

    return inside, outside


def _pr_commit(commit: Commit) -> PRCommit:
    pr_commit = PRCommit(commit=commit)
    if commit.is_merge:
        pr_commit.merged_commit = MergedCommit(sha=commit.parent_shas[1])
    return pr_commit


class CommitFetcher:
    """
    Builds annotated commit lists and fills in the expensive commit data
    (file lists, recursive trees, file content) on demand.
    """

    def __init__(self, git: GitDataAPI, prs: PRManager, max_concurrency: int = 8):
        """
        Initialize commit fetcher.

        Args:
            git: Git data API
            prs: PR manager
            max_concurrency: Max simultaneous content/tree requests
        """
        self.git = git
        self.prs = prs
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def list_commits(self, repo: str, before_sha: str, after_sha: str) -> List[PRCommit]:
        """
        Commits pushed between two shas.

        Args:
            repo: Repository path
            before_sha: Exclusive start
            after_sha: Inclusive end

        Returns:
            Commits, oldest first. Merges are not tagged: the range already
            contains the merged commits, so they are copied linearly.
        """
        commits = await self.git.compare(repo, before_sha, after_sha)
        return [PRCommit(commit=commit) for commit in commits]

    async def get_pr_commits(self, pr: PRRef, sub_path: Optional[str] = None) -> List[PRCommit]:
        """
        Commits of a PR annotated with sync flags.

        With ``sub_path`` (the PR lives in the parent repo), commits that
        don't touch the subpath are marked ``should_sync=False``, and
        commits touching both the subpath and other paths get a generic
        message on the partner side.

        Args:
            pr: Pull request
            sub_path: Directory of the child repo, when ``pr`` is in the parent

        Returns:
            Annotated commits, oldest first
        """
        commits = await self.prs.list_commits(pr)
        return list(
            await asyncio.gather(*(self._annotate(pr.repo_name, commit, sub_path) for commit in commits))
        )

    async def _annotate(self, repo: str, commit: Commit, sub_path: Optional[str]) -> PRCommit:
        pr_commit = _pr_commit(commit)

        if decode_meta(commit.message).get("skipSync"):
            pr_commit.should_sync = False
            return pr_commit

        if not sub_path:
            return pr_commit

        # keep the full commit so it isn't requested again when copying
        async with self._semaphore:
            full_commit = await self.git.get_commit(repo, commit.sha)
        pr_commit.commit = full_commit

        merged_commit = pr_commit.merged_commit
        if merged_commit:
            async with self._semaphore:
                merged = await self.git.get_commit(repo, merged_commit.sha)
            if merged.files:
                merged_commit.should_sync = split_by_sub_path(merged.files, sub_path)[0]

        if full_commit.files:
            inside, outside = split_by_sub_path(full_commit.files, sub_path)
            pr_commit.should_sync = inside or bool(merged_commit and merged_commit.should_sync)
            pr_commit.use_generic_message = inside and outside

        if not pr_commit.should_sync:
            logger.debug(f"{repo}@{commit.sha[:7]} doesn't touch {sub_path}, not syncing")

        return pr_commit

    async def augment(self, repo: str, commits: List[PRCommit]) -> List[PRCommit]:
        """
        Fill in file lists, recursive trees and file content.

        Args:
            repo: Repository the commits belong to
            commits: Commits to complete (updated in place)

        Returns:
            The same commits
        """
        await asyncio.gather(*(self._augment_one(repo, pr_commit) for pr_commit in commits))
        return commits

    async def _augment_one(self, repo: str, pr_commit: PRCommit) -> None:
        if pr_commit.commit.files is None:
            async with self._semaphore:
                full_commit = await self.git.get_commit(repo, pr_commit.sha)
            pr_commit.commit = full_commit

        commit = pr_commit.commit
        await self._load_tree(repo, commit)
        # submodule pointers are copied by sha, there is no blob to fetch
        submodules = {entry.path for entry in commit.tree or [] if entry.type == "commit"}
        await asyncio.gather(
            *(
                self._load_content(repo, commit.sha, change)
                for change in commit.files or []
                if change.status is not FileStatus.REMOVED
                and change.content is None
                and change.path not in submodules
            )
        )

    async def _load_tree(self, repo: str, commit: Commit) -> None:
        if commit.tree is None and commit.tree_sha:
            async with self._semaphore:
                commit.tree = await self.git.get_tree(repo, commit.tree_sha)

    async def _load_content(self, repo: str, ref: str, change: FileChange) -> None:
        async with self._semaphore:
            change.content = await self.git.get_file_content(repo, change.path, ref)
