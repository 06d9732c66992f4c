"""
Copying commits from one repository into another.
"""

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from typing import Set

from monosync.errors import MergeParentNotFoundError, SyncError
from monosync.github import GitDataAPI
from monosync.meta import encode_meta
from monosync.meta import strip_meta as strip_commit_meta
from monosync.models import CopySource, CopyTarget, PRCommit
from monosync.sync.commits import CommitFetcher
from monosync.sync.partner import DEFAULT_HISTORY_WINDOW, PartnerCommitResolver
from monosync.transplant import blob_entries, transplant_tree

logger = logging.getLogger(__name__)

GENERIC_COMMIT_MESSAGE = "Copy commit from parent repo"


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class CommitCopier:
    """
    Replays source commits on top of a target branch.

    Each commit's tree is transplanted into the target namespace and
    committed on the evolving parent chain; the target branch ref is only
    moved once every commit was written, so a failure midway leaves the
    branch untouched.
    """

    def __init__(
        self,
        git: GitDataAPI,
        fetcher: CommitFetcher,
        resolver: PartnerCommitResolver,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ):
        """
        Initialize commit copier.

        Args:
            git: Git data API
            fetcher: Commit fetcher used to complete source commits
            resolver: Partner commit resolver for merge parents
            history_window: Commits searched on the base branch for merge parents
        """
        self.git = git
        self.fetcher = fetcher
        self.resolver = resolver
        self.history_window = history_window

    async def copy_commits(
        self,
        source: CopySource,
        target: CopyTarget,
        force_push: bool = False,
        include_trace_sha: bool = False,
        preserve_commit_date: bool = False,
        strip_meta: bool = False,
    ) -> str:
        """
        Copy commits from ``source`` onto ``target``.

        Args:
            source: Commits (after ``last_common_index``) or push range to copy
            target: Branch to write to and the commit to build on
            force_push: Rewrite the target branch instead of fast-forwarding
            include_trace_sha: Append a ``meta:sha:<source sha>`` trailer
            preserve_commit_date: Keep original author/committer dates
            strip_meta: Drop existing meta trailers from copied messages

        Returns:
            Sha the target branch now points at

        Raises:
            MergeParentNotFoundError: If a merge commit's second parent has no partner
            SyncError: If a merge commit is copied without ``target.base_branch``
            GitHubAPIError: On any API failure
        """
        if source.commits:
            all_commits = source.commits
        elif source.before_sha and source.after_sha:
            all_commits = await self.fetcher.list_commits(
                source.repo_name, source.before_sha, source.after_sha
            )
        else:
            all_commits = []

        pending = [c for c in all_commits[source.last_common_index + 1:] if c.should_sync]
        batch_shas = {c.sha for c in all_commits}

        target_tree_sha = target.tree_sha
        if not target_tree_sha:
            target_tree_sha = (await self.git.get_commit(target.repo_name, target.sha)).tree_sha

        commits, parent_tree = await asyncio.gather(
            self.fetcher.augment(source.repo_name, pending),
            self.git.get_tree(target.repo_name, target_tree_sha),
        )
        parent_sha = target.sha
        copied = 0

        for pr_commit in commits:
            commit = pr_commit.commit
            merged = pr_commit.merged_commit
            links_merge_parent = merged is not None and merged.should_sync

            new_tree = transplant_tree(commit, parent_tree, source.sub_path, target.sub_path)
            if new_tree is None:
                if not links_merge_parent:
                    logger.debug(f"Skipping {source.repo_name}@{commit.sha[:7]}: nothing to copy")
                    continue
                # keep the merge topology even though no files change
                new_tree = blob_entries(parent_tree)

            parent_shas = [parent_sha]
            if links_merge_parent:
                parent_shas.append(
                    await self._resolve_merge_parent(pr_commit, source, target, batch_shas, len(all_commits))
                )

            message = self._build_message(pr_commit, source, target, include_trace_sha, strip_meta)
            author = commit.author
            committer = commit.committer if preserve_commit_date else None
            if author and not preserve_commit_date:
                author = dataclasses.replace(author, date=_utc_now())

            tree_sha = await self.git.create_tree(target.repo_name, new_tree)
            parent_tree, parent_sha = await asyncio.gather(
                # the created tree has to be re-read to get blob shas of new content
                self.git.get_tree(target.repo_name, tree_sha),
                self.git.create_commit(
                    target.repo_name,
                    message=message,
                    tree_sha=tree_sha,
                    parent_shas=parent_shas,
                    author=author,
                    committer=committer,
                ),
            )
            self.resolver.remember(source.repo_name, commit.sha, target.repo_name, parent_sha)
            copied += 1
            logger.info(
                f"Copied {source.repo_name}@{commit.sha[:7]} to {target.repo_name}@{parent_sha[:7]}"
            )

        if copied or force_push:
            await self.git.update_ref(target.repo_name, target.branch, parent_sha, force=force_push)
        else:
            logger.info(f"No commits copied to {target.repo_name}:{target.branch}")

        return parent_sha

    def _build_message(
        self,
        pr_commit: PRCommit,
        source: CopySource,
        target: CopyTarget,
        include_trace_sha: bool,
        strip_meta: bool,
    ) -> str:
        message = pr_commit.message

        if pr_commit.merged_commit is not None:
            # "Merge branch 'feature' ..." should name the target's branch
            if source.branch and source.branch in message:
                message = message.replace(source.branch, target.branch, 1)
        elif pr_commit.use_generic_message:
            message = GENERIC_COMMIT_MESSAGE

        if target.generic_message:
            message = GENERIC_COMMIT_MESSAGE

        if strip_meta:
            message = strip_commit_meta(message)

        if include_trace_sha:
            message = encode_meta(message, {"sha": pr_commit.sha})

        return message

    async def _resolve_merge_parent(
        self,
        pr_commit: PRCommit,
        source: CopySource,
        target: CopyTarget,
        batch_shas: Set[str],
        batch_size: int,
    ) -> str:
        merged_sha = pr_commit.merged_commit.sha

        if not target.base_branch:
            raise SyncError(
                f"'target.base_branch' required to copy merge commit: {pr_commit.sha}"
            )

        if merged_sha in batch_shas:
            # merging a branch whose commits are part of this same copy
            partner_sha = await self.resolver.resolve(
                merged_sha,
                source.repo_name,
                target.repo_name,
                target.branch,
                history_window=batch_size,
            )
        else:
            partner_sha = await self.resolver.resolve(
                merged_sha,
                source.repo_name,
                target.repo_name,
                target.base_branch,
                history_window=self.history_window,
            )

        if not partner_sha:
            raise MergeParentNotFoundError(source.repo_name, merged_sha)
        return partner_sha
