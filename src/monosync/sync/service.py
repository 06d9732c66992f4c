"""
Sync service - pairs PRs and runs the sync aspects for them.

A primary PR lives in either repo of a parent/child relationship; its
secondary partner is the PR in the related repo whose head branch is
named ``<primary repo>/<primary number>``.
"""

import asyncio
import logging
import re
from typing import Iterable, List, Optional, Tuple

from monosync.cache import TTLCache
from monosync.config import Settings
from monosync.github import GitDataAPI, GitHubClient, PRManager
from monosync.models import CopySide, CopySource, CopyTarget, PRRef, ReconciliationResult, SyncPair
from monosync.reconcile import reconcile
from monosync.relationships import Relationships
from monosync.sync.commits import CommitFetcher
from monosync.sync.copier import CommitCopier
from monosync.sync.partner import DEFAULT_HISTORY_WINDOW, PartnerCommitResolver
from monosync.sync.pr_meta import sync_meta
from monosync.sync.pr_state import sync_state
from monosync.sync.statuses import sync_statuses
from monosync.taskqueue import KeyedTaskQueue

logger = logging.getLogger(__name__)

DISABLE_SYNC_LABEL = "disable-sync"

COMMITS = "commits"
META = "meta"
STATE = "state"
STATUSES = "statuses"
# order in which aspects run when several are requested
ALL_ASPECTS = (COMMITS, META, STATE, STATUSES)

_SECONDARY_BRANCH_RE = re.compile(r"^([\w.-]+/[\w.-]+)/(\d+)$")


def secondary_branch_name(pr: PRRef) -> str:
    """Head branch name of the secondary PR paired with ``pr``."""
    return f"{pr.repo_name}/{pr.number}"


def parse_secondary_branch_name(branch: Optional[str]) -> Optional[Tuple[str, int]]:
    """
    Primary PR a secondary branch points at.

    Returns:
        ``(primary repo, primary number)``, or None for any other branch
    """
    match = _SECONDARY_BRANCH_RE.match(branch or "")
    if not match:
        return None
    return match.group(1), int(match.group(2))


def _other_side(side: CopySide) -> CopySide:
    return CopySide.SECONDARY if side is CopySide.PRIMARY else CopySide.PRIMARY


class SyncService:
    """
    Entry point for all sync operations.

    Wires the GitHub API wrappers, the commit fetcher/copier and the
    per-pair task queue together.
    """

    def __init__(
        self,
        client: GitHubClient,
        relationships: Relationships,
        cache: Optional[TTLCache] = None,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ):
        """
        Initialize sync service.

        Args:
            client: GitHub API client
            relationships: Repository relationships
            cache: Partner commit cache (a fresh one if omitted)
            history_window: Commits searched for partner commits
        """
        self.client = client
        self.relationships = relationships
        self.git = GitDataAPI(client)
        self.prs = PRManager(client)
        self.fetcher = CommitFetcher(self.git, self.prs)
        self.resolver = PartnerCommitResolver(self.git, cache if cache is not None else TTLCache())
        self.copier = CommitCopier(self.git, self.fetcher, self.resolver, history_window=history_window)
        self.queue = KeyedTaskQueue()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncService":
        client = GitHubClient(settings.github_token, base_url=settings.api_url)
        cache = TTLCache(max_size=settings.cache_size, ttl=settings.cache_ttl_seconds)
        return cls(client, settings.relationships, cache=cache, history_window=settings.history_window)

    async def close(self) -> None:
        await self.client.close()

    async def find_pair(self, pr: PRRef) -> Optional[SyncPair]:
        """
        Find the sync pair ``pr`` belongs to.

        Args:
            pr: Either side of a pair

        Returns:
            The pair, or None if ``pr`` has no partner
        """
        if pr.head_branch is None:
            pr = await self.prs.get_pr(pr.repo_name, pr.number)

        parsed = parse_secondary_branch_name(pr.head_branch)
        if parsed:
            primary_repo, primary_number = parsed
            if self.relationships.get_relation(primary_repo, pr.repo_name) is None:
                logger.warning(
                    f"{pr.key} looks like a sync branch but {primary_repo} is not related to {pr.repo_name}"
                )
                return None
            primary = await self.prs.get_pr(primary_repo, primary_number)
            secondary = pr
        else:
            primary = pr
            secondary = None
            for repo_name in self.relationships.get_related_repo_names(pr.repo_name):
                secondary = await self.prs.find_pr_by_branch(
                    repo_name, secondary_branch_name(pr), include_closed=True
                )
                if secondary:
                    break
            if secondary is None:
                return None

        return SyncPair(
            primary=primary,
            secondary=secondary,
            relation=self.relationships.get_relation(primary.repo_name, secondary.repo_name),
            sub_path=self.relationships.get_sub_path(primary.repo_name, secondary.repo_name),
        )

    async def sync_pr(self, pr: PRRef, aspects: Iterable[str] = ALL_ASPECTS) -> Optional[SyncPair]:
        """
        Sync the given aspects of the pair ``pr`` belongs to.

        Aspects of one pair never run concurrently; they are queued on the
        pair's key.

        Args:
            pr: Either side of a pair
            aspects: Any of ``commits``, ``meta``, ``state``, ``statuses``

        Returns:
            The synced pair, or None if ``pr`` has no partner
        """
        requested = set(aspects)
        unknown = requested - set(ALL_ASPECTS)
        if unknown:
            raise ValueError(f"Unknown sync aspects: {', '.join(sorted(unknown))}")

        pair = await self.find_pair(pr)
        if pair is None:
            logger.debug(f"{pr.key} has no partner PR, nothing to sync")
            return None

        if DISABLE_SYNC_LABEL in pair.primary.labels or DISABLE_SYNC_LABEL in pair.secondary.labels:
            logger.info(f"Sync disabled for {pair.queue_key}")
            return pair

        async def run() -> None:
            for aspect in ALL_ASPECTS:
                if aspect not in requested:
                    continue
                logger.debug(f"Syncing {aspect} for {pair.queue_key}")
                if aspect == COMMITS:
                    await self.sync_commits(pair)
                elif aspect == META:
                    await sync_meta(self.prs, pair)
                elif aspect == STATE:
                    await sync_state(self.prs, pair)
                else:
                    await sync_statuses(self.prs, pair)

        await self.queue.run(pair.queue_key, run)
        return pair

    async def sync_commits(self, pair: SyncPair) -> ReconciliationResult:
        """
        Bring the commits of both PRs of ``pair`` in line.

        Commits missing on one side are copied from the other; on a
        conflict the primary's commits replace the secondary's from the
        last common commit on.

        Returns:
            Reconciliation result the copy was based on
        """
        primary_commits, secondary_commits = await asyncio.gather(
            self.fetcher.get_pr_commits(pair.primary, pair.sub_path_for(CopySide.PRIMARY)),
            self.fetcher.get_pr_commits(pair.secondary, pair.sub_path_for(CopySide.SECONDARY)),
        )
        result = reconcile(primary_commits, secondary_commits)

        if not result.has_mismatch:
            logger.debug(f"Commits of {pair.queue_key} in sync")
            return result

        source_side = result.copy_source
        target_side = _other_side(source_side)
        source_commits = primary_commits if source_side is CopySide.PRIMARY else secondary_commits
        target_commits = secondary_commits if source_side is CopySide.PRIMARY else primary_commits

        # PR info may be stale by the time the lists were built
        source_pr, target_pr = await asyncio.gather(
            self.prs.get_pr(pair.pr_for(source_side).repo_name, pair.pr_for(source_side).number),
            self.prs.get_pr(pair.pr_for(target_side).repo_name, pair.pr_for(target_side).number),
        )

        target_sha, target_tree_sha = self._target_parent(result, target_side, target_commits, target_pr)
        last_common = result.last_common_index(source_side)

        source = CopySource(
            repo_name=source_pr.head_repo_name or source_pr.repo_name,
            commits=source_commits,
            last_common_index=-1 if last_common is None else last_common,
            branch=source_pr.head_branch,
            sub_path=pair.sub_path_for(source_side),
        )
        target = CopyTarget(
            repo_name=target_pr.head_repo_name or target_pr.repo_name,
            branch=target_pr.head_branch,
            sha=target_sha,
            tree_sha=target_tree_sha,
            sub_path=pair.sub_path_for(target_side),
            base_branch=target_pr.base_branch,
        )

        logger.info(
            f"Copying commits from {source_pr.key} to {target_pr.key}"
            + (" (conflict, rewriting target)" if result.has_conflict else "")
        )
        await self.copier.copy_commits(
            source,
            target,
            force_push=result.has_conflict,
            include_trace_sha=True,
            preserve_commit_date=True,
            strip_meta=True,
        )
        return result

    @staticmethod
    def _target_parent(
        result: ReconciliationResult,
        target_side: CopySide,
        target_commits: list,
        target_pr: PRRef,
    ) -> Tuple[str, Optional[str]]:
        """
        Commit the copied commits are built on.

        Without a conflict that is the target PR's head, so commits that
        weren't synced stay on the branch and the ref update fast-forwards.
        On a conflict it is the last common commit, or the PR's fork point.
        """
        last_common = result.last_common_index(target_side)
        common = target_commits[last_common].commit if last_common is not None else None

        if not result.has_conflict and target_pr.head_sha:
            if common and common.sha == target_pr.head_sha:
                return common.sha, common.tree_sha
            return target_pr.head_sha, None

        if common:
            return common.sha, common.tree_sha

        if target_commits and target_commits[0].commit.parent_shas:
            return target_commits[0].commit.parent_shas[0], None

        return target_pr.base_sha, None

    async def sync_push(self, payload: dict) -> Optional[SyncPair]:
        """
        Handle a ``push`` webhook.

        Args:
            payload: Push event payload

        Returns:
            The synced pair, if the pushed branch belongs to one
        """
        ref = payload.get("ref", "")
        if payload.get("deleted") or not ref.startswith("refs/heads/"):
            return None

        repo_name = payload["repository"]["full_name"]
        branch = ref[len("refs/heads/"):]

        if payload.get("forced"):
            logger.warning(f"Force push to {repo_name}:{branch} is not supported, not syncing")
            return None

        if branch == payload["repository"].get("default_branch"):
            await self.sync_open_prs(repo_name, aspects=[STATUSES])
            return None

        pr = await self.prs.find_pr_by_branch(repo_name, branch)
        if pr is None:
            logger.debug(f"No open PR for {repo_name}:{branch}")
            return None

        return await self.sync_pr(pr, aspects=[COMMITS, STATUSES])

    async def sync_commit_statuses(self, repo_name: str, sha: str) -> None:
        """Mirror statuses for the open PRs whose head is ``sha``."""
        prs = await self.prs.list_prs_for_commit(repo_name, sha)
        if not prs:
            logger.debug(f"No open PR with head {repo_name}@{sha[:7]}")
        for pr in prs:
            await self.sync_pr(pr, aspects=[STATUSES])

    async def sync_open_prs(self, repo_name: str, aspects: Iterable[str] = ALL_ASPECTS) -> int:
        """
        Sync every open PR of a repository; failures are logged per PR.

        Returns:
            Number of PRs synced without error
        """
        aspects = list(aspects)
        synced = 0
        for pr in await self.prs.list_open_prs(repo_name):
            try:
                await self.sync_pr(pr, aspects)
                synced += 1
            except Exception:
                logger.exception(f"Failed to sync {pr.key}")
        return synced

    async def sync_all(self) -> None:
        """Sync the open PRs of every configured repo (startup catch-up)."""
        for repo_name in self.relationships.repo_names:
            synced = await self.sync_open_prs(repo_name)
            logger.info(f"Synced {synced} open PRs of {repo_name}")

    async def sync_child_repos(self, parent_pr: PRRef) -> List[str]:
        """
        Copy a merged, unpaired parent PR into the child repos it touched.

        The merged range is replayed on the base branch of every child whose
        directory the PR changed, with a generic commit message.

        Args:
            parent_pr: Merged PR in a parent repo

        Returns:
            Names of the child repos that were updated
        """
        if not parent_pr.merged or not parent_pr.merge_commit_sha:
            return []

        children = self.relationships.get_children(parent_pr.repo_name)
        if not children:
            return []

        paths = await self.prs.list_file_paths(parent_pr)
        updated = []

        for child in children:
            prefix = f"{child.path}/"
            if not any(path.startswith(prefix) for path in paths):
                continue

            branch = parent_pr.base_branch
            head_sha = await self.git.get_branch_head_sha(child.name, branch)
            if head_sha is None:
                logger.warning(f"{child.name} has no branch {branch}, not copying {parent_pr.key}")
                continue

            source = CopySource(
                repo_name=parent_pr.repo_name,
                before_sha=parent_pr.base_sha,
                after_sha=parent_pr.merge_commit_sha,
                sub_path=child.path,
            )
            target = CopyTarget(
                repo_name=child.name,
                branch=branch,
                sha=head_sha,
                base_branch=branch,
                generic_message=True,
            )

            async def copy(source: CopySource = source, target: CopyTarget = target) -> str:
                return await self.copier.copy_commits(source, target, include_trace_sha=True)

            await self.queue.run(f"{child.name}:{branch}", copy)
            logger.info(f"Copied {parent_pr.key} into {child.name}:{branch}")
            updated.append(child.name)

        return updated
