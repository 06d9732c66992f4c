"""
Locating the partner of a commit in the related repository.
"""

import logging
from typing import Optional

from monosync.cache import TTLCache
from monosync.errors import GitHubAPIError
from monosync.github import GitDataAPI
from monosync.meta import decode_meta, raw_commit_title

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = 50


def _cache_key(repo: str, sha: str, partner_repo: str) -> str:
    return f"commit-partners:{repo}:{sha}:{partner_repo}"


class PartnerCommitResolver:
    """
    Finds the commit in a partner repo that corresponds to a given commit.

    Lookup order: cache, the commit's own meta trailer (confirmed by
    title), then a bounded first-parent walk of the partner branch
    matching on trailer sha or title.
    """

    def __init__(self, git: GitDataAPI, cache: TTLCache):
        """
        Initialize resolver.

        Args:
            git: Git data API
            cache: Cache shared with the copier for known commit pairs
        """
        self.git = git
        self.cache = cache

    def remember(self, repo: str, sha: str, partner_repo: str, partner_sha: str) -> None:
        """Record a commit pair in both directions."""
        self.cache.set(_cache_key(repo, sha, partner_repo), partner_sha)
        self.cache.set(_cache_key(partner_repo, partner_sha, repo), sha)

    async def resolve(
        self,
        commit_sha: str,
        repo: str,
        partner_repo: str,
        partner_branch: str,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ) -> Optional[str]:
        """
        Find the partner of ``commit_sha``.

        Args:
            commit_sha: Commit to find a partner for
            repo: Repository of ``commit_sha``
            partner_repo: Repository to search
            partner_branch: Branch of ``partner_repo`` to walk back from
            history_window: Max commits visited on ``partner_branch``

        Returns:
            Partner commit sha, or None if not found
        """
        cached = self.cache.get(_cache_key(repo, commit_sha, partner_repo))
        if cached:
            return cached

        commit = await self.git.get_commit(repo, commit_sha)
        title = raw_commit_title(commit.message)
        trailer_sha = decode_meta(commit.message).get("sha")

        if isinstance(trailer_sha, str):
            try:
                partner = await self.git.get_commit(partner_repo, trailer_sha)
            except GitHubAPIError as e:
                if not e.is_not_found:
                    raise
                logger.debug(f"Trailer sha {trailer_sha} not found in {partner_repo}")
            else:
                if raw_commit_title(partner.message) == title:
                    self.remember(repo, commit_sha, partner_repo, partner.sha)
                    return partner.sha

        partner_sha = await self.git.get_branch_head_sha(partner_repo, partner_branch)

        for _ in range(history_window):
            if not partner_sha:
                break

            partner = await self.git.get_commit(partner_repo, partner_sha)
            if decode_meta(partner.message).get("sha") == commit_sha or raw_commit_title(partner.message) == title:
                self.remember(repo, commit_sha, partner_repo, partner.sha)
                return partner.sha

            # only follow linear history
            if len(partner.parent_shas) != 1:
                break
            partner_sha = partner.parent_shas[0]

        logger.warning(
            f"No partner for {repo}@{commit_sha[:7]} in last {history_window} commits of "
            f"{partner_repo}:{partner_branch}"
        )
        return None
