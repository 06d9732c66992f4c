"""
Open/closed/merged state syncing between paired PRs.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from monosync.github import PRManager
from monosync.meta import encode_meta
from monosync.models import Commit, CopySide, PRRef, SyncPair

logger = logging.getLogger(__name__)


class PRState(Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


def pr_state(pr: PRRef) -> PRState:
    if pr.merged:
        return PRState.MERGED
    if pr.state == "closed":
        return PRState.CLOSED
    return PRState.OPEN


def plan_state_change(primary: PRRef, secondary: PRRef) -> Tuple[PRState, Optional[CopySide]]:
    """
    Decide the state both PRs should end up in.

    A merge on either side wins. Otherwise, when one PR is closed and the
    other open, the most recent change wins: the closed PR's close time is
    compared against the open PR's last update.

    Returns:
        ``(state, side_to_change)``; ``side_to_change`` is None when both
        PRs already agree
    """
    primary_state = pr_state(primary)
    secondary_state = pr_state(secondary)

    if primary_state is secondary_state:
        return primary_state, None

    if PRState.MERGED in (primary_state, secondary_state):
        side = CopySide.SECONDARY if primary_state is PRState.MERGED else CopySide.PRIMARY
        return PRState.MERGED, side

    primary_is_closed = primary_state is PRState.CLOSED
    closed_pr = primary if primary_is_closed else secondary
    open_pr = secondary if primary_is_closed else primary
    new_state = PRState.CLOSED if (closed_pr.closed_at or "") > (open_pr.updated_at or "") else PRState.OPEN
    side = CopySide.SECONDARY if primary_state is new_state else CopySide.PRIMARY
    return new_state, side


def co_author_trailers(pr: PRRef, commits: Iterable[Commit]) -> List[str]:
    """``Co-authored-by`` lines for commit authors other than the PR author."""
    trailers = []
    for commit in commits:
        author = commit.author
        if not author or commit.author_login == pr.author_login:
            continue
        trailer = f"Co-authored-by: {author.name} <{author.email}>"
        if trailer not in trailers:
            trailers.append(trailer)
    return trailers


async def merge_with_partner(prs: PRManager, pr: PRRef, merged_partner: PRRef) -> None:
    """
    Squash-merge ``pr`` after its partner was merged.

    The merge commit message points at the partner's merge commit so the
    two stay linked.
    """
    commits = await prs.list_commits(pr)
    message = encode_meta(pr.html_url or "", {"sha": merged_partner.merge_commit_sha})
    trailers = co_author_trailers(pr, commits)
    if trailers:
        message += "\n\n" + "\n".join(trailers)

    await prs.merge_pr(pr, commit_title=f"{pr.title} (#{pr.number})", commit_message=message)


async def sync_state(prs: PRManager, pair: SyncPair) -> PRState:
    """
    Bring both PRs of ``pair`` into the same state.

    Returns:
        Resulting state
    """
    primary = await prs.get_pr(pair.primary.repo_name, pair.primary.number)
    secondary = await prs.get_pr(pair.secondary.repo_name, pair.secondary.number)
    state, side = plan_state_change(primary, secondary)

    if side is None:
        return state

    pr_to_change = primary if side is CopySide.PRIMARY else secondary
    partner = secondary if side is CopySide.PRIMARY else primary

    if state is PRState.MERGED:
        if pr_state(pr_to_change) is PRState.CLOSED:
            logger.warning(f"{partner.key} was merged but {pr_to_change.key} is closed; not merging")
            return pr_state(pr_to_change)
        await merge_with_partner(prs, pr_to_change, partner)
    elif state is PRState.CLOSED:
        await prs.close_pr(pr_to_change)
    else:
        await prs.reopen_pr(pr_to_change)

    logger.info(f"Synced state of {pr_to_change.key} to {state.value}")
    return state
