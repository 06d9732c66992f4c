"""
Commit list reconciliation.

Walks the primary and secondary commit lists in lock-step to find their
common prefix and decide which side, if any, has to be copied.
"""

import logging
from typing import Optional, Sequence

from monosync.meta import decode_meta
from monosync.models import CopySide, PRCommit, ReconciliationResult

logger = logging.getLogger(__name__)


def commits_match(primary: PRCommit, secondary: PRCommit) -> bool:
    """Whether either commit's trailer points at the other one."""
    primary_sha = decode_meta(primary.message).get("sha")
    secondary_sha = decode_meta(secondary.message).get("sha")
    return primary_sha == secondary.sha or secondary_sha == primary.sha


def reconcile(
    primary_commits: Sequence[PRCommit],
    secondary_commits: Sequence[PRCommit],
) -> ReconciliationResult:
    """
    Compare two commit lists.

    Commits with ``should_sync`` unset are invisible to the other side.
    On a conflict (both sides have a commit and neither references the
    other) the primary side is the source of truth. The walk stops at the
    first mismatch; the last matched indices are kept so copying can
    resume after them.

    Args:
        primary_commits: Commits of the primary PR, oldest first
        secondary_commits: Commits of the secondary PR, oldest first

    Returns:
        Reconciliation result
    """
    result = ReconciliationResult()
    p_index = 0
    s_index = 0

    while p_index < len(primary_commits) or s_index < len(secondary_commits):
        primary: Optional[PRCommit] = (
            primary_commits[p_index] if p_index < len(primary_commits) else None
        )
        secondary: Optional[PRCommit] = (
            secondary_commits[s_index] if s_index < len(secondary_commits) else None
        )

        if primary is not None and not primary.should_sync:
            p_index += 1
            continue
        if secondary is not None and not secondary.should_sync:
            s_index += 1
            continue

        if primary is not None and secondary is not None:
            if not commits_match(primary, secondary):
                result.has_mismatch = True
                result.has_conflict = True
                result.copy_source = CopySide.PRIMARY
                break
            result.last_common_primary_index = p_index
            result.last_common_secondary_index = s_index
        else:
            result.has_mismatch = True
            result.copy_source = CopySide.PRIMARY if primary is not None else CopySide.SECONDARY
            break

        p_index += 1
        s_index += 1

    logger.debug(
        f"Reconciled {len(primary_commits)} primary / {len(secondary_commits)} secondary commits: {result}"
    )
    return result
