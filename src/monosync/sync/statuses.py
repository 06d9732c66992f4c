"""
Mirroring CI status between paired PRs.

Each PR's head commit gets one status summarizing the partner PR's
statuses: ``monosync/secondary-pr`` on the primary PR and
``monosync/primary-pr`` on the secondary PR.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional

from monosync.github import PRManager
from monosync.models import PRRef, SyncPair

logger = logging.getLogger(__name__)

PRIMARY_CONTEXT = "monosync/primary-pr"
SECONDARY_CONTEXT = "monosync/secondary-pr"

_SYNC_CONTEXT_RE = re.compile(r"^monosync/(primary|secondary)-pr")


def is_sync_status_context(context: str) -> bool:
    return bool(_SYNC_CONTEXT_RE.match(context or ""))


def filter_sync_statuses(statuses: List[Dict[str, str]]) -> List[Dict[str, str]]:
    return [status for status in statuses if not is_sync_status_context(status["context"])]


def grouped_state(statuses: List[Dict[str, str]]) -> str:
    """Worst state among ``statuses``: error > failure > pending > success."""
    states = {status["state"].lower() for status in filter_sync_statuses(statuses)}

    if "error" in states:
        return "error"
    if "failure" in states:
        return "failure"
    if "pending" in states or "expected" in states:
        return "pending"
    return "success"


def current_sync_state(statuses: List[Dict[str, str]], context: str) -> Optional[str]:
    for status in statuses:
        if status["context"] == context:
            return status["state"].lower()
    return None


async def _mirror(
    prs: PRManager,
    from_statuses: List[Dict[str, str]],
    to_pr: PRRef,
    to_statuses: List[Dict[str, str]],
    context: str,
) -> None:
    if not filter_sync_statuses(from_statuses):
        return

    state = grouped_state(from_statuses)
    if current_sync_state(to_statuses, context) == state:
        logger.debug(f"{context} on {to_pr.key} already {state}")
        return

    await prs.create_status(to_pr.repo_name, to_pr.head_sha, context, state)


async def sync_statuses(prs: PRManager, pair: SyncPair) -> None:
    """Post each PR's grouped CI state onto its partner's head commit."""
    primary, secondary = await asyncio.gather(
        prs.get_pr(pair.primary.repo_name, pair.primary.number),
        prs.get_pr(pair.secondary.repo_name, pair.secondary.number),
    )
    primary_statuses, secondary_statuses = await asyncio.gather(
        prs.get_statuses(primary.repo_name, primary.head_sha),
        prs.get_statuses(secondary.repo_name, secondary.head_sha),
    )

    await asyncio.gather(
        _mirror(prs, secondary_statuses, primary, primary_statuses, SECONDARY_CONTEXT),
        _mirror(prs, primary_statuses, secondary, secondary_statuses, PRIMARY_CONTEXT),
    )
