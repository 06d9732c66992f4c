"""
PR title/body syncing.

A PR opened in the parent repo controls what its public (child repo)
partner shows through a hidden comment block in its body::

    <!--
    meta:
    publicTitle: Title shown on the child PR
    publicBody: MATCH
    -->

``MATCH`` copies the parent PR's own title/body (minus the block).
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from monosync.github import PRManager
from monosync.models import Relation, SyncPair

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "Sync pull request from parent repo"
MATCH = "MATCH"

_KEY_RE = re.compile(r"^(\w+) *:(?: *(.+))?$")
_COMMENT_LINE_RE = re.compile(r"^ *#")


def _normalize(body: str) -> str:
    return (body or "").replace("\r\n", "\n").replace("\r", "\n")


@dataclass
class PRMeta:
    title: Optional[str]
    body: str


def parse_pr_metadata(body: str) -> Dict[str, str]:
    """
    Parse the first ``<!-- meta: ... -->`` block of a PR body.

    Keys are ``key: value`` lines; lines that don't start a key continue
    the previous value, and ``#`` lines are comments.
    """
    result: Dict[str, str] = {}

    for chunk in _normalize(body).split("<!--")[1:]:
        end = chunk.find("-->")
        comment = chunk if end == -1 else chunk[:end]
        if "meta:" not in comment:
            continue

        current_key: Optional[str] = None
        buffer = ""
        for line in comment.split("\n"):
            if not line or _COMMENT_LINE_RE.match(line):
                continue
            line = line.strip()
            if not line or line.startswith("meta:"):
                continue

            match = _KEY_RE.match(line)
            if match:
                if current_key:
                    result[current_key] = buffer.lstrip("\n")
                current_key, buffer = match.group(1), match.group(2) or ""
            elif current_key:
                buffer += "\n" + line

        if current_key:
            result[current_key] = buffer.lstrip("\n")
        break

    return result


def strip_pr_metadata(body: str) -> str:
    """Remove the first meta comment block from a PR body."""
    result = _normalize(body)

    for chunk in result.split("<!--")[1:]:
        end = chunk.find("-->")
        if end == -1:
            continue
        comment = "<!--" + chunk[: end + 3]
        if "meta:" in comment:
            return result.replace(comment, "", 1).lstrip("\n")

    return result


def generate_secondary_meta(primary: PRMeta, relation: Relation) -> PRMeta:
    """
    Title/body the secondary PR should have.

    Args:
        primary: Title/body of the primary PR
        relation: Primary repo's relation to the secondary repo

    Returns:
        Expected secondary title/body
    """
    if relation is Relation.CHILD:
        # the parent PR simply mirrors a child-repo PR
        return primary

    metadata = parse_pr_metadata(primary.body)
    result = PRMeta(title=FALLBACK_TITLE, body="")

    public_body = metadata.get("publicBody")
    if public_body == MATCH:
        result.body = strip_pr_metadata(primary.body)
    elif public_body:
        result.body = public_body

    public_title = metadata.get("publicTitle")
    if public_title == MATCH:
        result.title = primary.title
    elif public_title:
        result.title = public_title

    return result


async def sync_meta(prs: PRManager, pair: SyncPair) -> None:
    """Update the secondary PR's title/body where it differs from the expected one."""
    primary, secondary = pair.primary, pair.secondary
    if primary.title is None:
        primary = await prs.get_pr(primary.repo_name, primary.number)
    if secondary.title is None:
        secondary = await prs.get_pr(secondary.repo_name, secondary.number)

    expected = generate_secondary_meta(PRMeta(primary.title, primary.body or ""), pair.relation)
    changes = {}
    if (secondary.body or "") != expected.body:
        changes["body"] = expected.body
    if secondary.title != expected.title:
        changes["title"] = expected.title

    if changes:
        await prs.update_pr(secondary, **changes)
    else:
        logger.debug(f"Meta of {secondary.key} already in sync")
