"""Tests for CI status mirroring."""

from unittest.mock import AsyncMock

import pytest

from monosync.models import Relation, SyncPair
from monosync.sync.statuses import (
    PRIMARY_CONTEXT,
    SECONDARY_CONTEXT,
    filter_sync_statuses,
    grouped_state,
    is_sync_status_context,
    sync_statuses,
)

from tests.helpers import make_pr


def status(context, state):
    return {"context": context, "state": state, "description": ""}


def test_is_sync_status_context():
    assert is_sync_status_context(PRIMARY_CONTEXT)
    assert is_sync_status_context(SECONDARY_CONTEXT)
    assert not is_sync_status_context("ci/test")
    assert not is_sync_status_context("")


def test_filter_sync_statuses():
    statuses = [status("ci/test", "success"), status(PRIMARY_CONTEXT, "failure")]

    assert filter_sync_statuses(statuses) == [status("ci/test", "success")]


@pytest.mark.parametrize(
    "states,expected",
    [
        (["success", "success"], "success"),
        (["success", "pending"], "pending"),
        (["expected", "success"], "pending"),
        (["pending", "failure"], "failure"),
        (["failure", "error", "pending"], "error"),
        ([], "success"),
    ],
)
def test_grouped_state(states, expected):
    assert grouped_state([status(f"ci/{i}", state) for i, state in enumerate(states)]) == expected


def test_grouped_state_ignores_sync_statuses():
    assert grouped_state([status("ci/test", "success"), status(SECONDARY_CONTEXT, "failure")]) == "success"


def fake_prs(primary, secondary, statuses):
    prs = AsyncMock()
    by_key = {(pr.repo_name, pr.number): pr for pr in (primary, secondary)}
    prs.get_pr.side_effect = lambda repo, number: by_key[(repo, number)]
    prs.get_statuses.side_effect = lambda repo, sha: statuses[sha]
    return prs


@pytest.mark.asyncio
async def test_sync_statuses_posts_changed_states_only():
    primary = make_pr("acme/mono", 1, head_sha="p1")
    secondary = make_pr("acme/widget", 2, head_branch="acme/mono/1", head_sha="s1")
    prs = fake_prs(
        primary,
        secondary,
        {
            "p1": [status("ci/build", "failure")],
            "s1": [status("ci/test", "success"), status(PRIMARY_CONTEXT, "failure")],
        },
    )

    await sync_statuses(prs, SyncPair(primary, secondary, Relation.PARENT, "packages/widget"))

    prs.create_status.assert_awaited_once_with("acme/mono", "p1", SECONDARY_CONTEXT, "success")


@pytest.mark.asyncio
async def test_sync_statuses_without_ci():
    primary = make_pr("acme/mono", 1, head_sha="p1")
    secondary = make_pr("acme/widget", 2, head_branch="acme/mono/1", head_sha="s1")
    prs = fake_prs(primary, secondary, {"p1": [], "s1": [status(PRIMARY_CONTEXT, "success")]})

    await sync_statuses(prs, SyncPair(primary, secondary, Relation.PARENT, "packages/widget"))

    prs.create_status.assert_not_awaited()
