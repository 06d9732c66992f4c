"""Tests for commit list reconciliation."""

from monosync.meta import encode_meta
from monosync.models import CopySide
from monosync.reconcile import commits_match, reconcile

from tests.helpers import pr_commit


def copy_of(sha, new_sha, **kwargs):
    """Commit created by copying ``sha`` to the partner repo."""
    return pr_commit(new_sha, encode_meta("Commit", {"sha": sha}), **kwargs)


def test_commits_match_either_direction():
    assert commits_match(pr_commit("a"), copy_of("a", "a2"))
    assert commits_match(copy_of("a2", "a"), pr_commit("a2"))
    assert not commits_match(pr_commit("a"), pr_commit("b"))


def test_empty_lists_are_in_sync():
    result = reconcile([], [])

    assert not result.has_mismatch
    assert result.copy_source is None
    assert result.last_common_primary_index is None


def test_in_sync():
    primary = [pr_commit("a"), pr_commit("b")]
    secondary = [copy_of("a", "a2"), copy_of("b", "b2")]

    result = reconcile(primary, secondary)

    assert not result.has_mismatch
    assert result.last_common_primary_index == 1
    assert result.last_common_secondary_index == 1


def test_primary_ahead():
    result = reconcile([pr_commit("a"), pr_commit("b")], [copy_of("a", "a2")])

    assert result.has_mismatch
    assert not result.has_conflict
    assert result.copy_source is CopySide.PRIMARY
    assert result.last_common_index(CopySide.PRIMARY) == 0
    assert result.last_common_index(CopySide.SECONDARY) == 0


def test_secondary_ahead():
    result = reconcile([pr_commit("a")], [copy_of("a", "a2"), pr_commit("c")])

    assert result.has_mismatch
    assert not result.has_conflict
    assert result.copy_source is CopySide.SECONDARY
    assert result.last_common_secondary_index == 0


def test_secondary_ahead_from_scratch():
    result = reconcile([], [pr_commit("c")])

    assert result.copy_source is CopySide.SECONDARY
    assert result.last_common_secondary_index is None


def test_conflict_primary_wins():
    primary = [pr_commit("a"), pr_commit("b")]
    secondary = [copy_of("a", "a2"), pr_commit("x"), pr_commit("y")]

    result = reconcile(primary, secondary)

    assert result.has_mismatch
    assert result.has_conflict
    assert result.copy_source is CopySide.PRIMARY
    assert result.last_common_primary_index == 0
    assert result.last_common_secondary_index == 0


def test_conflict_without_common_commit():
    result = reconcile([pr_commit("a")], [pr_commit("x")])

    assert result.has_conflict
    assert result.last_common_primary_index is None
    assert result.last_common_secondary_index is None


def test_skipped_commits_are_invisible():
    primary = [pr_commit("a"), pr_commit("s", should_sync=False), pr_commit("b")]
    secondary = [copy_of("a", "a2"), copy_of("b", "b2")]

    result = reconcile(primary, secondary)

    assert not result.has_mismatch
    assert result.last_common_primary_index == 2
    assert result.last_common_secondary_index == 1


def test_trailing_skipped_commit_is_not_missing():
    primary = [pr_commit("a"), pr_commit("s", should_sync=False)]

    result = reconcile(primary, [copy_of("a", "a2")])

    assert not result.has_mismatch


def test_skipped_then_missing():
    primary = [pr_commit("s", should_sync=False), pr_commit("a")]

    result = reconcile(primary, [])

    assert result.has_mismatch
    assert result.copy_source is CopySide.PRIMARY
    assert result.last_common_primary_index is None
