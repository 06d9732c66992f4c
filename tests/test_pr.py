"""Tests for the pull request wrapper."""

import pytest

from monosync.github import GitHubClient, PRManager

from tests.helpers import FakeGitHub, make_pr, pr_payload


def make_prs(github: FakeGitHub) -> PRManager:
    return PRManager(GitHubClient("test-token", transport=github.transport()))


@pytest.mark.asyncio
async def test_get_pr():
    payload = pr_payload("acme/mono", 5, head_ref="feature", merged=True, state="closed", labels=["disable-sync"])
    payload["head"]["repo"] = {"full_name": "jane/mono"}
    github = FakeGitHub({("GET", "/repos/acme/mono/pulls/5"): payload})

    pr = await make_prs(github).get_pr("acme/mono", 5)

    assert pr.key == "acme/mono#5"
    assert pr.head_branch == "feature"
    assert pr.head_repo_name == "jane/mono"
    assert pr.base_branch == "main"
    assert pr.merged
    assert pr.merge_commit_sha == "merge-sha"
    assert pr.author_login == "jane"
    assert pr.labels == ["disable-sync"]


@pytest.mark.asyncio
async def test_find_pr_by_branch():
    github = FakeGitHub({("GET", "/repos/acme/widget/pulls"): [pr_payload("acme/widget", 7, head_ref="acme/mono/5")]})

    pr = await make_prs(github).find_pr_by_branch("acme/widget", "acme/mono/5", include_closed=True)

    assert pr.number == 7
    params = github.requests[0].url.params
    assert params["head"] == "acme:acme/mono/5"
    assert params["state"] == "all"


@pytest.mark.asyncio
async def test_find_pr_by_branch_none():
    github = FakeGitHub({("GET", "/repos/acme/widget/pulls"): []})

    assert await make_prs(github).find_pr_by_branch("acme/widget", "feature") is None
    assert github.requests[0].url.params["state"] == "open"


@pytest.mark.asyncio
async def test_list_commits():
    github = FakeGitHub(
        {
            ("GET", "/repos/acme/mono/pulls/5/commits"): [
                {"sha": "c1", "commit": {"message": "one"}, "parents": [{"sha": "base"}]},
                {"sha": "c2", "commit": {"message": "Merge"}, "parents": [{"sha": "c1"}, {"sha": "m1"}]},
            ]
        }
    )

    commits = await make_prs(github).list_commits(make_pr("acme/mono", 5))

    assert [commit.sha for commit in commits] == ["c1", "c2"]
    assert commits[1].is_merge


@pytest.mark.asyncio
async def test_update_and_merge():
    github = FakeGitHub(
        {
            ("PATCH", "/repos/acme/widget/pulls/7"): {},
            ("PUT", "/repos/acme/widget/pulls/7/merge"): {"merged": True},
        }
    )
    prs = make_prs(github)
    pr = make_pr("acme/widget", 7)

    await prs.update_pr(pr, title="New title")
    await prs.close_pr(pr)
    await prs.merge_pr(pr, commit_title="Title (#7)", commit_message="message")

    assert github.bodies("PATCH", "/repos/acme/widget/pulls/7") == [{"title": "New title"}, {"state": "closed"}]
    assert github.bodies("PUT", "/repos/acme/widget/pulls/7/merge") == [
        {"commit_title": "Title (#7)", "commit_message": "message", "merge_method": "squash"}
    ]


@pytest.mark.asyncio
async def test_statuses():
    github = FakeGitHub(
        {
            ("GET", "/repos/acme/widget/commits/h1/status"): {
                "state": "failure",
                "statuses": [{"context": "ci/test", "state": "failure", "description": None}],
            },
            ("POST", "/repos/acme/widget/statuses/h1"): {},
        }
    )
    prs = make_prs(github)

    assert await prs.get_statuses("acme/widget", "h1") == [
        {"context": "ci/test", "state": "failure", "description": ""}
    ]
    assert await prs.get_statuses("acme/widget", "unknown") == []

    await prs.create_status("acme/widget", "h1", "monosync/primary-pr", "success")
    assert github.bodies("POST", "/repos/acme/widget/statuses/h1") == [
        {"context": "monosync/primary-pr", "state": "success"}
    ]


@pytest.mark.asyncio
async def test_list_prs_for_commit_keeps_open_prs_at_head():
    at_head = pr_payload("acme/widget", 1)
    closed = pr_payload("acme/widget", 2, state="closed")
    elsewhere = pr_payload("acme/widget", 3)
    elsewhere["head"]["sha"] = "other"
    github = FakeGitHub({("GET", "/repos/acme/widget/commits/head-sha/pulls"): [at_head, closed, elsewhere]})

    prs = await make_prs(github).list_prs_for_commit("acme/widget", "head-sha")

    assert [pr.number for pr in prs] == [1]
