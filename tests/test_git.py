"""Tests for the git data API wrapper."""

import base64

import httpx
import pytest

from monosync.errors import GitHubAPIError, SyncError
from monosync.github import GitDataAPI, GitHubClient
from monosync.models import Author, FileStatus, TreeEntry

from tests.helpers import FakeGitHub

REPO = "/repos/acme/widget"


def make_git(github: FakeGitHub) -> GitDataAPI:
    return GitDataAPI(GitHubClient("test-token", transport=github.transport()))


def encoded(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


@pytest.mark.asyncio
async def test_get_commit():
    github = FakeGitHub(
        {
            ("GET", f"{REPO}/commits/c1"): {
                "sha": "c1",
                "commit": {
                    "message": "Add feature\n\nmeta:sha:p1",
                    "author": {"name": "Jane", "email": "jane@example.com", "date": "2024-01-01T00:00:00Z"},
                    "committer": {"name": "Jane", "email": "jane@example.com", "date": "2024-01-02T00:00:00Z"},
                    "tree": {"sha": "t1"},
                },
                "author": {"login": "jane"},
                "parents": [{"sha": "c0"}],
                "files": [
                    {"filename": "src/b.py", "status": "renamed", "previous_filename": "src/a.py"},
                    {"filename": "old.txt", "status": "removed"},
                ],
            }
        }
    )

    commit = await make_git(github).get_commit("acme/widget", "c1")

    assert commit.title == "Add feature"
    assert commit.parent_shas == ["c0"]
    assert not commit.is_merge
    assert commit.tree_sha == "t1"
    assert commit.author_login == "jane"
    assert commit.committer.date == "2024-01-02T00:00:00Z"
    assert commit.files[0].original_path == "src/a.py"
    assert commit.files[1].status is FileStatus.REMOVED


@pytest.mark.asyncio
async def test_compare():
    github = FakeGitHub(
        {
            ("GET", f"{REPO}/compare/base...head"): {
                "commits": [
                    {"sha": "c1", "commit": {"message": "one"}, "parents": [{"sha": "base"}]},
                    {"sha": "c2", "commit": {"message": "two"}, "parents": [{"sha": "c1"}]},
                ]
            }
        }
    )

    commits = await make_git(github).compare("acme/widget", "base", "head")

    assert [commit.sha for commit in commits] == ["c1", "c2"]
    assert commits[0].files is None


@pytest.mark.asyncio
async def test_get_tree_is_recursive():
    github = FakeGitHub(
        {
            ("GET", f"{REPO}/git/trees/t1"): {
                "tree": [
                    {"path": "src", "mode": "040000", "type": "tree", "sha": "st"},
                    {"path": "src/run.sh", "mode": "100755", "type": "blob", "sha": "b1"},
                ],
                "truncated": False,
            }
        }
    )

    tree = await make_git(github).get_tree("acme/widget", "t1")

    assert github.requests[0].url.params["recursive"] == "1"
    assert tree[1] == TreeEntry(path="src/run.sh", mode="100755", type="blob", sha="b1")


@pytest.mark.asyncio
async def test_truncated_tree_aborts():
    github = FakeGitHub(
        {
            ("GET", f"{REPO}/git/trees/t1"): {
                "tree": [{"path": "a.py", "mode": "100644", "type": "blob", "sha": "b1"}],
                "truncated": True,
            }
        }
    )

    with pytest.raises(SyncError):
        await make_git(github).get_tree("acme/widget", "t1")


@pytest.mark.asyncio
async def test_get_file_content():
    github = FakeGitHub(
        {
            ("GET", f"{REPO}/contents/src/a.py"): {
                "encoding": "base64",
                "content": encoded(b"print('hi')\n"),
                "sha": "b1",
            }
        }
    )

    content = await make_git(github).get_file_content("acme/widget", "src/a.py", "c1")

    assert content == b"print('hi')\n"
    assert github.requests[0].url.params["ref"] == "c1"


@pytest.mark.asyncio
async def test_get_file_content_of_large_file_uses_blob():
    github = FakeGitHub(
        {
            ("GET", f"{REPO}/contents/big.bin"): {"encoding": "none", "content": "", "sha": "b1"},
            ("GET", f"{REPO}/git/blobs/b1"): {"encoding": "base64", "content": encoded(b"\x00\x01")},
        }
    )

    assert await make_git(github).get_file_content("acme/widget", "big.bin", "c1") == b"\x00\x01"


@pytest.mark.asyncio
async def test_create_tree_uploads_binary_content_as_blob():
    github = FakeGitHub(
        {
            ("POST", f"{REPO}/git/blobs"): {"sha": "blob-sha"},
            ("POST", f"{REPO}/git/trees"): {"sha": "tree-sha"},
        }
    )

    tree_sha = await make_git(github).create_tree(
        "acme/widget",
        [
            TreeEntry(path="README.md", sha="readme-sha"),
            TreeEntry(path="src/a.py", content=b"text"),
            TreeEntry(path="logo.png", content=b"\x89PNG\xff"),
        ],
    )

    assert tree_sha == "tree-sha"
    assert github.bodies("POST", f"{REPO}/git/blobs") == [
        {"content": encoded(b"\x89PNG\xff"), "encoding": "base64"}
    ]
    (body,) = github.bodies("POST", f"{REPO}/git/trees")
    assert "base_tree" not in body
    assert body["tree"] == [
        {"path": "README.md", "mode": "100644", "type": "blob", "sha": "readme-sha"},
        {"path": "src/a.py", "mode": "100644", "type": "blob", "content": "text"},
        {"path": "logo.png", "mode": "100644", "type": "blob", "sha": "blob-sha"},
    ]


@pytest.mark.asyncio
async def test_create_commit():
    github = FakeGitHub({("POST", f"{REPO}/git/commits"): {"sha": "new"}})
    author = Author(name="Jane", email="jane@example.com", date="2024-01-01T00:00:00Z")

    sha = await make_git(github).create_commit(
        "acme/widget", message="msg", tree_sha="t1", parent_shas=["p1", "p2"], author=author
    )

    assert sha == "new"
    assert github.bodies("POST", f"{REPO}/git/commits") == [
        {
            "message": "msg",
            "tree": "t1",
            "parents": ["p1", "p2"],
            "author": {"name": "Jane", "email": "jane@example.com", "date": "2024-01-01T00:00:00Z"},
        }
    ]


@pytest.mark.asyncio
async def test_branch_head_sha():
    github = FakeGitHub({("GET", f"{REPO}/git/ref/heads/main"): {"object": {"sha": "h1"}}})
    git = make_git(github)

    assert await git.get_branch_head_sha("acme/widget", "main") == "h1"
    assert await git.get_branch_head_sha("acme/widget", "missing") is None


@pytest.mark.asyncio
async def test_branch_head_sha_propagates_other_errors():
    def forbidden(request):
        return httpx.Response(403, json={"message": "Forbidden"})

    git = make_git(FakeGitHub({("GET", f"{REPO}/git/ref/heads/main"): forbidden}))

    with pytest.raises(GitHubAPIError):
        await git.get_branch_head_sha("acme/widget", "main")


@pytest.mark.asyncio
async def test_update_ref():
    github = FakeGitHub({("PATCH", f"{REPO}/git/refs/heads/acme/mono/5"): {}})

    await make_git(github).update_ref("acme/widget", "acme/mono/5", "new", force=True)

    assert github.bodies("PATCH", f"{REPO}/git/refs/heads/acme/mono/5") == [{"sha": "new", "force": True}]
