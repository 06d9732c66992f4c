"""
Data models for monosync.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FileStatus(Enum):
    """Status of a file in a commit diff, as reported by GitHub."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    COPIED = "copied"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class Relation(Enum):
    """Relation of one repository to its partner."""
    PARENT = "parent"   # monorepo that holds the partner under a subpath
    CHILD = "child"     # standalone repo mirrored into the partner


class CopySide(Enum):
    """Which PR of a sync pair commits are copied from."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass
class Author:
    """Git identity with timestamp."""
    name: str
    email: str
    date: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[dict]) -> Optional["Author"]:
        if not data:
            return None
        return cls(name=data.get("name", ""), email=data.get("email", ""), date=data.get("date"))

    def to_api(self) -> dict:
        result = {"name": self.name, "email": self.email}
        if self.date:
            result["date"] = self.date
        return result


@dataclass
class FileChange:
    """A single file entry of a commit diff."""
    path: str
    status: FileStatus
    previous_path: Optional[str] = None
    content: Optional[bytes] = None

    @property
    def original_path(self) -> str:
        """Path of the file before this commit (differs only for renames)."""
        return self.previous_path or self.path

    @classmethod
    def from_api(cls, data: dict) -> "FileChange":
        return cls(
            path=data["filename"],
            status=FileStatus(data.get("status", "modified")),
            previous_path=data.get("previous_filename"),
        )


@dataclass
class TreeEntry:
    """
    Entry of a flattened (recursive) git tree.

    Carries either a ``sha`` (reuse an existing object) or ``content``
    (bytes for a new blob).
    """
    path: str
    mode: str = "100644"
    type: str = "blob"
    sha: Optional[str] = None
    content: Optional[bytes] = None

    @classmethod
    def from_api(cls, data: dict) -> "TreeEntry":
        return cls(
            path=data["path"],
            mode=data.get("mode", "100644"),
            type=data.get("type", "blob"),
            sha=data.get("sha"),
        )


@dataclass
class Commit:
    """
    A commit as fetched from GitHub.

    ``tree`` and ``files`` are only populated when explicitly fetched,
    since both need extra API calls.
    """
    sha: str
    message: str
    parent_shas: List[str] = field(default_factory=list)
    author: Optional[Author] = None
    committer: Optional[Author] = None
    tree_sha: Optional[str] = None
    tree: Optional[List[TreeEntry]] = None
    files: Optional[List[FileChange]] = None
    author_login: Optional[str] = None

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]

    @property
    def is_merge(self) -> bool:
        return len(self.parent_shas) > 1

    @classmethod
    def from_api(cls, data: dict) -> "Commit":
        """Build a commit from a REST commit payload (commits, compare or pulls API)."""
        commit_data = data.get("commit", {})
        files = data.get("files")
        return cls(
            sha=data["sha"],
            message=commit_data.get("message", ""),
            parent_shas=[parent["sha"] for parent in data.get("parents", [])],
            author=Author.from_api(commit_data.get("author")),
            committer=Author.from_api(commit_data.get("committer")),
            tree_sha=(commit_data.get("tree") or {}).get("sha"),
            files=[FileChange.from_api(f) for f in files] if files is not None else None,
            author_login=(data.get("author") or {}).get("login"),
        )


@dataclass
class MergedCommit:
    """Second parent of a merge commit in a PR."""
    sha: str
    should_sync: bool = True


@dataclass
class PRCommit:
    """A commit of a PR (or push range), annotated for syncing."""
    commit: Commit
    should_sync: bool = True
    use_generic_message: bool = False
    merged_commit: Optional[MergedCommit] = None

    @property
    def sha(self) -> str:
        return self.commit.sha

    @property
    def message(self) -> str:
        return self.commit.message


@dataclass
class PRRef:
    """
    One side of a sync pair.

    Only ``repo_name`` and ``number`` identify the PR; the rest is filled
    in when built from an API or webhook payload.
    """
    repo_name: str
    number: int
    head_branch: Optional[str] = None
    base_branch: Optional[str] = None
    head_sha: Optional[str] = None
    base_sha: Optional[str] = None
    head_repo_name: Optional[str] = None
    state: Optional[str] = None
    merged: bool = False
    title: Optional[str] = None
    body: Optional[str] = None
    author_login: Optional[str] = None
    html_url: Optional[str] = None
    merge_commit_sha: Optional[str] = None
    closed_at: Optional[str] = None
    updated_at: Optional[str] = None
    labels: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.repo_name}#{self.number}"

    @classmethod
    def from_api(cls, data: dict) -> "PRRef":
        """Build from a pulls API (or ``pull_request`` webhook) payload."""
        head = data.get("head") or {}
        base = data.get("base") or {}
        return cls(
            repo_name=(base.get("repo") or {}).get("full_name", ""),
            number=data["number"],
            head_branch=head.get("ref"),
            base_branch=base.get("ref"),
            head_sha=head.get("sha"),
            base_sha=base.get("sha"),
            # head repo is null when the fork was deleted
            head_repo_name=(head.get("repo") or {}).get("full_name"),
            state=data.get("state"),
            merged=bool(data.get("merged") or data.get("merged_at")),
            title=data.get("title"),
            body=data.get("body") or "",
            author_login=(data.get("user") or {}).get("login"),
            html_url=data.get("html_url"),
            merge_commit_sha=data.get("merge_commit_sha"),
            closed_at=data.get("closed_at"),
            updated_at=data.get("updated_at"),
            labels=[label.get("name", "") for label in data.get("labels") or []],
        )


@dataclass
class SyncPair:
    """
    Two linked PRs.

    ``relation`` is the primary repo's relation to the secondary repo;
    ``sub_path`` is the directory of the child repo inside the parent.
    """
    primary: PRRef
    secondary: PRRef
    relation: Relation
    sub_path: str

    @property
    def queue_key(self) -> str:
        return f"{self.primary.key}:{self.secondary.key}"

    def pr_for(self, side: CopySide) -> PRRef:
        return self.primary if side is CopySide.PRIMARY else self.secondary

    def partner_of(self, side: CopySide) -> PRRef:
        return self.secondary if side is CopySide.PRIMARY else self.primary

    def sub_path_for(self, side: CopySide) -> Optional[str]:
        """Subpath owned by ``side``; only the parent side owns one."""
        side_is_parent = (side is CopySide.PRIMARY) == (self.relation is Relation.PARENT)
        return self.sub_path if side_is_parent else None


@dataclass
class CopySource:
    """Where commits are copied from."""
    repo_name: str
    commits: List[PRCommit] = field(default_factory=list)
    last_common_index: int = -1
    branch: Optional[str] = None
    sub_path: Optional[str] = None
    before_sha: Optional[str] = None
    after_sha: Optional[str] = None


@dataclass
class CopyTarget:
    """Where commits are copied to."""
    repo_name: str
    branch: str
    sha: str
    tree_sha: Optional[str] = None
    sub_path: Optional[str] = None
    base_branch: Optional[str] = None
    generic_message: bool = False


@dataclass
class ReconciliationResult:
    """Outcome of comparing a primary and a secondary commit list."""
    has_mismatch: bool = False
    has_conflict: bool = False
    copy_source: Optional[CopySide] = None
    last_common_primary_index: Optional[int] = None
    last_common_secondary_index: Optional[int] = None

    def last_common_index(self, side: CopySide) -> Optional[int]:
        if side is CopySide.PRIMARY:
            return self.last_common_primary_index
        return self.last_common_secondary_index
