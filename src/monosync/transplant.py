"""
Tree transplant: rewrite one commit's changes from the source repo's
path namespace into the target repo's tree.

At most one of ``source_sub_path`` / ``target_sub_path`` is set per call:
a parent (monorepo) source strips its subpath, a parent target prepends it.
"""

from typing import Dict, Iterable, List, Optional

from monosync.models import Commit, FileStatus, TreeEntry


def blob_entries(tree: Iterable[TreeEntry]) -> List[TreeEntry]:
    """Copy of the non-directory entries of a flattened tree, without content."""
    return [
        TreeEntry(path=entry.path, mode=entry.mode, type=entry.type, sha=entry.sha)
        for entry in tree
        if entry.type != "tree"
    ]


def touches_sub_path(commit: Commit, sub_path: str) -> bool:
    """Whether any file of ``commit`` (before or after a rename) lies under ``sub_path``."""
    prefix = f"{sub_path}/"
    return any(
        change.path.startswith(prefix) or change.original_path.startswith(prefix)
        for change in commit.files or []
    )


def transplant_tree(
    commit: Commit,
    parent_tree: Iterable[TreeEntry],
    source_sub_path: Optional[str] = None,
    target_sub_path: Optional[str] = None,
) -> Optional[List[TreeEntry]]:
    """
    Compute the target tree produced by applying ``commit`` on ``parent_tree``.

    Args:
        commit: Source commit with ``files`` (and their content) populated;
            ``tree`` is used for file modes
        parent_tree: Current flattened tree of the target branch
        source_sub_path: Directory of the synced content in the source repo
        target_sub_path: Directory of the synced content in the target repo

    Returns:
        Full list of entries for the new tree, or None if the commit
        doesn't touch ``source_sub_path`` and must be skipped
    """
    if source_sub_path and not touches_sub_path(commit, source_sub_path):
        return None

    commit_tree_by_path = {entry.path: entry for entry in commit.tree or []}
    new_tree_by_path: Dict[str, TreeEntry] = {
        entry.path: entry for entry in blob_entries(parent_tree)
    }

    for change in commit.files or []:
        orig_path = change.original_path
        new_path = change.path
        is_removal = change.status is FileStatus.REMOVED

        if source_sub_path:
            prefix = f"{source_sub_path}/"
            orig_inside = orig_path.startswith(prefix)
            if not orig_inside and not new_path.startswith(prefix):
                # belongs to a sibling directory
                continue
            # renamed into the synced directory: nothing to remove
            target_orig_path = orig_path[len(prefix):] if orig_inside else None
            if new_path.startswith(prefix):
                target_new_path = new_path[len(prefix):]
            else:
                # renamed out of the synced directory
                target_new_path = None
                is_removal = True
        elif target_sub_path:
            target_orig_path = f"{target_sub_path}/{orig_path}"
            target_new_path = f"{target_sub_path}/{new_path}"
        else:
            target_orig_path = orig_path
            target_new_path = new_path

        if target_orig_path:
            new_tree_by_path.pop(target_orig_path, None)
        if is_removal:
            continue

        source_entry = commit_tree_by_path.get(new_path)
        if source_entry and source_entry.type == "commit":
            # submodule pointer
            new_tree_by_path[target_new_path] = TreeEntry(
                path=target_new_path, mode=source_entry.mode, type="commit", sha=source_entry.sha
            )
            continue

        new_tree_by_path[target_new_path] = TreeEntry(
            path=target_new_path,
            mode=source_entry.mode if source_entry else "100644",
            type=source_entry.type if source_entry else "blob",
            content=change.content if change.content is not None else b"",
        )

    return list(new_tree_by_path.values())
