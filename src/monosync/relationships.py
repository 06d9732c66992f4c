"""
Repository relationship configuration.

Relationships are comma-separated ``<parent repo> > <sub/path>:<child repo>``
entries, e.g.::

    acme/monorepo > packages/widget:acme/widget, acme/monorepo > libs/core:acme/core

meaning ``acme/widget`` lives in the ``packages/widget`` directory of
``acme/monorepo``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from monosync.errors import RelationshipConfigError
from monosync.models import Relation

logger = logging.getLogger(__name__)

_ENTRY_SPLIT_RE = re.compile(r", ?")
_PARENT_SPLIT_RE = re.compile(r" ?> ?")


@dataclass(frozen=True)
class ChildRepo:
    """A child repo and its directory inside the parent."""
    name: str
    path: str


@dataclass
class _RepoConfig:
    parent: Optional[str] = None
    children: List[ChildRepo] = field(default_factory=list)


class Relationships:
    """Lookup table of parent/child repository relationships."""

    def __init__(self, repos: Optional[Dict[str, _RepoConfig]] = None):
        self._repos: Dict[str, _RepoConfig] = repos or {}

    @classmethod
    def parse(cls, value: Optional[str]) -> "Relationships":
        """
        Parse a relationship string.

        Args:
            value: Relationship string (see module docstring)

        Returns:
            Relationships instance (empty if ``value`` is empty)

        Raises:
            RelationshipConfigError: If an entry is malformed
        """
        repos: Dict[str, _RepoConfig] = {}

        for entry in _ENTRY_SPLIT_RE.split((value or "").strip()):
            if not entry:
                continue

            parts = _PARENT_SPLIT_RE.split(entry.strip())
            if len(parts) != 2 or ":" not in parts[1]:
                raise RelationshipConfigError(
                    f"Invalid relationship '{entry}', expected '<parent> > <path>:<child>'"
                )

            parent_name, child_config = parts
            child_path, _, child_name = child_config.partition(":")
            child_path = child_path.rstrip("/")
            if not (parent_name and child_path and child_name):
                raise RelationshipConfigError(f"Invalid relationship '{entry}'")

            repos.setdefault(child_name, _RepoConfig()).parent = parent_name
            repos.setdefault(parent_name, _RepoConfig()).children.append(
                ChildRepo(name=child_name, path=child_path)
            )

        if not repos:
            logger.warning("No repo relationships configured!")

        return cls(repos)

    @property
    def repo_names(self) -> List[str]:
        return list(self._repos)

    def has_relationship(self, repo_name: str) -> bool:
        return repo_name in self._repos

    def get_parent_name(self, repo_name: str) -> Optional[str]:
        config = self._repos.get(repo_name)
        return config.parent if config else None

    def get_children(self, repo_name: str) -> List[ChildRepo]:
        config = self._repos.get(repo_name)
        return list(config.children) if config else []

    def get_child(self, parent_name: str, child_name: str) -> Optional[ChildRepo]:
        for child in self.get_children(parent_name):
            if child.name == child_name:
                return child
        return None

    def get_related_repo_names(self, repo_name: str) -> List[str]:
        """Parent first, then children."""
        names = [self.get_parent_name(repo_name)]
        names.extend(child.name for child in self.get_children(repo_name))
        return [name for name in names if name]

    def get_relation(self, first: str, second: str) -> Optional[Relation]:
        """
        Relation of ``first`` to ``second``.

        e.g. ``Relation.PARENT`` if ``first`` is ``second``'s parent.
        """
        if self.get_parent_name(first) == second:
            return Relation.CHILD
        if self.get_parent_name(second) == first:
            return Relation.PARENT
        return None

    def get_sub_path(self, first: str, second: str) -> Optional[str]:
        """Directory of the child repo inside the parent, for a related pair."""
        relation = self.get_relation(first, second)
        if relation is Relation.PARENT:
            child = self.get_child(first, second)
        elif relation is Relation.CHILD:
            child = self.get_child(second, first)
        else:
            return None
        return child.path if child else None
