"""
GitHub API integrations for monosync.
"""

from monosync.github.client import GitHubClient
from monosync.github.git import GitDataAPI
from monosync.github.pr import PRManager

__all__ = ["GitHubClient", "GitDataAPI", "PRManager"]
