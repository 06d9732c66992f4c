"""
monosync - keeps pull requests of a monorepo and its standalone child repos in sync.

This package provides:
- Commit copying between a parent repo subdirectory and a child repo
- Title/body, open/closed/merged state and CI status mirroring
- GitHub API integrations (pulls, git data, statuses)
- Webhook handling and an HTTP server for GitHub deliveries
"""

__version__ = "1.0.0"

from monosync.models import CopySource, CopyTarget, PRRef, SyncPair
from monosync.sync.service import SyncService

__all__ = ["CopySource", "CopyTarget", "PRRef", "SyncPair", "SyncService"]
