"""
Sync operations between paired pull requests.
"""

from monosync.sync.commits import CommitFetcher
from monosync.sync.copier import CommitCopier
from monosync.sync.partner import PartnerCommitResolver
from monosync.sync.service import SyncService

__all__ = ["CommitCopier", "CommitFetcher", "PartnerCommitResolver", "SyncService"]
