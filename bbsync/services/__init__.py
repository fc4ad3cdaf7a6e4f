"""
Service layer for bbsync.

- CloneLinkResolver: picks the clone URI of a repository
- LocalStateProbe: classifies a repository's local path
- LatestBranchSelector: picks the newest remote branch from a ref listing
- SyncService: runs the per-repository sync over a whole project
"""

from .clone_links import CloneLinkResolver
from .local_state import LocalStateProbe
from .branch_selector import LatestBranchSelector
from .sync_service import SyncService, ensure_target_directory

__all__ = [
    'CloneLinkResolver',
    'LocalStateProbe',
    'LatestBranchSelector',
    'SyncService',
    'ensure_target_directory',
]
