"""
Domain layer for bbsync.

Contains pure domain objects with no I/O or side effects:
- RepoDescriptor / LinkEntry / RepoListPage: project repository listing
- RefEntry: a remote-tracking branch
- LocalState: what occupies a repository's local path
- SyncOutcome / SyncSummary: per-repository and batch results
"""

from .repository import LinkEntry, RepoDescriptor, RepoListPage
from .refs import RefEntry
from .local_state import LocalState, LocalStateKind
from .outcome import (
    OutcomeStatus,
    RepoState,
    StageFailure,
    SyncOutcome,
    SyncStage,
    SyncSummary,
)

__all__ = [
    'LinkEntry',
    'RepoDescriptor',
    'RepoListPage',
    'RefEntry',
    'LocalState',
    'LocalStateKind',
    'OutcomeStatus',
    'RepoState',
    'StageFailure',
    'SyncOutcome',
    'SyncStage',
    'SyncSummary',
]
