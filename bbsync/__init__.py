"""
bbsync - Mirror every repository of a Bitbucket project.

bbsync lists the repositories of a Bitbucket Server project and brings a
local mirror of each one up to date: missing repositories are cloned, and
every mirror is switched to its most recently committed remote branch and
pulled.

Quick Start:
    from bbsync import BitbucketClient, SyncService

    client = BitbucketClient("bitbucket.example.com", token)
    service = SyncService("/srv/mirror", lister=client)
    summary = service.sync_project("PROJ")
    print(summary.cloned, summary.failed)

Domain Objects:
    RepoDescriptor - One hosted repository (slug, name, links)
    RefEntry - A remote-tracking branch
    SyncOutcome - What happened to one repository
    SyncSummary - Totals for a whole run
"""

__version__ = "0.3.0"

from .domain import (
    LinkEntry,
    RepoDescriptor,
    RepoListPage,
    RefEntry,
    LocalState,
    LocalStateKind,
    OutcomeStatus,
    SyncOutcome,
    SyncSummary,
)
from .infra import BitbucketClient, GitClient, ExitResult
from .services import (
    CloneLinkResolver,
    LocalStateProbe,
    LatestBranchSelector,
    SyncService,
)
from .config import load_config

__all__ = [
    "__version__",
    "LinkEntry",
    "RepoDescriptor",
    "RepoListPage",
    "RefEntry",
    "LocalState",
    "LocalStateKind",
    "OutcomeStatus",
    "SyncOutcome",
    "SyncSummary",
    "BitbucketClient",
    "GitClient",
    "ExitResult",
    "CloneLinkResolver",
    "LocalStateProbe",
    "LatestBranchSelector",
    "SyncService",
    "load_config",
]
