"""
Sync outcome domain objects for bbsync.

Provides the per-repository result of a synchronization run and the
batch summary built from them. Used for reporting only; never persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class RepoState(Enum):
    """States a repository passes through while being synchronized."""
    START = "start"
    PROBED = "probed"
    CLONING = "cloning"
    SKIPPING_PRESENT = "skipping_present"
    CONFLICTED = "conflicted"
    BRANCH_LISTED = "branch_listed"
    SWITCHING = "switching"
    PULLED = "pulled"
    NO_BRANCH_TO_SWITCH = "no_branch_to_switch"
    DONE = "done"


class SyncStage(Enum):
    """Step of the per-repository sync at which something went wrong."""
    PROBE = "probe"
    RESOLVE_CLONE_LINK = "resolve_clone_link"
    CLONE = "clone"
    LIST_REFS = "list_refs"
    CHECKOUT = "checkout"
    PULL = "pull"
    UNEXPECTED = "unexpected"


class OutcomeStatus(Enum):
    """Final status of one repository."""
    CLONED = "cloned"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StageFailure:
    """A stage of the sync that failed, with the command and exit detail."""
    stage: SyncStage
    detail: str
    command: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'stage': self.stage.value, 'detail': self.detail}
        if self.command:
            result['command'] = self.command
        return result


@dataclass
class SyncOutcome:
    """
    What happened to a single repository during a sync run.

    A repository may hit several tolerated failures (clone, checkout) on
    its way to DONE; ``failures`` keeps all of them, while ``stage`` and
    ``reason`` describe the first one.
    """
    slug: str
    name: str
    path: str
    status: Optional[OutcomeStatus] = None
    stage: Optional[SyncStage] = None
    reason: Optional[str] = None
    branch: Optional[str] = None
    cloned: bool = False
    failures: List[StageFailure] = field(default_factory=list)
    trace: List[RepoState] = field(default_factory=lambda: [RepoState.START])

    def enter(self, state: RepoState) -> None:
        """Record a state transition."""
        self.trace.append(state)

    def record_failure(self, stage: SyncStage, detail: str, command: Optional[str] = None) -> None:
        self.failures.append(StageFailure(stage=stage, detail=detail, command=command))

    def fail(self, stage: SyncStage, reason: str) -> 'SyncOutcome':
        self.record_failure(stage, reason)
        self.status = OutcomeStatus.FAILED
        self.stage = stage
        self.reason = reason
        return self

    def skip(self, reason: str) -> 'SyncOutcome':
        self.status = OutcomeStatus.SKIPPED
        self.reason = reason
        return self

    def finish(self) -> 'SyncOutcome':
        """Settle the final status of a repository that reached DONE."""
        if self.failures:
            first = self.failures[0]
            self.status = OutcomeStatus.FAILED
            self.stage = first.stage
            self.reason = first.detail
        elif self.cloned:
            self.status = OutcomeStatus.CLONED
        else:
            self.status = OutcomeStatus.ALREADY_UP_TO_DATE
        return self

    @property
    def state(self) -> RepoState:
        return self.trace[-1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'slug': self.slug,
            'name': self.name,
            'path': self.path,
            'status': self.status.value if self.status else None,
        }
        if self.branch:
            result['branch'] = self.branch
        if self.stage:
            result['stage'] = self.stage.value
        if self.reason:
            result['reason'] = self.reason
        if self.failures:
            result['failures'] = [f.to_dict() for f in self.failures]
        return result


@dataclass
class SyncSummary:
    """
    Summary of a sync run across all repositories of a project.
    """
    project: str
    total: int = 0
    cloned: int = 0
    up_to_date: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: List[SyncOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no repository failed."""
        return self.failed == 0

    def add_outcome(self, outcome: SyncOutcome) -> None:
        """Add a repository outcome and update counts."""
        self.outcomes.append(outcome)
        self.total += 1

        if outcome.status == OutcomeStatus.CLONED:
            self.cloned += 1
        elif outcome.status == OutcomeStatus.ALREADY_UP_TO_DATE:
            self.up_to_date += 1
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        elif outcome.status == OutcomeStatus.FAILED:
            self.failed += 1
            self.errors.append(f"{outcome.slug}: {outcome.reason}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'project': self.project,
            'total': self.total,
            'cloned': self.cloned,
            'up_to_date': self.up_to_date,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': self.errors,
        }
