"""
Repository synchronization service for bbsync.

Mirrors every repository of a Bitbucket project into a target directory:
clones what is missing, then checks out and pulls the most recently
active remote branch of each repository.

Repositories are processed one at a time, in the order the server lists
them. A failing repository is logged and recorded; it never stops the
others. Git always runs with an explicit working directory, so the
process's own current directory is left untouched.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..config import get_timeout, load_config
from ..domain.local_state import LocalStateKind
from ..domain.outcome import RepoState, SyncOutcome, SyncStage, SyncSummary
from ..domain.repository import RepoDescriptor
from ..exit_codes import MalformedRepoDescriptorError, TargetDirectoryError
from ..infra.bitbucket_client import BitbucketClient
from ..infra.git_client import ExitResult, GitClient
from .branch_selector import LatestBranchSelector
from .clone_links import CloneLinkResolver
from .local_state import LocalStateProbe

logger = logging.getLogger(__name__)


def ensure_target_directory(target_dir: Union[str, Path]) -> Path:
    """
    Create the target directory (and parents) if needed.

    Returns:
        The absolute target directory

    Raises:
        TargetDirectoryError: if it cannot be created or is not a directory
    """
    path = Path(target_dir).expanduser().absolute()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise TargetDirectoryError(str(target_dir), str(e)) from e
    return path


class SyncService:
    """
    Drives the per-repository sync state machine.

    Example:
        service = SyncService("/srv/mirror", lister=BitbucketClient(host, token))
        summary = service.sync_project("PROJ")
        print(f"{summary.failed} repos failed")
    """

    def __init__(
        self,
        target_dir: Union[str, Path],
        lister: Optional[BitbucketClient] = None,
        git_client: Optional[GitClient] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize SyncService.

        Args:
            target_dir: Directory holding one subdirectory per repository
            lister: Client used by sync_project to list the project's repos
            git_client: GitClient instance (built from config if None)
            config: Configuration dict (loads default if None)
        """
        self.config = config if config is not None else load_config()
        git_config = self.config.get('git', {})
        remote = git_config.get('remote', 'origin')

        self.target_dir = Path(target_dir)
        self.lister = lister
        self.git = git_client or GitClient(
            executable=git_config.get('executable', 'git'),
            remote=remote,
            timeout=get_timeout(self.config, 'git'),
        )
        self.resolver = CloneLinkResolver(
            self.config.get('transport', {}).get('clone_link_label', 'ssh')
        )
        self.probe = LocalStateProbe(self.target_dir)
        self.selector = LatestBranchSelector(remote)
        self.last_result: Optional[SyncSummary] = None

    def sync_project(self, project: str) -> SyncSummary:
        """
        List every repository of ``project`` and synchronize each one.

        Raises:
            RepoListingError: if the listing cannot be fetched
            RuntimeError: if the service was built without a lister
        """
        if self.lister is None:
            raise RuntimeError("SyncService.sync_project needs a repository lister")

        page = self.lister.list_all_repos(project)
        logger.info(f"There are {page.size} {project} repos")
        logger.info("-----")
        return self.sync_repos(page.repos, project=project)

    def sync_repos(self, repos: Iterable[RepoDescriptor], project: str = "") -> SyncSummary:
        """Synchronize ``repos`` in order, isolating per-repository failures."""
        summary = SyncSummary(project=project)
        self.last_result = summary

        for repo in repos:
            try:
                outcome = self.sync_repo(repo)
            except Exception as e:
                logger.exception(f"Unexpected error while syncing {repo.name}")
                outcome = SyncOutcome(
                    slug=repo.slug,
                    name=repo.name,
                    path=str(self.probe.path_for(repo.slug)),
                )
                outcome.enter(RepoState.DONE)
                outcome.fail(SyncStage.UNEXPECTED, str(e))
            summary.add_outcome(outcome)

        return summary

    def sync_repo(self, repo: RepoDescriptor) -> SyncOutcome:
        """Bring one repository's mirror up to date."""
        path = self.probe.path_for(repo.slug)
        outcome = SyncOutcome(slug=repo.slug, name=repo.name, path=str(path))

        state = self.probe.probe(repo.slug)
        outcome.enter(RepoState.PROBED)

        if state.kind == LocalStateKind.CONFLICT:
            outcome.enter(RepoState.CONFLICTED)
            logger.warning(f"Repo {repo.name}: {path} {state.reason}; skipping")
            return outcome.fail(SyncStage.PROBE, f"{path} {state.reason}")

        if state.kind == LocalStateKind.ABSENT:
            outcome.enter(RepoState.CLONING)
            try:
                link = self.resolver.resolve(repo)
            except MalformedRepoDescriptorError as e:
                logger.error(f"Repo {repo.name}: {e}")
                outcome.enter(RepoState.DONE)
                return outcome.fail(SyncStage.RESOLVE_CLONE_LINK, str(e))

            if link is None:
                logger.info(f"Repo {repo.name} has no clone link")
                outcome.enter(RepoState.DONE)
                return outcome.skip("no clone link")

            logger.info(f"Cloning {repo.name} from {link}")
            result = self.git.clone(link, cwd=self.target_dir)
            if result.ok:
                outcome.cloned = True
            else:
                # A partial clone may still leave a usable working copy
                self._command_failed(outcome, SyncStage.CLONE, result)
        else:
            outcome.enter(RepoState.SKIPPING_PRESENT)
            logger.info(f"{repo.name} already cloned")

        self._sync_branch(outcome, path)
        outcome.enter(RepoState.DONE)
        return outcome.finish()

    def _sync_branch(self, outcome: SyncOutcome, path: Path) -> None:
        """Check out and pull the newest remote branch inside ``path``."""
        if not path.is_dir():
            detail = f"{path} is not a directory"
            logger.error(f"Cannot sync branches of {outcome.name}: {detail}")
            outcome.record_failure(SyncStage.LIST_REFS, detail)
            return

        try:
            result, output = self.git.list_remote_refs(cwd=path)
        except UnicodeDecodeError as e:
            detail = f"could not decode ref listing: {e}"
            logger.error(f"{outcome.name}: {detail}")
            outcome.record_failure(SyncStage.LIST_REFS, detail)
            return

        if not result.ok:
            self._command_failed(outcome, SyncStage.LIST_REFS, result)
            return
        outcome.enter(RepoState.BRANCH_LISTED)

        entry = self.selector.select(output)
        if entry is None:
            outcome.enter(RepoState.NO_BRANCH_TO_SWITCH)
            logger.debug(f"{outcome.name} has no remote branches")
            return

        outcome.branch = entry.short_name
        outcome.enter(RepoState.SWITCHING)
        logger.info(f"Switching {outcome.name} to {entry.short_name} (last commit {entry.commit_date})")

        result = self.git.checkout(entry.short_name, cwd=path)
        if not result.ok:
            self._command_failed(outcome, SyncStage.CHECKOUT, result)

        logger.info(f"Pulling {outcome.name}")
        result = self.git.pull(cwd=path)
        if not result.ok:
            self._command_failed(outcome, SyncStage.PULL, result)
        outcome.enter(RepoState.PULLED)

    def _command_failed(self, outcome: SyncOutcome, stage: SyncStage, result: ExitResult) -> None:
        detail = result.describe()
        logger.error(f"{outcome.name}: `{result.command_line}` {detail}")
        outcome.record_failure(stage, detail, command=result.command_line)
