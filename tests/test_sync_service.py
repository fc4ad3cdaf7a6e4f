"""
Tests for SyncService, the per-repository sync state machine.

Tests cover:
- Clone vs. already-present handling
- Branch selection followed by checkout and pull
- Failure isolation at every stage
- Batch properties (every repo attempted, working directory untouched)
"""

import logging
import os
from pathlib import Path
from unittest.mock import MagicMock, call

import pytest

from bbsync.config import apply_env_overrides, get_default_config
from bbsync.domain.outcome import OutcomeStatus, RepoState, SyncStage
from bbsync.domain.repository import LinkEntry, RepoDescriptor, RepoListPage
from bbsync.exit_codes import ConfigError, TargetDirectoryError
from bbsync.infra.bitbucket_client import BitbucketClient
from bbsync.infra.git_client import ExitKind, ExitResult, GitClient
from bbsync.services.sync_service import SyncService, ensure_target_directory


REFS = (
    "origin/main|Tue Jan 2 10:00:00 2024 +0000\n"
    "origin/HEAD|Tue Jan 2 10:00:00 2024 +0000\n"
    "origin/dev|Mon Jan 1 10:00:00 2024 +0000\n"
)


def ok(*cmd):
    return ExitResult(ExitKind.SUCCESS, ("git",) + cmd, code=0)


def failed(*cmd, code=1):
    return ExitResult(ExitKind.NON_ZERO_EXIT, ("git",) + cmd, code=code)


def make_repo(slug, links=None):
    if links is None:
        links = {"clone": (
            LinkEntry(href=f"https://bb.example.com/scm/proj/{slug}.git", name="http"),
            LinkEntry(href=f"ssh://git@bb.example.com:7999/proj/{slug}.git", name="ssh"),
        )}
    return RepoDescriptor(slug=slug, name=slug, links=links)


def clone_creates_directory(uri, cwd):
    slug = uri.rsplit("/", 1)[-1][:-len(".git")]
    (Path(cwd) / slug).mkdir()
    return ok("clone", uri)


@pytest.fixture
def mock_git():
    """A GitClient whose clones create the repo directory and always succeed."""
    git = MagicMock(spec=GitClient)
    git.clone.side_effect = clone_creates_directory
    git.list_remote_refs.return_value = (ok("for-each-ref"), REFS)
    git.checkout.side_effect = lambda branch, cwd: ok("checkout", branch)
    git.pull.return_value = ok("pull")
    return git


@pytest.fixture
def service(tmp_path, mock_git):
    return SyncService(tmp_path, git_client=mock_git, config={})


class TestPresentRepository:
    """A repository whose directory already exists."""

    def test_checks_out_newest_branch_and_pulls(self, tmp_path, service, mock_git):
        """An existing mirror is switched to the newest branch and pulled."""
        (tmp_path / "repoA").mkdir()

        outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.status == OutcomeStatus.ALREADY_UP_TO_DATE
        assert outcome.branch == "main"
        mock_git.clone.assert_not_called()
        mock_git.list_remote_refs.assert_called_once_with(cwd=tmp_path / "repoA")
        mock_git.checkout.assert_called_once_with("main", cwd=tmp_path / "repoA")
        mock_git.pull.assert_called_once_with(cwd=tmp_path / "repoA")

    def test_state_trace(self, tmp_path, service):
        """The outcome records every state the repo passed through."""
        (tmp_path / "repoA").mkdir()

        outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.trace == [
            RepoState.START,
            RepoState.PROBED,
            RepoState.SKIPPING_PRESENT,
            RepoState.BRANCH_LISTED,
            RepoState.SWITCHING,
            RepoState.PULLED,
            RepoState.DONE,
        ]

    def test_does_not_need_clone_links(self, tmp_path, service, mock_git):
        """An existing mirror syncs even without clone links."""
        (tmp_path / "repoA").mkdir()

        outcome = service.sync_repo(make_repo("repoA", links={}))

        assert outcome.status == OutcomeStatus.ALREADY_UP_TO_DATE
        mock_git.pull.assert_called_once()


class TestAbsentRepository:
    """A repository that has to be cloned first."""

    def test_clones_over_ssh_then_syncs_branch(self, tmp_path, service, mock_git):
        """A missing repo is cloned into the target, then synced."""
        outcome = service.sync_repo(make_repo("repoB"))

        assert outcome.status == OutcomeStatus.CLONED
        assert outcome.cloned
        mock_git.clone.assert_called_once_with(
            "ssh://git@bb.example.com:7999/proj/repoB.git", cwd=tmp_path
        )
        mock_git.checkout.assert_called_once_with("main", cwd=tmp_path / "repoB")
        mock_git.pull.assert_called_once_with(cwd=tmp_path / "repoB")
        assert RepoState.CLONING in outcome.trace

    def test_no_clone_link(self, service, mock_git):
        """No ssh link skips the repo without running git."""
        repo = make_repo("web", links={"clone": (LinkEntry(href="https://x/web.git", name="http"),)})

        outcome = service.sync_repo(repo)

        assert outcome.status == OutcomeStatus.SKIPPED
        assert outcome.reason == "no clone link"
        assert outcome.state == RepoState.DONE
        assert mock_git.method_calls == []

    def test_configured_transport(self, tmp_path, mock_git):
        """The configured transport label picks the clone link."""
        service = SyncService(tmp_path, git_client=mock_git,
                              config={"transport": {"clone_link_label": "http"}})

        service.sync_repo(make_repo("repoB"))

        mock_git.clone.assert_called_once_with("https://bb.example.com/scm/proj/repoB.git", cwd=tmp_path)

    def test_missing_clone_category(self, service, mock_git):
        """A descriptor without clone links fails at link resolution."""
        repo = make_repo("broken", links={"self": (LinkEntry(href="https://x"),)})

        outcome = service.sync_repo(repo)

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.stage == SyncStage.RESOLVE_CLONE_LINK
        assert mock_git.method_calls == []

    def test_failed_clone_still_syncs_partial_copy(self, tmp_path, service, mock_git):
        """A failed clone that left a directory is still synced."""
        def partial_clone(uri, cwd):
            (Path(cwd) / "repoB").mkdir()
            return failed("clone", uri, code=128)
        mock_git.clone.side_effect = partial_clone

        outcome = service.sync_repo(make_repo("repoB"))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.stage == SyncStage.CLONE
        assert not outcome.cloned
        mock_git.checkout.assert_called_once_with("main", cwd=tmp_path / "repoB")
        mock_git.pull.assert_called_once()

    def test_failed_clone_without_directory(self, service, mock_git):
        """A failed clone with nothing on disk skips branch sync."""
        mock_git.clone.side_effect = None
        mock_git.clone.return_value = failed("clone", "ssh://x", code=128)

        outcome = service.sync_repo(make_repo("repoB"))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.stage == SyncStage.CLONE
        assert [f.stage for f in outcome.failures] == [SyncStage.CLONE, SyncStage.LIST_REFS]
        mock_git.list_remote_refs.assert_not_called()
        mock_git.checkout.assert_not_called()
        assert outcome.state == RepoState.DONE


class TestConflict:
    """A repository path occupied by something that is not a directory."""

    def test_plain_file(self, tmp_path, service, mock_git, caplog):
        """A file at the repo path fails the repo without running git."""
        (tmp_path / "repoC").write_text("occupied")

        with caplog.at_level(logging.WARNING, logger="bbsync"):
            outcome = service.sync_repo(make_repo("repoC"))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.stage == SyncStage.PROBE
        assert outcome.state == RepoState.CONFLICTED
        assert RepoState.DONE not in outcome.trace
        assert mock_git.method_calls == []
        assert "repoC" in caplog.text
        assert "not a directory" in caplog.text


class TestBranchSync:
    """Failures and edge cases of the branch-sync phase."""

    @pytest.fixture(autouse=True)
    def present(self, tmp_path):
        (tmp_path / "repoA").mkdir()

    def test_ref_listing_fails(self, service, mock_git, caplog):
        """A failed ref listing skips checkout and pull."""
        mock_git.list_remote_refs.return_value = (failed("for-each-ref", code=129), "")

        with caplog.at_level(logging.ERROR, logger="bbsync"):
            outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.stage == SyncStage.LIST_REFS
        mock_git.checkout.assert_not_called()
        mock_git.pull.assert_not_called()
        assert "git for-each-ref" in caplog.text
        assert "exited with code 129" in caplog.text

    def test_ref_listing_not_utf8(self, service, mock_git):
        """Undecodable ref output fails the listing stage."""
        mock_git.list_remote_refs.side_effect = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.stage == SyncStage.LIST_REFS
        mock_git.checkout.assert_not_called()

    def test_no_remote_branches(self, service, mock_git):
        """No remote branches is not an error."""
        mock_git.list_remote_refs.return_value = (ok("for-each-ref"), "")

        outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.status == OutcomeStatus.ALREADY_UP_TO_DATE
        assert outcome.branch is None
        assert RepoState.NO_BRANCH_TO_SWITCH in outcome.trace
        assert outcome.state == RepoState.DONE
        mock_git.checkout.assert_not_called()
        mock_git.pull.assert_not_called()

    def test_checkout_failure_still_pulls(self, service, mock_git):
        """A failed checkout is recorded and pull still runs."""
        mock_git.checkout.side_effect = None
        mock_git.checkout.return_value = failed("checkout", "main")

        outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.stage == SyncStage.CHECKOUT
        mock_git.pull.assert_called_once()
        assert outcome.state == RepoState.DONE

    def test_pull_failure(self, service, mock_git, caplog):
        """A failed pull fails the repo at the pull stage."""
        mock_git.pull.return_value = ExitResult(ExitKind.TERMINATED_BY_SIGNAL, ("git", "pull"), signal=9)

        with caplog.at_level(logging.ERROR, logger="bbsync"):
            outcome = service.sync_repo(make_repo("repoA"))

        assert outcome.stage == SyncStage.PULL
        assert outcome.failures[0].command == "git pull"
        assert "git pull" in caplog.text


class TestBatch:
    """Properties of a whole run."""

    @pytest.mark.parametrize("count", [0, 1, 5])
    def test_every_repo_attempted_and_cwd_untouched(self, tmp_path, service, count):
        """Every repo is attempted and the process cwd never changes."""
        repos = [make_repo(f"repo{i}") for i in range(count)]
        before = os.getcwd()

        summary = service.sync_repos(repos)

        assert os.getcwd() == before
        assert summary.total == count
        assert [o.slug for o in summary.outcomes] == [r.slug for r in repos]

    def test_two_repo_scenario(self, tmp_path, service, mock_git, caplog):
        """One present and one missing repo issue the expected git commands in order."""
        (tmp_path / "repoA").mkdir()

        with caplog.at_level(logging.INFO, logger="bbsync"):
            summary = service.sync_repos([make_repo("repoA"), make_repo("repoB")], project="PROJ")

        assert summary.success
        assert summary.up_to_date == 1
        assert summary.cloned == 1
        assert mock_git.method_calls == [
            call.list_remote_refs(cwd=tmp_path / "repoA"),
            call.checkout("main", cwd=tmp_path / "repoA"),
            call.pull(cwd=tmp_path / "repoA"),
            call.clone("ssh://git@bb.example.com:7999/proj/repoB.git", cwd=tmp_path),
            call.list_remote_refs(cwd=tmp_path / "repoB"),
            call.checkout("main", cwd=tmp_path / "repoB"),
            call.pull(cwd=tmp_path / "repoB"),
        ]
        assert "repoA already cloned" in caplog.text

    def test_conflict_does_not_stop_batch(self, tmp_path, service, mock_git):
        """A conflicting repo does not stop the others."""
        (tmp_path / "repoC").write_text("occupied")

        summary = service.sync_repos([make_repo("repoC"), make_repo("repoD")])

        assert summary.failed == 1
        assert summary.cloned == 1
        mock_git.clone.assert_called_once_with(
            "ssh://git@bb.example.com:7999/proj/repoD.git", cwd=tmp_path
        )

    def test_unexpected_error_is_isolated(self, tmp_path, service, mock_git):
        """An unexpected exception fails only its own repo."""
        (tmp_path / "bad").mkdir()
        (tmp_path / "good").mkdir()

        def refs(cwd):
            if Path(cwd).name == "bad":
                raise RuntimeError("boom")
            return ok("for-each-ref"), REFS
        mock_git.list_remote_refs.side_effect = refs

        summary = service.sync_repos([make_repo("bad"), make_repo("good")])

        bad, good = summary.outcomes
        assert bad.status == OutcomeStatus.FAILED
        assert bad.stage == SyncStage.UNEXPECTED
        assert bad.reason == "boom"
        assert good.status == OutcomeStatus.ALREADY_UP_TO_DATE
        assert service.last_result is summary


class TestSyncProject:
    """Tests for listing then syncing a project."""

    def test_uses_lister(self, tmp_path, mock_git, caplog):
        """sync_project lists the project and syncs each repo."""
        lister = MagicMock(spec=BitbucketClient)
        lister.list_all_repos.return_value = RepoListPage(
            size=2, limit=1000, repos=(make_repo("a"), make_repo("b")), is_last_page=True
        )
        service = SyncService(tmp_path, lister=lister, git_client=mock_git, config={})

        with caplog.at_level(logging.INFO, logger="bbsync"):
            summary = service.sync_project("PROJ")

        lister.list_all_repos.assert_called_once_with("PROJ")
        assert summary.project == "PROJ"
        assert summary.total == 2
        assert "There are 2 PROJ repos" in caplog.text

    def test_requires_lister(self, tmp_path, mock_git):
        """sync_project without a lister is an error."""
        service = SyncService(tmp_path, git_client=mock_git, config={})

        with pytest.raises(RuntimeError):
            service.sync_project("PROJ")

    def test_builds_git_client_from_config(self, tmp_path):
        """Git executable, remote and timeout come from config."""
        service = SyncService(tmp_path, config={
            "git": {"executable": "/opt/git/bin/git", "remote": "upstream", "timeout_seconds": 0},
        })

        assert service.git.executable == "/opt/git/bin/git"
        assert service.git.remote == "upstream"
        assert service.git.timeout is None
        assert service.selector.prefix == "upstream/"

    def test_fractional_timeout_from_env(self, tmp_path, monkeypatch):
        """A fractional timeout override reaches git as a number."""
        monkeypatch.setenv("BBSYNC_GIT_TIMEOUT_SECONDS", "0.5")
        config = apply_env_overrides(get_default_config())

        service = SyncService(tmp_path, config=config)

        assert service.git.timeout == 0.5

    def test_non_numeric_timeout_rejected(self, tmp_path):
        """A timeout that is not a number is a config error."""
        with pytest.raises(ConfigError):
            SyncService(tmp_path, config={"git": {"timeout_seconds": "soon"}})


class TestEnsureTargetDirectory:
    """Tests for target directory preparation."""

    def test_creates_parents(self, tmp_path):
        """Missing parents are created."""
        target = ensure_target_directory(tmp_path / "a" / "b")
        assert target.is_dir()
        assert target.is_absolute()

    def test_existing_directory(self, tmp_path):
        """An existing directory is accepted."""
        assert ensure_target_directory(tmp_path) == tmp_path

    def test_file_in_the_way(self, tmp_path):
        """A file at the target path raises TargetDirectoryError."""
        (tmp_path / "taken").write_text("x")

        with pytest.raises(TargetDirectoryError):
            ensure_target_directory(tmp_path / "taken")
