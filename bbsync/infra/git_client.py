"""
Git client infrastructure for bbsync.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Explicit about the directory they run in
"""

import shlex
import signal
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple, Union
import logging

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_REF_SORT_KEY = "-committerdate"
DEFAULT_REF_FORMAT = "%(refname:short)|%(committerdate)"


class ExitKind(Enum):
    """How a git child process ended."""
    SUCCESS = "success"
    NON_ZERO_EXIT = "non_zero_exit"
    TERMINATED_BY_SIGNAL = "terminated_by_signal"
    SPAWN_FAILED = "spawn_failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ExitResult:
    """Result of running one git command."""
    kind: ExitKind
    command: Tuple[str, ...] = ()
    code: Optional[int] = None
    signal: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def from_returncode(cls, returncode: int, command: Tuple[str, ...] = ()) -> 'ExitResult':
        """Classify a ``Popen.returncode`` (negative means killed by a signal)."""
        if returncode == 0:
            return cls(ExitKind.SUCCESS, command, code=0)
        if returncode < 0:
            return cls(ExitKind.TERMINATED_BY_SIGNAL, command, signal=-returncode)
        return cls(ExitKind.NON_ZERO_EXIT, command, code=returncode)

    @property
    def ok(self) -> bool:
        return self.kind == ExitKind.SUCCESS

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def describe(self) -> str:
        """Human-readable exit detail."""
        if self.kind == ExitKind.SUCCESS:
            return "succeeded"
        if self.kind == ExitKind.NON_ZERO_EXIT:
            return f"exited with code {self.code}"
        if self.kind == ExitKind.TERMINATED_BY_SIGNAL:
            try:
                name = signal.Signals(self.signal).name
            except ValueError:
                name = "unknown"
            return f"terminated by signal {self.signal} ({name})"
        if self.kind == ExitKind.TIMED_OUT:
            return f"timed out: {self.reason}"
        return f"failed to spawn: {self.reason}"


class GitClient:
    """
    Abstraction over the git commands used to mirror a repository.

    Every method takes the directory to run in; the process working
    directory is never changed. Only ``list_remote_refs`` captures stdout,
    the others stream to the terminal as git normally does.

    Example:
        client = GitClient()
        result = client.clone("ssh://git@host/proj/repo.git", cwd="/mirror")
        if not result.ok:
            print(result.describe())
    """

    def __init__(
        self,
        executable: str = "git",
        remote: str = "origin",
        timeout: Optional[float] = None
    ):
        """
        Initialize GitClient.

        Args:
            executable: git executable name or path
            remote: Remote whose tracking refs are listed
            timeout: Per-command timeout in seconds (None waits forever)
        """
        self.executable = executable
        self.remote = remote
        self.timeout = timeout or None

    def _run(
        self,
        args: List[str],
        cwd: PathLike,
        capture: bool = False
    ) -> Tuple[ExitResult, Optional[bytes]]:
        """
        Run a git command.

        Args:
            args: git arguments (without the executable)
            cwd: Working directory
            capture: Capture stdout instead of streaming it

        Returns:
            Tuple of (ExitResult, stdout bytes or None)
        """
        cmd = (self.executable, *args)
        logger.debug(f"Running command in '{cwd}': {shlex.join(cmd)}")

        try:
            proc = subprocess.run(
                cmd,
                cwd=str(cwd),
                stdout=subprocess.PIPE if capture else None,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return ExitResult(ExitKind.TIMED_OUT, cmd, reason=f"no exit after {self.timeout}s"), None
        except OSError as e:
            return ExitResult(ExitKind.SPAWN_FAILED, cmd, reason=str(e)), None

        return ExitResult.from_returncode(proc.returncode, cmd), proc.stdout if capture else None

    def clone(self, uri: str, cwd: PathLike) -> ExitResult:
        """Clone ``uri`` into a new subdirectory of ``cwd``."""
        result, _ = self._run(["clone", uri], cwd=cwd)
        return result

    def list_remote_refs(
        self,
        cwd: PathLike,
        sort_key: str = DEFAULT_REF_SORT_KEY,
        scope: Optional[str] = None,
        fmt: str = DEFAULT_REF_FORMAT
    ) -> Tuple[ExitResult, str]:
        """
        List remote-tracking refs, newest commit first.

        Returns:
            Tuple of (ExitResult, captured stdout)

        Raises:
            UnicodeDecodeError: if git printed something that is not UTF-8
        """
        scope = scope or f"refs/remotes/{self.remote}"
        result, output = self._run(
            ["for-each-ref", f"--sort={sort_key}", scope, f"--format={fmt}"],
            cwd=cwd,
            capture=True,
        )
        return result, (output or b"").decode("utf-8")

    def checkout(self, branch: str, cwd: PathLike) -> ExitResult:
        """Check out ``branch`` (git creates the tracking branch if needed)."""
        result, _ = self._run(["checkout", branch], cwd=cwd)
        return result

    def pull(self, cwd: PathLike) -> ExitResult:
        """Pull the checked-out branch from its upstream."""
        result, _ = self._run(["pull"], cwd=cwd)
        return result
