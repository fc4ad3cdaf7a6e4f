"""
Picks the branch a mirror should track from a ``git for-each-ref`` listing.

The listing is expected as ``<remote>/<branch>|<committer date>`` lines,
already sorted newest first, so the latest branch is simply the first
usable line.
"""

import logging
from typing import Iterator, List, Optional

from ..domain.refs import RefEntry
from ..exit_codes import MalformedRefError

logger = logging.getLogger(__name__)

SYMBOLIC_HEAD = "HEAD"


class LatestBranchSelector:
    """
    Parses remote-tracking ref listings.

    Example:
        selector = LatestBranchSelector()
        entry = selector.select("origin/main|Mon Jan 1 10:00:00 2024 +0000\\n")
        entry.short_name  # "main"
    """

    def __init__(self, remote: str = "origin"):
        self.remote = remote
        self.prefix = f"{remote}/"

    def parse_line(self, line: str) -> RefEntry:
        """
        Parse one listing line.

        Raises:
            MalformedRefError: if the line has no ``|`` or the ref lacks the
                remote prefix
        """
        if "|" not in line:
            raise MalformedRefError(line, "missing '|' separator")

        ref, commit_date = line.split("|", 1)
        ref = ref.strip()
        if ref == self.remote:
            # git abbreviates refs/remotes/<remote>/HEAD to just "<remote>"
            return RefEntry(short_name=SYMBOLIC_HEAD, commit_date=commit_date.strip())
        if not ref.startswith(self.prefix):
            raise MalformedRefError(line, f"ref does not start with '{self.prefix}'")

        return RefEntry(short_name=ref[len(self.prefix):], commit_date=commit_date.strip())

    def iter_entries(self, raw_output: str) -> Iterator[RefEntry]:
        """Yield parsed entries in listing order, skipping HEAD and bad lines."""
        for line in raw_output.splitlines():
            if not line.strip():
                continue

            try:
                entry = self.parse_line(line)
            except MalformedRefError as e:
                logger.warning(f"Skipping ref line: {e}")
                continue

            if entry.short_name == SYMBOLIC_HEAD:
                continue
            yield entry

    def parse(self, raw_output: str) -> List[RefEntry]:
        return list(self.iter_entries(raw_output))

    def select(self, raw_output: str) -> Optional[RefEntry]:
        """Return the most recently committed branch, or None if there is none."""
        return next(self.iter_entries(raw_output), None)
